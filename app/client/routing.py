"""Directions state: origin, destination, waypoints, and route history."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from app.client.clustering import BusinessMarker
from app.schemas.geo import Coordinates

ROUTE_HISTORY_LIMIT = 10


class TravelMode(str, Enum):
    DRIVING = "DRIVING"
    WALKING = "WALKING"
    BICYCLING = "BICYCLING"
    TRANSIT = "TRANSIT"


@dataclass(frozen=True)
class RouteResult:
    """A route computed by the directions provider; the legs are kept as returned."""
    total_distance: str
    total_duration: str
    legs: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class SavedRoute:
    id: str
    name: str
    origin: Coordinates
    destination: BusinessMarker
    waypoints: list[BusinessMarker]
    travel_mode: TravelMode
    total_distance: str
    total_duration: str
    created_at: datetime


@dataclass(frozen=True)
class RouteState:
    active_route: Optional[RouteResult] = None
    origin: Optional[Coordinates] = None
    destination: Optional[BusinessMarker] = None
    waypoints: list[BusinessMarker] = field(default_factory=list)

    travel_mode: TravelMode = TravelMode.DRIVING
    optimize_waypoints: bool = True
    avoid_highways: bool = False
    avoid_tolls: bool = False

    is_calculating: bool = False
    is_route_panel_visible: bool = False
    selected_step_index: Optional[int] = None
    error: Optional[str] = None

    route_history: list[RouteResult] = field(default_factory=list)
    saved_routes: list[SavedRoute] = field(default_factory=list)

    @property
    def has_active_route(self) -> bool:
        return self.active_route is not None

    @property
    def can_calculate_route(self) -> bool:
        return self.origin is not None and self.destination is not None


# Actions

@dataclass(frozen=True)
class SetOrigin:
    origin: Coordinates


@dataclass(frozen=True)
class SetDestination:
    destination: BusinessMarker


@dataclass(frozen=True)
class AddWaypoint:
    waypoint: BusinessMarker


@dataclass(frozen=True)
class RemoveWaypoint:
    index: int


@dataclass(frozen=True)
class ReorderWaypoints:
    waypoints: list[BusinessMarker]


@dataclass(frozen=True)
class SetTravelMode:
    mode: TravelMode


@dataclass(frozen=True)
class SetRouteOptions:
    optimize_waypoints: Optional[bool] = None
    avoid_highways: Optional[bool] = None
    avoid_tolls: Optional[bool] = None


@dataclass(frozen=True)
class SetCalculating:
    calculating: bool


@dataclass(frozen=True)
class SetRouteResult:
    result: RouteResult


@dataclass(frozen=True)
class SetRouteError:
    error: str


@dataclass(frozen=True)
class ClearRoute:
    pass


@dataclass(frozen=True)
class ToggleRoutePanel:
    pass


@dataclass(frozen=True)
class SetRoutePanelVisible:
    visible: bool


@dataclass(frozen=True)
class SetSelectedStep:
    index: Optional[int]


@dataclass(frozen=True)
class SaveRoute:
    name: str


@dataclass(frozen=True)
class RemoveSavedRoute:
    route_id: str


@dataclass(frozen=True)
class ClearError:
    pass


RouteAction = Union[
    SetOrigin, SetDestination, AddWaypoint, RemoveWaypoint, ReorderWaypoints,
    SetTravelMode, SetRouteOptions, SetCalculating, SetRouteResult, SetRouteError,
    ClearRoute, ToggleRoutePanel, SetRoutePanelVisible, SetSelectedStep,
    SaveRoute, RemoveSavedRoute, ClearError,
]


def _save_route(state: RouteState, name: str) -> RouteState:
    if state.active_route is None or state.origin is None or state.destination is None:
        return state

    saved = SavedRoute(
        id=f"route_{uuid.uuid4().hex[:12]}",
        name=name,
        origin=state.origin,
        destination=state.destination,
        waypoints=list(state.waypoints),
        travel_mode=state.travel_mode,
        total_distance=state.active_route.total_distance,
        total_duration=state.active_route.total_duration,
        created_at=datetime.now(timezone.utc),
    )
    return replace(state, saved_routes=[saved, *state.saved_routes])


def route_reducer(state: RouteState, action: RouteAction) -> RouteState:
    if isinstance(action, SetOrigin):
        return replace(state, origin=action.origin, error=None)
    if isinstance(action, SetDestination):
        return replace(state, destination=action.destination, error=None)
    if isinstance(action, AddWaypoint):
        if any(wp.id == action.waypoint.id for wp in state.waypoints):
            return state
        return replace(state, waypoints=[*state.waypoints, action.waypoint], error=None)
    if isinstance(action, RemoveWaypoint):
        waypoints = [wp for i, wp in enumerate(state.waypoints) if i != action.index]
        return replace(state, waypoints=waypoints, error=None)
    if isinstance(action, ReorderWaypoints):
        return replace(state, waypoints=list(action.waypoints), error=None)
    if isinstance(action, SetTravelMode):
        return replace(state, travel_mode=action.mode, error=None)
    if isinstance(action, SetRouteOptions):
        options = {
            key: value
            for key, value in (
                ("optimize_waypoints", action.optimize_waypoints),
                ("avoid_highways", action.avoid_highways),
                ("avoid_tolls", action.avoid_tolls),
            )
            if value is not None
        }
        return replace(state, error=None, **options)
    if isinstance(action, SetCalculating):
        return replace(state, is_calculating=action.calculating)
    if isinstance(action, SetRouteResult):
        history = [action.result, *state.route_history[: ROUTE_HISTORY_LIMIT - 1]]
        return replace(state, active_route=action.result, is_calculating=False, error=None, route_history=history)
    if isinstance(action, SetRouteError):
        return replace(state, active_route=None, is_calculating=False, error=action.error)
    if isinstance(action, ClearRoute):
        # Origin and history survive a clear
        return replace(
            state,
            active_route=None,
            destination=None,
            waypoints=[],
            is_calculating=False,
            is_route_panel_visible=False,
            selected_step_index=None,
            error=None,
        )
    if isinstance(action, ToggleRoutePanel):
        return replace(state, is_route_panel_visible=not state.is_route_panel_visible)
    if isinstance(action, SetRoutePanelVisible):
        return replace(state, is_route_panel_visible=action.visible)
    if isinstance(action, SetSelectedStep):
        return replace(state, selected_step_index=action.index)
    if isinstance(action, SaveRoute):
        return _save_route(state, action.name)
    if isinstance(action, RemoveSavedRoute):
        return replace(state, saved_routes=[r for r in state.saved_routes if r.id != action.route_id])
    if isinstance(action, ClearError):
        return replace(state, error=None)
    return state
