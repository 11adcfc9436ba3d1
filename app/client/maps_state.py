"""
Map screen state: user position, nearby search results and viewport.

MapsController owns a MapsState and replaces it on every change, notifying
subscribers with the new snapshot. At most one nearby search is in flight;
starting another cancels the previous one, and a cancelled search never writes
to the state.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from pydantic import ValidationError

from app.client.maps_api import LocationSearchParams, MapsAPI, MapsAPIError
from app.client.position import (
    SINGLE_FIX_OPTIONS,
    TRACKING_OPTIONS,
    PermissionState,
    PositionError,
    PositionProvider,
)
from app.core.config import settings
from app.schemas.geo import Coordinates
from app.schemas.location import NearbyLocation

logger = logging.getLogger(__name__)

LOCATION_REQUIRED_MESSAGE = "User location is required for nearby search"


def _default_center() -> Coordinates:
    return Coordinates(lat=settings.fallback_lat, lng=settings.fallback_lng)


@dataclass(frozen=True)
class MapsState:
    user_location: Optional[Coordinates] = None
    is_location_loading: bool = False
    location_error: Optional[str] = None
    nearby_businesses: list[NearbyLocation] = field(default_factory=list)
    is_search_loading: bool = False
    search_error: Optional[str] = None
    has_location_permission: bool = False
    map_center: Coordinates = field(default_factory=_default_center)
    map_zoom: int = field(default_factory=lambda: settings.default_map_zoom)
    selected_business: Optional[NearbyLocation] = None


StateListener = Callable[[MapsState], None]


class SearchHandle:
    """Single slot for the in-flight search task."""

    def __init__(self, task: Optional[asyncio.Task] = None):
        self.task = task

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()

    def cancel(self) -> None:
        if self.active:
            self.task.cancel()


class MapsController:
    def __init__(self, api: MapsAPI, position_provider: PositionProvider):
        self.api = api
        self.position_provider = position_provider
        self._state = MapsState()
        self._listeners: list[StateListener] = []
        self._watch_id: Optional[int] = None
        self._search = SearchHandle()

    @property
    def state(self) -> MapsState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._watch_id is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    # Location

    async def check_location_permission(self) -> Optional[PermissionState]:
        try:
            permission = await self.position_provider.permission_state()
        except PositionError as e:
            logger.warning(f"Permission query not supported: {e.message}")
            return None

        self._update(has_location_permission=permission == PermissionState.GRANTED)
        return permission

    async def get_current_location(self) -> None:
        self._update(is_location_loading=True, location_error=None)

        try:
            location = await self.position_provider.get_current_position(SINGLE_FIX_OPTIONS)
        except PositionError as e:
            logger.error(f"Location error: {e.code.value}")
            self._update(location_error=e.message, is_location_loading=False, has_location_permission=False)
            return

        self._update(
            user_location=location,
            map_center=location,
            is_location_loading=False,
            has_location_permission=True,
        )

    def start_location_tracking(self) -> None:
        if self._watch_id is not None:
            return

        def on_position(location: Coordinates) -> None:
            self._update(user_location=location, has_location_permission=True)

        def on_error(error: PositionError) -> None:
            logger.error(f"Location tracking error: {error.code.value}")
            self._update(location_error=error.message, has_location_permission=False)

        self._watch_id = self.position_provider.watch_position(on_position, on_error, TRACKING_OPTIONS)

    def stop_location_tracking(self) -> None:
        if self._watch_id is not None:
            self.position_provider.clear_watch(self._watch_id)
            self._watch_id = None

    # Search

    async def search_nearby(self, params: Optional[LocationSearchParams] = None) -> None:
        if self._state.user_location is None:
            self._update(search_error=LOCATION_REQUIRED_MESSAGE)
            return
        await self.search_at(self._state.user_location, params)

    async def search_at(self, location: Coordinates, params: Optional[LocationSearchParams] = None) -> None:
        self._search.cancel()
        self._update(is_search_loading=True, search_error=None)

        task = asyncio.ensure_future(self._run_search(location, params or LocationSearchParams()))
        self._search = SearchHandle(task)
        try:
            await task
        except asyncio.CancelledError:
            # Superseded by a newer search or by close(); only the current search may raise
            if self._search.task is task:
                self._update(is_search_loading=False)
                raise
            logger.debug("Nearby search superseded")

    async def _run_search(self, location: Coordinates, params: LocationSearchParams) -> None:
        search_params = LocationSearchParams(
            radius=params.radius or settings.default_search_radius_m,
            category=params.category,
            limit=params.limit or settings.default_search_limit,
        )
        try:
            result = await self.api.search_nearby(location, search_params)
        except (MapsAPIError, ValidationError) as e:
            if self._search.task is not asyncio.current_task():
                return
            logger.error(f"Search error: {e}")
            message = e.message if isinstance(e, MapsAPIError) else "Search failed"
            self._update(search_error=message, is_search_loading=False)
            return

        if self._search.task is not asyncio.current_task():
            return
        self._update(nearby_businesses=result.results, is_search_loading=False)

    def clear_search(self) -> None:
        self._update(nearby_businesses=[], search_error=None, selected_business=None)

    # Map

    def set_map_center(self, location: Coordinates) -> None:
        self._update(map_center=location)

    def set_map_zoom(self, zoom: int) -> None:
        self._update(map_zoom=zoom)

    def select_business(self, business: Optional[NearbyLocation]) -> None:
        self._update(selected_business=business)

    # Utilities

    async def geocode_address(self, address: str) -> Optional[Coordinates]:
        try:
            result = await self.api.geocode_address(address)
        except (MapsAPIError, ValidationError) as e:
            logger.error(f"Geocoding error: {e}")
            return None
        return result.result.coordinates

    async def calculate_distance(self, to: Coordinates) -> Optional[float]:
        """Distance in km from the user's location, or None when unknown."""
        if self._state.user_location is None:
            return None

        try:
            result = await self.api.calculate_distance(self._state.user_location, to)
        except (MapsAPIError, ValidationError) as e:
            logger.error(f"Distance calculation error: {e}")
            return None
        return result.distance

    def close(self) -> None:
        self.stop_location_tracking()
        self._search.cancel()
        self._search = SearchHandle()
