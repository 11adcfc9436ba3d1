"""Marker clustering state and its reducer."""

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Union

from app.schemas.geo import Coordinates
from app.schemas.location import NearbyLocation

ClusterAlgorithm = Literal["grid", "kmeans", "supercluster"]


@dataclass(frozen=True)
class BusinessMarker:
    """A business pin on the map."""
    id: str
    name: str
    position: Coordinates
    category: Optional[str] = None
    rating: Optional[float] = None

    @classmethod
    def from_location(cls, location: NearbyLocation) -> "BusinessMarker":
        return cls(
            id=str(location.business.id),
            name=location.business.name,
            position=location.position,
            category=location.business.category,
            rating=location.business.rating,
        )


@dataclass(frozen=True)
class ClusterData:
    id: str
    position: Coordinates
    businesses: list[BusinessMarker]
    count: int
    categories: list[str]
    average_rating: float


@dataclass(frozen=True)
class ClusteringState:
    enabled: bool = True
    algorithm: ClusterAlgorithm = "grid"
    grid_size: int = 60
    min_zoom: int = 3
    max_zoom: int = 15
    clusters: list[ClusterData] = field(default_factory=list)
    selected_cluster: Optional[ClusterData] = None
    is_loading: bool = False
    error: Optional[str] = None

    @property
    def is_clustering_active(self) -> bool:
        return self.enabled and len(self.clusters) > 0

    @property
    def total_businesses(self) -> int:
        return sum(cluster.count for cluster in self.clusters)

    @property
    def total_clusters(self) -> int:
        return len(self.clusters)


# Actions

@dataclass(frozen=True)
class SetEnabled:
    enabled: bool


@dataclass(frozen=True)
class SetAlgorithm:
    algorithm: ClusterAlgorithm


@dataclass(frozen=True)
class SetGridSize:
    size: int


@dataclass(frozen=True)
class SetMinZoom:
    zoom: int


@dataclass(frozen=True)
class SetMaxZoom:
    zoom: int


@dataclass(frozen=True)
class SetClusters:
    clusters: list[ClusterData]


@dataclass(frozen=True)
class SelectCluster:
    cluster: Optional[ClusterData]


@dataclass(frozen=True)
class SetLoading:
    loading: bool


@dataclass(frozen=True)
class SetError:
    error: Optional[str]


@dataclass(frozen=True)
class ClearClusters:
    pass


ClusteringAction = Union[
    SetEnabled, SetAlgorithm, SetGridSize, SetMinZoom, SetMaxZoom,
    SetClusters, SelectCluster, SetLoading, SetError, ClearClusters,
]


def clustering_reducer(state: ClusteringState, action: ClusteringAction) -> ClusteringState:
    if isinstance(action, SetEnabled):
        return replace(
            state,
            enabled=action.enabled,
            selected_cluster=state.selected_cluster if action.enabled else None,
        )
    if isinstance(action, SetAlgorithm):
        # Existing clusters were built by the old algorithm
        return replace(state, algorithm=action.algorithm, clusters=[], selected_cluster=None)
    if isinstance(action, SetGridSize):
        return replace(state, grid_size=action.size, clusters=[], selected_cluster=None)
    if isinstance(action, SetMinZoom):
        return replace(state, min_zoom=action.zoom)
    if isinstance(action, SetMaxZoom):
        return replace(state, max_zoom=action.zoom)
    if isinstance(action, SetClusters):
        return replace(state, clusters=list(action.clusters), is_loading=False, error=None)
    if isinstance(action, SelectCluster):
        return replace(state, selected_cluster=action.cluster)
    if isinstance(action, SetLoading):
        return replace(state, is_loading=action.loading, error=None if action.loading else state.error)
    if isinstance(action, SetError):
        return replace(state, error=action.error, is_loading=False)
    if isinstance(action, ClearClusters):
        return replace(state, clusters=[], selected_cluster=None, error=None)
    return state


def calculate_cluster_position(businesses: list[BusinessMarker]) -> Coordinates:
    """Centroid (plain lat/lng average) of the markers; (0, 0) when empty."""
    if not businesses:
        return Coordinates(lat=0, lng=0)

    return Coordinates(
        lat=sum(b.position.lat for b in businesses) / len(businesses),
        lng=sum(b.position.lng for b in businesses) / len(businesses),
    )


def create_cluster(
    businesses: list[BusinessMarker],
    position: Coordinates,
    cluster_id: Optional[str] = None,
) -> ClusterData:
    categories = list(dict.fromkeys(b.category for b in businesses if b.category))
    ratings = [b.rating for b in businesses if b.rating and b.rating > 0]
    average = sum(ratings) / len(ratings) if ratings else 0.0

    return ClusterData(
        id=cluster_id or f"cluster_{uuid.uuid4().hex[:12]}",
        position=position,
        businesses=list(businesses),
        count=len(businesses),
        categories=categories,
        # Half-up rounding to one decimal
        average_rating=math.floor(average * 10 + 0.5) / 10,
    )
