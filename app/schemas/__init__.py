from app.schemas.business import BusinessCreate, BusinessRead
from app.schemas.geo import (
    AddressComponents,
    Coordinates,
    DistanceResult,
    GeocodeResult,
    LocationInfo,
    NearbySearchOptions,
    PlaceResult,
    Viewport,
)

__all__ = [
    "BusinessCreate",
    "BusinessRead",
    "AddressComponents",
    "Coordinates",
    "DistanceResult",
    "GeocodeResult",
    "LocationInfo",
    "NearbySearchOptions",
    "PlaceResult",
    "Viewport",
]
