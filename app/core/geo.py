"""Geo utilities: coordinate validation, distance (Haversine), bounding boxes."""

import math
from typing import Any

from app.schemas.geo import Coordinates, DistanceResult, Viewport

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.32

LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0


def _lat_lng(point: Any) -> tuple[Any, Any]:
    if isinstance(point, dict):
        return point.get("lat"), point.get("lng")
    return getattr(point, "lat", None), getattr(point, "lng", None)


def is_valid_coordinates(point: Any) -> bool:
    """
    True iff lat is in [-90, 90], lng is in [-180, 180] and neither is NaN.
    Accepts Coordinates, a {"lat", "lng"} mapping or any object with lat/lng attributes.
    Never raises; non-numeric input is simply invalid.
    """
    lat, lng = _lat_lng(point)
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return LAT_MIN <= lat <= LAT_MAX and LNG_MIN <= lng <= LNG_MAX


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Compute great-circle distance between two (lat, lng) points in kilometers.
    Uses the Haversine formula.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # float error can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def calculate_distance(point1: Coordinates, point2: Coordinates) -> DistanceResult:
    """Haversine distance between two points, rounded to 2 decimal places (km)."""
    km = haversine_distance_km(point1.lat, point1.lng, point2.lat, point2.lng)
    return DistanceResult(distance=round(km, 2), unit="km")


def generate_bounds(center: Coordinates, radius_km: float) -> Viewport:
    """
    Approximate a bounding box of radius_km around center.
    1 degree of latitude is ~111.32 km; longitude degrees shrink with cos(latitude).
    """
    lat_change = radius_km / KM_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(center.lat))
    if abs(cos_lat) < 1e-12:
        # at the poles every longitude is within range
        lng_change = 180.0
    else:
        lng_change = radius_km / (KM_PER_DEGREE_LAT * cos_lat)

    return Viewport(
        northeast=Coordinates(lat=center.lat + lat_change, lng=center.lng + lng_change),
        southwest=Coordinates(lat=center.lat - lat_change, lng=center.lng - lng_change),
    )


def is_within_bounds(point: Coordinates, bounds: Viewport) -> bool:
    """Inclusive containment of point in the southwest/northeast box."""
    return (
        bounds.southwest.lat <= point.lat <= bounds.northeast.lat
        and bounds.southwest.lng <= point.lng <= bounds.northeast.lng
    )


def km_to_miles(km: float) -> float:
    """Convert kilometers to miles."""
    return km * 0.621371
