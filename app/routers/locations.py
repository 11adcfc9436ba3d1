"""Business location endpoints: proximity and bounding-box search, geocoding, distance."""

import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core import geo
from app.core.auth import get_current_user
from app.core.config import settings
from app.db.session import get_db
from app.models.business import Business
from app.models.location import Location
from app.models.user import User
from app.schemas.geo import Coordinates, Viewport
from app.schemas.location import (
    BoundsLocation,
    BoundsResponse,
    BusinessLocation,
    BusinessLocationsResponse,
    BusinessSummary,
    CoordinatesInput,
    DistanceRequest,
    DistanceResponse,
    GeocodePayload,
    GeocodeRequest,
    GeocodeResponse,
    LocationRead,
    LocationUpsertRequest,
    LocationUpsertResponse,
    NearbyBusiness,
    NearbyLocation,
    NearbyResponse,
    ReverseGeocodeRequest,
)
from app.services.geocoding_client import GeocodingClient, get_geocoding_client
from app.services.location_query import LocationPipeline, upsert_location
from app.services.opening_hours import is_business_open

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/locations", tags=["locations"])


def _parse_coordinate(value: Optional[str]) -> float:
    """Parse a query-string coordinate; anything unparseable becomes NaN (and fails validation)."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _to_coordinates(point: Optional[CoordinatesInput]) -> Optional[Coordinates]:
    """Complete and in-range body coordinates, else None."""
    if point is None or point.lat is None or point.lng is None:
        return None
    if not geo.is_valid_coordinates(point):
        return None
    return Coordinates(lat=point.lat, lng=point.lng)


@router.get("/nearby", response_model=NearbyResponse)
def nearby_locations(
    lat: Optional[str] = Query(None, description="Latitude (-90 to 90)"),
    lng: Optional[str] = Query(None, description="Longitude (-180 to 180)"),
    radius: float = Query(settings.default_search_radius_m, ge=1, description="Search radius in meters"),
    category: Optional[str] = Query(None, description="Only businesses in this category"),
    limit: int = Query(settings.default_search_limit, ge=1, le=500, description="Maximum number of results"),
    db: Session = Depends(get_db),
) -> NearbyResponse:
    """
    Verified business locations within `radius` meters of (lat, lng), nearest first.

    Example:
    ```bash
    curl "http://localhost:8000/api/v1/locations/nearby?lat=52.3676&lng=4.9041&radius=5000"
    ```
    """
    if not lat or not lng:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")

    center = {"lat": _parse_coordinate(lat), "lng": _parse_coordinate(lng)}
    if not geo.is_valid_coordinates(center):
        raise HTTPException(status_code=400, detail="Invalid coordinates provided")
    center = Coordinates(**center)
    # whole meters, fractional part truncated
    radius = int(radius)

    try:
        hits = (
            LocationPipeline()
            .geo_near(center, max_distance_m=radius)
            .lookup_business()
            .unwind()
            .match_category(category)
            .limit(limit)
            .project()
            .run(db)
        )

        results = [
            NearbyLocation(
                id=hit.location.id,
                name=hit.location.name,
                position=hit.location.coordinates,
                address=hit.location.formatted_address,
                distance=hit.distance,
                business=NearbyBusiness(
                    id=hit.business.id,
                    name=hit.business.name,
                    category=hit.business.category,
                    rating=hit.business.rating,
                    is_verified=bool(hit.business.is_verified),
                    phone=hit.business.phone,
                    website=hit.business.website,
                    is_open=is_business_open(hit.business.opening_hours),
                ),
            )
            for hit in hits
        ]
    except Exception:
        logger.exception("Error fetching nearby locations")
        raise HTTPException(status_code=500, detail="Failed to fetch nearby locations")

    return NearbyResponse(count=len(results), center=center, radius=radius, results=results)


@router.post("/geocode", response_model=GeocodeResponse)
async def geocode_address(
    body: GeocodeRequest,
    geocoder: GeocodingClient = Depends(get_geocoding_client),
) -> GeocodeResponse:
    """Resolve an address to coordinates. 404 if the provider finds nothing."""
    if not body.address or not body.address.strip():
        raise HTTPException(status_code=400, detail="Address is required")

    try:
        result = await geocoder.geocode_address(body.address)
    except Exception:
        logger.exception("Geocoding error")
        raise HTTPException(status_code=500, detail="Geocoding failed")

    if result is None:
        raise HTTPException(status_code=404, detail="Address not found")

    return GeocodeResponse(
        result=GeocodePayload(
            coordinates=result.coordinates,
            address=result.address,
            place_id=result.place_id,
            viewport=result.viewport,
        )
    )


@router.post("/reverse-geocode", response_model=GeocodeResponse)
async def reverse_geocode(
    body: ReverseGeocodeRequest,
    geocoder: GeocodingClient = Depends(get_geocoding_client),
) -> GeocodeResponse:
    """Resolve coordinates to an address. Degraded "lat, lng" results are still 200."""
    if body.lat is None or body.lng is None:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")

    coordinates = _to_coordinates(body)
    if coordinates is None:
        raise HTTPException(status_code=400, detail="Invalid coordinates")

    try:
        result = await geocoder.reverse_geocode(coordinates)
    except Exception:
        logger.exception("Reverse geocoding error")
        raise HTTPException(status_code=500, detail="Reverse geocoding failed")

    if result is None:
        raise HTTPException(status_code=404, detail="No address found for these coordinates")

    return GeocodeResponse(
        result=GeocodePayload(
            coordinates=result.coordinates,
            address=result.address,
            place_id=result.place_id,
        )
    )


@router.post("/distance", response_model=DistanceResponse)
def calculate_distance(body: DistanceRequest) -> DistanceResponse:
    """Great-circle distance in km between two points."""
    points = (body.from_, body.to)
    if any(p is None or p.lat is None or p.lng is None for p in points):
        raise HTTPException(status_code=400, detail="Both from and to coordinates are required")

    origin, destination = (_to_coordinates(p) for p in points)
    if origin is None or destination is None:
        raise HTTPException(status_code=400, detail="Invalid coordinates provided")

    try:
        result = geo.calculate_distance(origin, destination)
    except Exception:
        logger.exception("Distance calculation error")
        raise HTTPException(status_code=500, detail="Distance calculation failed")

    return DistanceResponse(
        from_=origin,
        to=destination,
        distance=result.distance,
        unit=result.unit,
    )


@router.post("/", response_model=LocationUpsertResponse)
async def save_business_location(
    body: LocationUpsertRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    geocoder: GeocodingClient = Depends(get_geocoding_client),
) -> LocationUpsertResponse:
    """
    Create or update the location of a business owned by the caller.

    When coordinates are omitted the address is geocoded. A business has at most
    one location; repeated calls update it in place.
    """
    if not body.business_id or not body.address:
        raise HTTPException(status_code=400, detail="Business ID and address are required")

    try:
        business = db.query(Business).filter(Business.id == body.business_id).first()
        if not business:
            raise HTTPException(status_code=404, detail="Business not found")
        if business.owner_id != current_user.id:
            raise HTTPException(status_code=403, detail="You can only manage locations for your own businesses")

        if isinstance(body.address, str):
            street, city, postal_code, country = body.address, "", "", "Netherlands"
            formatted = body.address
        else:
            street = body.address.street
            city = body.address.city
            postal_code = body.address.postal_code
            country = body.address.country
            formatted = None

        if body.coordinates is not None:
            coordinates = _to_coordinates(body.coordinates)
            if coordinates is None:
                raise HTTPException(status_code=400, detail="Invalid coordinates provided")
            source = "manual"
        else:
            query = formatted or f"{street}, {city} {postal_code}, {country}"
            geocoded = await geocoder.geocode_address(query)
            if geocoded is None:
                raise HTTPException(status_code=400, detail="Unable to geocode the provided address")
            coordinates = geocoded.coordinates
            source = "google_places"

        location = upsert_location(
            db,
            business_id=business.id,
            name=body.name or business.name,
            lat=coordinates.lat,
            lng=coordinates.lng,
            street=street,
            city=city,
            postal_code=postal_code,
            country=country,
            formatted_address=formatted,
            radius=body.radius,
            source=source,
        )
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        logger.exception(f"Error saving location for business_id={body.business_id}")
        raise HTTPException(status_code=500, detail="Failed to save location")

    return LocationUpsertResponse(location=LocationRead.model_validate(location))


@router.get("/business/{business_id}", response_model=BusinessLocationsResponse)
def business_locations(business_id: UUID, db: Session = Depends(get_db)) -> BusinessLocationsResponse:
    """Verified locations of one business, newest first."""
    try:
        locations = (
            db.query(Location)
            .filter(Location.business_id == business_id, Location.verified.is_(True))
            .order_by(Location.created_at.desc())
            .all()
        )
        items = [BusinessLocation.model_validate(location) for location in locations]
    except Exception:
        logger.exception(f"Error fetching locations for business_id={business_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch locations")

    return BusinessLocationsResponse(count=len(items), locations=items)


@router.get("/bounds", response_model=BoundsResponse)
def locations_in_bounds(
    sw_lat: Optional[str] = Query(None),
    sw_lng: Optional[str] = Query(None),
    ne_lat: Optional[str] = Query(None),
    ne_lng: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    limit: int = Query(settings.bounds_default_limit, ge=1, le=settings.bounds_max_results),
    db: Session = Depends(get_db),
) -> BoundsResponse:
    """Verified locations inside a southwest/northeast box, newest first, capped at `limit`."""
    if not sw_lat or not sw_lng or not ne_lat or not ne_lng:
        raise HTTPException(status_code=400, detail="Bounding box coordinates are required")

    southwest = {"lat": _parse_coordinate(sw_lat), "lng": _parse_coordinate(sw_lng)}
    northeast = {"lat": _parse_coordinate(ne_lat), "lng": _parse_coordinate(ne_lng)}
    if not geo.is_valid_coordinates(southwest) or not geo.is_valid_coordinates(northeast):
        raise HTTPException(status_code=400, detail="Invalid coordinates provided")
    bounds = Viewport(southwest=Coordinates(**southwest), northeast=Coordinates(**northeast))

    try:
        hits = (
            LocationPipeline()
            .within_box(bounds.southwest, bounds.northeast)
            .lookup_business()
            .unwind()
            .match_category(category)
            .limit(limit)
            .run(db)
        )
        locations = [
            BoundsLocation(
                id=hit.location.id,
                name=hit.location.name,
                position=hit.location.coordinates,
                business=BusinessSummary(
                    id=hit.business.id,
                    name=hit.business.name,
                    category=hit.business.category,
                    rating=hit.business.rating,
                ),
            )
            for hit in hits
        ]
    except Exception:
        logger.exception("Error fetching locations within bounds")
        raise HTTPException(status_code=500, detail="Failed to fetch locations")

    return BoundsResponse(bounds=bounds, count=len(locations), locations=locations)
