"""Schemas for coordinates, addresses and geocoding results."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """A WGS84 point. Range checks live in `app.core.geo.is_valid_coordinates`."""
    lat: float
    lng: float

    model_config = ConfigDict(frozen=True)


class Viewport(BaseModel):
    """Northeast/southwest corner pair; also used for bounding boxes."""
    northeast: Coordinates
    southwest: Coordinates


class AddressComponents(BaseModel):
    """Flat postal address parsed from a provider response."""
    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    formatted: Optional[str] = None


class GeocodeResult(BaseModel):
    """Transient result of a geocode or reverse-geocode call (never persisted)."""
    coordinates: Coordinates
    address: AddressComponents
    place_id: Optional[str] = None
    accuracy: Optional[float] = None
    viewport: Optional[Viewport] = None


class DistanceResult(BaseModel):
    distance: float
    unit: Literal["km", "miles"] = "km"
    duration: Optional[float] = None


class LocationInfo(BaseModel):
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None


class NearbySearchOptions(BaseModel):
    """Options for a provider places-nearby search (radius in meters)."""
    coordinates: Coordinates
    radius: int = Field(1500, ge=1, le=50000)
    type: Optional[str] = None
    keyword: Optional[str] = None
    min_rating: Optional[float] = None
    open_now: bool = False


class PlacePhoto(BaseModel):
    reference: str
    width: Optional[int] = None
    height: Optional[int] = None


class PlaceResult(BaseModel):
    """Normalized place from the provider's nearby search."""
    place_id: str
    name: str
    coordinates: Coordinates
    address: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    types: list[str] = []
    open_now: Optional[bool] = None
    photos: list[PlacePhoto] = []
