"""Request/response schemas for the /locations endpoints."""

from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.geo import AddressComponents, Coordinates, Viewport


class CoordinatesInput(BaseModel):
    """Loose lat/lng pair from a request body; presence and range are checked by the route."""
    lat: Optional[float] = None
    lng: Optional[float] = None


class StructuredAddress(BaseModel):
    street: str = ""
    city: str = ""
    postal_code: str = Field("", alias="postalCode")
    country: str = "Netherlands"

    model_config = ConfigDict(populate_by_name=True)


class GeocodeRequest(BaseModel):
    address: Optional[str] = None


class ReverseGeocodeRequest(CoordinatesInput):
    pass


class DistanceRequest(BaseModel):
    from_: Optional[CoordinatesInput] = Field(None, alias="from")
    to: Optional[CoordinatesInput] = None

    model_config = ConfigDict(populate_by_name=True)


class LocationUpsertRequest(BaseModel):
    business_id: Optional[UUID] = Field(None, alias="businessId")
    address: Optional[Union[str, StructuredAddress]] = None
    coordinates: Optional[CoordinatesInput] = None
    name: Optional[str] = None
    radius: Optional[float] = Field(None, ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)


class BusinessSummary(BaseModel):
    id: UUID
    name: str
    category: Optional[str] = None
    rating: Optional[float] = None


class NearbyBusiness(BusinessSummary):
    is_verified: bool = False
    phone: Optional[str] = None
    website: Optional[str] = None
    is_open: bool = False


class NearbyLocation(BaseModel):
    id: UUID
    name: str
    position: Coordinates
    address: str
    distance: float  # meters
    business: NearbyBusiness


class NearbyResponse(BaseModel):
    success: bool = True
    count: int
    center: Coordinates
    radius: int
    results: list[NearbyLocation]


class GeocodePayload(BaseModel):
    coordinates: Coordinates
    address: AddressComponents
    place_id: Optional[str] = None
    viewport: Optional[Viewport] = None


class GeocodeResponse(BaseModel):
    success: bool = True
    result: GeocodePayload


class DistanceResponse(BaseModel):
    success: bool = True
    from_: Coordinates = Field(alias="from")
    to: Coordinates
    distance: float
    unit: str

    model_config = ConfigDict(populate_by_name=True)


class LocationRead(BaseModel):
    id: UUID
    business_id: UUID
    name: str
    coordinates: Coordinates
    address: AddressComponents
    radius: float
    verified: bool

    model_config = ConfigDict(from_attributes=True)


class LocationUpsertResponse(BaseModel):
    success: bool = True
    location: LocationRead


class BusinessLocation(BaseModel):
    id: UUID
    name: str
    coordinates: Coordinates
    address: AddressComponents
    radius: float
    verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BusinessLocationsResponse(BaseModel):
    success: bool = True
    count: int
    locations: list[BusinessLocation]


class BoundsLocation(BaseModel):
    id: UUID
    name: str
    position: Coordinates
    business: BusinessSummary


class BoundsResponse(BaseModel):
    success: bool = True
    bounds: Viewport
    count: int
    locations: list[BoundsLocation]
