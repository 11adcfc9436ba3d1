"""Async HTTP client for the /locations API."""

import logging
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.schemas.geo import Coordinates, Viewport
from app.schemas.location import (
    BoundsResponse,
    BusinessLocationsResponse,
    DistanceResponse,
    GeocodeResponse,
    LocationUpsertResponse,
    NearbyLocation,
    NearbyResponse,
    StructuredAddress,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0
PLACE_SEARCH_RADIUS_M = 10000
PLACE_SEARCH_LIMIT = 20


class MapsAPIError(Exception):
    """Non-2xx response (or transport failure) from the locations API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LocationSearchParams(BaseModel):
    radius: Optional[int] = None
    category: Optional[str] = None
    limit: Optional[int] = None


class MapsAPI:
    """
    Client for the locations endpoints.

    Example:
        async with httpx.AsyncClient() as http:
            api = MapsAPI("http://localhost:8000", http_client=http)
            nearby = await api.search_nearby(Coordinates(lat=52.37, lng=4.90))
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = f"{base_url.rstrip('/')}{settings.api_v1_prefix}/locations"
        self.token = token
        self.timeout = timeout
        self._http_client = http_client

    def update_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self, require_auth: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if require_auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        require_auth: bool = False,
    ) -> dict:
        url = f"{self.base_url}{endpoint}"
        kwargs = {"params": params, "json": json, "headers": self._headers(require_auth)}
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise MapsAPIError(f"Network error: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("detail") if isinstance(body, dict) else None
            if not isinstance(message, str):
                message = f"HTTP {response.status_code}"
            raise MapsAPIError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise MapsAPIError("Invalid response from server", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise MapsAPIError("Invalid response from server", status_code=response.status_code)
        return data

    async def search_nearby(
        self, location: Coordinates, params: Optional[LocationSearchParams] = None
    ) -> NearbyResponse:
        params = params or LocationSearchParams()
        query: dict[str, Any] = {"lat": location.lat, "lng": location.lng}
        if params.radius:
            query["radius"] = params.radius
        if params.category:
            query["category"] = params.category
        if params.limit:
            query["limit"] = params.limit
        data = await self._request("GET", "/nearby", params=query)
        return NearbyResponse.model_validate(data)

    async def geocode_address(self, address: str) -> GeocodeResponse:
        data = await self._request("POST", "/geocode", json={"address": address})
        return GeocodeResponse.model_validate(data)

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResponse:
        data = await self._request("POST", "/reverse-geocode", json=coordinates.model_dump())
        return GeocodeResponse.model_validate(data)

    async def calculate_distance(self, origin: Coordinates, destination: Coordinates) -> DistanceResponse:
        data = await self._request(
            "POST", "/distance", json={"from": origin.model_dump(), "to": destination.model_dump()}
        )
        return DistanceResponse.model_validate(data)

    async def create_location(
        self,
        business_id: str,
        address: Union[str, StructuredAddress],
        coordinates: Optional[Coordinates] = None,
        name: Optional[str] = None,
        radius: Optional[float] = None,
    ) -> LocationUpsertResponse:
        payload: dict[str, Any] = {
            "business_id": str(business_id),
            "address": address if isinstance(address, str) else address.model_dump(),
        }
        if coordinates is not None:
            payload["coordinates"] = coordinates.model_dump()
        if name:
            payload["name"] = name
        if radius is not None:
            payload["radius"] = radius
        data = await self._request("POST", "/", json=payload, require_auth=True)
        return LocationUpsertResponse.model_validate(data)

    async def get_business_locations(self, business_id: str) -> BusinessLocationsResponse:
        data = await self._request("GET", f"/business/{business_id}")
        return BusinessLocationsResponse.model_validate(data)

    async def get_locations_in_bounds(
        self, bounds: Viewport, category: Optional[str] = None
    ) -> BoundsResponse:
        query: dict[str, Any] = {
            "sw_lat": bounds.southwest.lat,
            "sw_lng": bounds.southwest.lng,
            "ne_lat": bounds.northeast.lat,
            "ne_lng": bounds.northeast.lng,
        }
        if category:
            query["category"] = category
        data = await self._request("GET", "/bounds", params=query)
        return BoundsResponse.model_validate(data)

    async def search_places(self, query: str, location: Optional[Coordinates] = None) -> list[NearbyLocation]:
        """Nearby search around location, filtered by name / business name / category text."""
        if location is None:
            logger.warning("No location provided for place search")
            return []

        nearby = await self.search_nearby(
            location, LocationSearchParams(radius=PLACE_SEARCH_RADIUS_M, limit=PLACE_SEARCH_LIMIT)
        )
        needle = query.lower()
        return [
            result
            for result in nearby.results
            if needle in result.name.lower()
            or needle in result.business.name.lower()
            or needle in (result.business.category or "").lower()
        ]
