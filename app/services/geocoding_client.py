"""Google Maps geocoding / places client with a degraded mode.

The client never propagates provider failures: geocoding falls back to the
configured FallbackPolicy, reverse geocoding to a "lat, lng" address, and
nearby search to an empty list. Callers branch on the returned values.
"""

import logging
import re
import traceback
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core import geo
from app.core.config import settings
from app.schemas.geo import (
    AddressComponents,
    Coordinates,
    GeocodeResult,
    LocationInfo,
    NearbySearchOptions,
    PlacePhoto,
    PlaceResult,
    Viewport,
)

logger = logging.getLogger(__name__)

GOOGLE_MAPS_BASE = "https://maps.googleapis.com/maps/api"
REQUEST_TIMEOUT = 10.0


class ProviderError(Exception):
    """Transport or HTTP-level failure talking to the geocoding provider."""


@dataclass(frozen=True)
class GeocodingConfig:
    api_key: str | None = None
    base_url: str = GOOGLE_MAPS_BASE
    timeout: float = REQUEST_TIMEOUT

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class FallbackPolicy:
    """Location handed out when the provider cannot answer a forward geocode."""
    coordinates: Coordinates = field(default_factory=lambda: Coordinates(lat=52.3676, lng=4.9041))
    city: str | None = "Amsterdam"
    country: str | None = "Netherlands"

    def geocode(self, address: str) -> GeocodeResult:
        return GeocodeResult(
            coordinates=self.coordinates,
            address=AddressComponents(formatted=address, city=self.city, country=self.country),
        )

    @staticmethod
    def reverse(coordinates: Coordinates) -> GeocodeResult:
        return GeocodeResult(
            coordinates=coordinates,
            address=AddressComponents(formatted=f"{coordinates.lat}, {coordinates.lng}"),
        )


def _redact_api_key(url: str) -> str:
    """Remove API key from URL for safe logging."""
    return re.sub(r'key=[^&]+', 'key=REDACTED', str(url))


def parse_address_components(components: list[dict] | None, formatted_address: str | None) -> AddressComponents:
    """
    Flatten Google address_components into a postal address.

    street_number and route are concatenated into street (then trimmed);
    locality / administrative_area_level_2 map to city.
    """
    street = ""
    city = None
    postal_code = None
    country = None

    for component in components or []:
        types = component.get("types") or []
        long_name = component.get("long_name") or ""
        if "street_number" in types or "route" in types:
            street = f"{street} {long_name}"
        elif "locality" in types or "administrative_area_level_2" in types:
            city = long_name
        elif "postal_code" in types:
            postal_code = long_name
        elif "country" in types:
            country = long_name

    return AddressComponents(
        street=street.strip() or None,
        city=city,
        postal_code=postal_code,
        country=country,
        formatted=formatted_address,
    )


def _parse_viewport(geometry: dict) -> Viewport | None:
    viewport = geometry.get("viewport")
    if not viewport:
        return None
    try:
        return Viewport(
            northeast=Coordinates(**viewport["northeast"]),
            southwest=Coordinates(**viewport["southwest"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning(f"Ignoring malformed viewport: {viewport}")
        return None


def _normalize_place(place: dict) -> PlaceResult:
    location = place.get("geometry", {}).get("location", {})
    return PlaceResult(
        place_id=place.get("place_id", ""),
        name=place.get("name", ""),
        coordinates=Coordinates(lat=location.get("lat", 0.0), lng=location.get("lng", 0.0)),
        address=place.get("vicinity"),
        rating=place.get("rating"),
        price_level=place.get("price_level"),
        types=place.get("types", []),
        open_now=(place.get("opening_hours") or {}).get("open_now"),
        photos=[
            PlacePhoto(reference=p["photo_reference"], width=p.get("width"), height=p.get("height"))
            for p in place.get("photos", [])
            if p.get("photo_reference")
        ],
    )


class GeocodingClient:
    """
    Geocoding, reverse geocoding and nearby search against the Google Maps web APIs.

    Credentials, base URL and the HTTP client are explicit constructor arguments;
    pass an httpx.AsyncClient to share a connection pool (or a MockTransport in tests).
    """

    def __init__(
        self,
        config: GeocodingConfig,
        http_client: httpx.AsyncClient | None = None,
        fallback: FallbackPolicy | None = None,
    ):
        self.config = config
        self.fallback = fallback or FallbackPolicy()
        self._http_client = http_client
        if not config.has_credentials:
            logger.warning("Google Maps API key not configured - geocoding runs in fallback mode")

    async def _call_google_api(self, path: str, params: dict) -> dict:
        """Call a Google Maps endpoint. Returns parsed JSON or raises ProviderError."""
        url = f"{self.config.base_url.rstrip('/')}/{path}"
        params = {**params, "key": self.config.api_key}
        safe_url = _redact_api_key(str(httpx.URL(url, params=params)))

        logger.info(f"Geocoding service calling: {safe_url}")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, params=params, timeout=self.config.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Google API request failed: {_redact_api_key(str(e))}") from e

        truncated_body = response.text[:500] if response.text else "(empty)"
        logger.debug(f"Google API response: status={response.status_code}, body_preview={truncated_body}")

        if response.status_code != 200:
            raise ProviderError(f"Google API HTTP {response.status_code}: {truncated_body}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Google API returned invalid JSON") from e

    async def geocode_address(self, address: str) -> GeocodeResult | None:
        """
        Resolve free text to coordinates.

        Returns None when the provider answers but finds nothing (e.g. ZERO_RESULTS).
        Missing credentials or provider errors yield the fallback location instead.
        """
        if not self.config.has_credentials:
            logger.warning("Cannot geocode without Google Maps API key")
            return self._fallback_geocode(address)

        try:
            data = await self._call_google_api("geocode/json", {"address": address})
        except ProviderError as e:
            logger.error(f"Geocoding error: {e}\n{traceback.format_exc()}")
            return self._fallback_geocode(address)

        status = data.get("status", "UNKNOWN_ERROR")
        results = data.get("results") or []
        if status == "OK" and results:
            result = results[0]
            geometry = result.get("geometry", {})
            location = geometry.get("location", {})
            try:
                coordinates = Coordinates(lat=location["lat"], lng=location["lng"])
            except (KeyError, TypeError, ValueError):
                logger.error(f"Geocoding result without usable location for: {address}")
                return self._fallback_geocode(address)
            return GeocodeResult(
                coordinates=coordinates,
                address=parse_address_components(
                    result.get("address_components"), result.get("formatted_address")
                ),
                place_id=result.get("place_id"),
                viewport=_parse_viewport(geometry),
            )

        logger.warning(f"Geocoding failed for address: {address} - Status: {status}")
        return None

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        """Resolve coordinates to an address. Always returns a renderable result."""
        if not self.config.has_credentials:
            logger.warning("Cannot reverse geocode without Google Maps API key")
            return self.fallback.reverse(coordinates)

        try:
            data = await self._call_google_api(
                "geocode/json", {"latlng": f"{coordinates.lat},{coordinates.lng}"}
            )
        except ProviderError as e:
            logger.error(f"Reverse geocoding error: {e}\n{traceback.format_exc()}")
            return self.fallback.reverse(coordinates)

        results = data.get("results") or []
        if data.get("status") == "OK" and results:
            result = results[0]
            return GeocodeResult(
                coordinates=coordinates,
                address=parse_address_components(
                    result.get("address_components"), result.get("formatted_address")
                ),
                place_id=result.get("place_id"),
            )

        return self.fallback.reverse(coordinates)

    async def search_nearby(self, options: NearbySearchOptions) -> list[PlaceResult]:
        """Provider places-nearby search. Empty list when unavailable."""
        if not self.config.has_credentials:
            logger.warning("Cannot search nearby without Google Maps API key")
            return []

        params: dict[str, Any] = {
            "location": f"{options.coordinates.lat},{options.coordinates.lng}",
            "radius": options.radius,
        }
        if options.type:
            params["type"] = options.type
        if options.keyword:
            params["keyword"] = options.keyword
        if options.open_now:
            params["opennow"] = "true"

        try:
            data = await self._call_google_api("place/nearbysearch/json", params)
        except ProviderError as e:
            logger.error(f"Nearby search error: {e}\n{traceback.format_exc()}")
            return []

        if data.get("status") != "OK":
            return []

        places = []
        for place in data.get("results", []):
            if options.min_rating and (place.get("rating") or 0) < options.min_rating:
                continue
            places.append(_normalize_place(place))
        return places

    async def get_location_info(self, coordinates: Coordinates) -> LocationInfo:
        """Country / city summary for a point, via reverse geocoding."""
        result = await self.reverse_geocode(coordinates)
        return LocationInfo(
            country=result.address.country,
            city=result.address.city,
            region=result.address.city,
        )

    def is_valid_coordinates(self, coordinates: Any) -> bool:
        return geo.is_valid_coordinates(coordinates)

    def generate_bounds(self, center: Coordinates, radius_km: float) -> Viewport:
        return geo.generate_bounds(center, radius_km)

    def _fallback_geocode(self, address: str) -> GeocodeResult:
        logger.info(f"Using fallback geocoding for: {address}")
        return self.fallback.geocode(address)


def build_geocoding_client(http_client: httpx.AsyncClient | None = None) -> GeocodingClient:
    """Construct a client from application settings."""
    return GeocodingClient(
        GeocodingConfig(
            api_key=settings.google_maps_api_key,
            base_url=settings.google_maps_base_url,
            timeout=settings.geocoding_timeout_seconds,
        ),
        http_client=http_client,
        fallback=FallbackPolicy(
            coordinates=Coordinates(lat=settings.fallback_lat, lng=settings.fallback_lng),
            city=settings.fallback_city,
            country=settings.fallback_country,
        ),
    )


def get_geocoding_client() -> GeocodingClient:
    """FastAPI dependency; override in tests via app.dependency_overrides."""
    return build_geocoding_client()
