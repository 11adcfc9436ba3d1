"""Tests for GeocodingClient: provider parsing, status handling and degraded mode."""

import asyncio

import httpx
import pytest

from app.schemas.geo import Coordinates, NearbySearchOptions
from app.services.geocoding_client import (
    FallbackPolicy,
    GeocodingClient,
    GeocodingConfig,
    parse_address_components,
)

DAM_SQUARE = Coordinates(lat=52.3731, lng=4.8926)

GEOCODE_OK = {
    "status": "OK",
    "results": [
        {
            "place_id": "ChIJ-dam",
            "formatted_address": "Dam 1, 1012 JS Amsterdam, Netherlands",
            "geometry": {
                "location": {"lat": 52.3731, "lng": 4.8926},
                "viewport": {
                    "northeast": {"lat": 52.3745, "lng": 4.8940},
                    "southwest": {"lat": 52.3718, "lng": 4.8912},
                },
            },
            "address_components": [
                {"long_name": "1", "types": ["street_number"]},
                {"long_name": "Dam", "types": ["route"]},
                {"long_name": "Amsterdam", "types": ["locality", "political"]},
                {"long_name": "1012 JS", "types": ["postal_code"]},
                {"long_name": "Netherlands", "types": ["country", "political"]},
            ],
        }
    ],
}


def make_client(handler, api_key="test-key") -> GeocodingClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeocodingClient(GeocodingConfig(api_key=api_key), http_client=http_client)


def json_handler(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)
    return handler


def test_parse_address_components_concatenates_street():
    address = parse_address_components(
        GEOCODE_OK["results"][0]["address_components"], "Dam 1, 1012 JS Amsterdam, Netherlands"
    )
    assert address.street == "1 Dam"
    assert address.city == "Amsterdam"
    assert address.postal_code == "1012 JS"
    assert address.country == "Netherlands"
    assert address.formatted == "Dam 1, 1012 JS Amsterdam, Netherlands"


def test_parse_address_components_uses_admin_area_as_city():
    address = parse_address_components(
        [{"long_name": "Haarlemmermeer", "types": ["administrative_area_level_2"]}], None
    )
    assert address.city == "Haarlemmermeer"
    assert address.street is None


def test_geocode_address_ok():
    seen = []
    client = make_client(json_handler(GEOCODE_OK, seen=seen))

    result = asyncio.run(client.geocode_address("Dam 1, Amsterdam"))

    assert result.coordinates == DAM_SQUARE
    assert result.place_id == "ChIJ-dam"
    assert result.address.city == "Amsterdam"
    assert result.viewport.northeast.lat == 52.3745
    assert seen[0].url.params["address"] == "Dam 1, Amsterdam"
    assert seen[0].url.params["key"] == "test-key"


def test_geocode_address_zero_results_returns_none():
    client = make_client(json_handler({"status": "ZERO_RESULTS", "results": []}))
    assert asyncio.run(client.geocode_address("nowhere at all")) is None


def test_geocode_address_http_error_uses_fallback():
    client = make_client(json_handler({"error": "boom"}, status_code=500))

    result = asyncio.run(client.geocode_address("Some street 1"))

    assert result.coordinates == Coordinates(lat=52.3676, lng=4.9041)
    assert result.address.formatted == "Some street 1"
    assert result.address.city == "Amsterdam"
    assert result.address.country == "Netherlands"


def test_geocode_address_transport_error_uses_fallback():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = asyncio.run(make_client(handler).geocode_address("Some street 1"))

    assert result.coordinates == Coordinates(lat=52.3676, lng=4.9041)


def test_geocode_without_api_key_never_calls_provider():
    seen = []
    client = make_client(json_handler(GEOCODE_OK, seen=seen), api_key=None)

    result = asyncio.run(client.geocode_address("Dam 1"))

    assert seen == []
    assert result.coordinates == Coordinates(lat=52.3676, lng=4.9041)
    assert result.address.formatted == "Dam 1"


def test_custom_fallback_policy():
    fallback = FallbackPolicy(coordinates=Coordinates(lat=52.0907, lng=5.1214), city="Utrecht")
    client = GeocodingClient(GeocodingConfig(api_key=None), fallback=fallback)

    result = asyncio.run(client.geocode_address("Oudegracht"))

    assert result.coordinates.lat == 52.0907
    assert result.address.city == "Utrecht"


def test_reverse_geocode_ok():
    seen = []
    client = make_client(json_handler(GEOCODE_OK, seen=seen))

    result = asyncio.run(client.reverse_geocode(DAM_SQUARE))

    assert result.coordinates == DAM_SQUARE
    assert result.address.formatted == "Dam 1, 1012 JS Amsterdam, Netherlands"
    assert seen[0].url.params["latlng"] == "52.3731,4.8926"


@pytest.mark.parametrize(
    "handler",
    [
        json_handler({"status": "ZERO_RESULTS", "results": []}),
        json_handler({}, status_code=503),
    ],
)
def test_reverse_geocode_degrades_to_coordinates(handler):
    result = asyncio.run(make_client(handler).reverse_geocode(DAM_SQUARE))

    assert result is not None
    assert result.coordinates == DAM_SQUARE
    assert result.address.formatted == "52.3731, 4.8926"


def test_search_nearby_filters_by_rating_and_normalizes():
    payload = {
        "status": "OK",
        "results": [
            {
                "place_id": "p1",
                "name": "Good Bakery",
                "vicinity": "Dam 2",
                "rating": 4.5,
                "types": ["bakery"],
                "geometry": {"location": {"lat": 52.373, "lng": 4.893}},
                "opening_hours": {"open_now": True},
                "photos": [{"photo_reference": "ref1", "width": 400, "height": 300}],
            },
            {
                "place_id": "p2",
                "name": "Meh Bakery",
                "rating": 3.1,
                "geometry": {"location": {"lat": 52.374, "lng": 4.894}},
            },
        ],
    }
    seen = []
    client = make_client(json_handler(payload, seen=seen))

    places = asyncio.run(
        client.search_nearby(
            NearbySearchOptions(coordinates=DAM_SQUARE, radius=800, type="bakery", min_rating=4, open_now=True)
        )
    )

    assert [p.place_id for p in places] == ["p1"]
    assert places[0].open_now is True
    assert places[0].photos[0].reference == "ref1"
    params = seen[0].url.params
    assert params["radius"] == "800"
    assert params["type"] == "bakery"
    assert params["opennow"] == "true"


def test_search_nearby_returns_empty_on_failure():
    client = make_client(json_handler({"status": "REQUEST_DENIED"}))
    assert asyncio.run(client.search_nearby(NearbySearchOptions(coordinates=DAM_SQUARE))) == []

    offline = GeocodingClient(GeocodingConfig(api_key=None))
    assert asyncio.run(offline.search_nearby(NearbySearchOptions(coordinates=DAM_SQUARE))) == []


def test_get_location_info():
    info = asyncio.run(make_client(json_handler(GEOCODE_OK)).get_location_info(DAM_SQUARE))
    assert info.country == "Netherlands"
    assert info.city == "Amsterdam"


def test_api_key_is_not_logged(caplog):
    client = make_client(json_handler(GEOCODE_OK), api_key="super-secret")
    with caplog.at_level("DEBUG", logger="app.services.geocoding_client"):
        asyncio.run(client.geocode_address("Dam 1"))
    assert "super-secret" not in caplog.text
    assert "key=REDACTED" in caplog.text
