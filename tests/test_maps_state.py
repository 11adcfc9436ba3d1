"""Tests for MapsController: location handling, search lifecycle and notifications."""

import asyncio
import uuid
from unittest.mock import AsyncMock

import httpx
import pytest

from app.client.maps_api import LocationSearchParams, MapsAPI, MapsAPIError
from app.client.maps_state import LOCATION_REQUIRED_MESSAGE, MapsController, MapsState
from app.client.position import (
    PermissionState,
    PositionError,
    PositionErrorCode,
    PositionOptions,
)
from app.schemas.geo import Coordinates
from app.schemas.location import DistanceResponse, GeocodePayload, GeocodeResponse, NearbyResponse

AMSTERDAM = Coordinates(lat=52.3676, lng=4.9041)
DAM_SQUARE = Coordinates(lat=52.3731, lng=4.8926)
UTRECHT = Coordinates(lat=52.0907, lng=5.1214)


class FakePositionProvider:
    def __init__(self, position=DAM_SQUARE, error=None, permission=PermissionState.PROMPT):
        self.position = position
        self.error = error
        self.permission = permission
        self.requested_options = []
        self.watches = {}
        self.cleared = []

    async def permission_state(self):
        return self.permission

    async def get_current_position(self, options: PositionOptions):
        self.requested_options.append(options)
        if self.error is not None:
            raise self.error
        return self.position

    def watch_position(self, on_position, on_error, options):
        watch_id = len(self.watches) + 1
        self.watches[watch_id] = (on_position, on_error, options)
        return watch_id

    def clear_watch(self, watch_id):
        self.cleared.append(watch_id)


def nearby_response(*names):
    return NearbyResponse(
        count=len(names),
        center=AMSTERDAM,
        radius=5000,
        results=[
            {
                "id": str(uuid.uuid4()),
                "name": name,
                "position": {"lat": 52.37, "lng": 4.89},
                "address": f"{name} street 1",
                "distance": 100 * (i + 1),
                "business": {"id": str(uuid.uuid4()), "name": name},
            }
            for i, name in enumerate(names)
        ],
    )


def make_controller(provider=None):
    api = AsyncMock(spec=MapsAPI)
    return MapsController(api, provider or FakePositionProvider()), api


def test_initial_state():
    controller, _ = make_controller()
    state = controller.state
    assert state == MapsState()
    assert state.user_location is None
    assert state.map_center == AMSTERDAM
    assert state.map_zoom == 12
    assert state.nearby_businesses == []
    assert state.has_location_permission is False


def test_get_current_location_success():
    provider = FakePositionProvider()
    controller, _ = make_controller(provider)
    snapshots = []
    controller.subscribe(snapshots.append)

    asyncio.run(controller.get_current_location())

    assert controller.state.user_location == DAM_SQUARE
    assert controller.state.map_center == DAM_SQUARE
    assert controller.state.is_location_loading is False
    assert controller.state.has_location_permission is True
    assert snapshots[0].is_location_loading is True
    assert provider.requested_options[0].timeout_ms == 10000
    assert provider.requested_options[0].maximum_age_ms == 60000


def test_get_current_location_denied():
    provider = FakePositionProvider(error=PositionError(PositionErrorCode.PERMISSION_DENIED))
    controller, _ = make_controller(provider)

    asyncio.run(controller.get_current_location())

    assert controller.state.location_error == "Location access denied by user"
    assert controller.state.has_location_permission is False
    assert controller.state.is_location_loading is False
    assert controller.state.user_location is None


def test_position_error_messages():
    assert PositionError(PositionErrorCode.POSITION_UNAVAILABLE).message == "Location information unavailable"
    assert PositionError(PositionErrorCode.TIMEOUT).message == "Location request timed out"


def test_location_tracking_is_idempotent():
    provider = FakePositionProvider()
    controller, _ = make_controller(provider)

    controller.start_location_tracking()
    controller.start_location_tracking()

    assert len(provider.watches) == 1
    on_position, on_error, options = provider.watches[1]
    assert options.timeout_ms == 15000
    assert options.maximum_age_ms == 30000

    on_position(UTRECHT)
    assert controller.state.user_location == UTRECHT
    # tracking updates do not move the map
    assert controller.state.map_center == AMSTERDAM

    on_error(PositionError(PositionErrorCode.TIMEOUT))
    assert controller.state.location_error == "Location request timed out"
    assert controller.state.has_location_permission is False

    controller.stop_location_tracking()
    controller.stop_location_tracking()
    assert provider.cleared == [1]
    assert controller.is_tracking is False


def test_search_nearby_requires_user_location():
    controller, api = make_controller()

    asyncio.run(controller.search_nearby())

    assert controller.state.search_error == LOCATION_REQUIRED_MESSAGE
    api.search_nearby.assert_not_called()


def test_search_nearby_uses_user_location_and_defaults():
    controller, api = make_controller()
    api.search_nearby.return_value = nearby_response("Bakery", "Cafe")

    async def scenario():
        await controller.get_current_location()
        await controller.search_nearby(LocationSearchParams(category="bakery"))

    asyncio.run(scenario())

    location, params = api.search_nearby.call_args.args
    assert location == DAM_SQUARE
    assert params.radius == 5000
    assert params.limit == 50
    assert params.category == "bakery"
    assert [b.name for b in controller.state.nearby_businesses] == ["Bakery", "Cafe"]
    assert controller.state.is_search_loading is False


def test_search_error_is_recorded():
    controller, api = make_controller()
    api.search_nearby.side_effect = MapsAPIError("Failed to fetch nearby locations", status_code=500)

    asyncio.run(controller.search_at(AMSTERDAM))

    assert controller.state.search_error == "Failed to fetch nearby locations"
    assert controller.state.is_search_loading is False



def test_malformed_server_response_is_recorded_not_raised():
    def handler(request):
        return httpx.Response(200, text="<html>proxy error</html>")

    api = MapsAPI("http://testserver/", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    controller = MapsController(api, FakePositionProvider())

    async def scenario():
        await controller.search_at(AMSTERDAM)
        return await controller.geocode_address("Dam 1")

    assert asyncio.run(scenario()) is None
    assert controller.state.search_error == "Invalid response from server"
    assert controller.state.is_search_loading is False


def test_cancelled_caller_resets_loading():
    controller, api = make_controller()

    async def scenario():
        started = asyncio.Event()

        async def slow_search(location, params):
            started.set()
            await asyncio.sleep(10)
            return nearby_response("Never")

        api.search_nearby.side_effect = slow_search
        search = asyncio.ensure_future(controller.search_at(AMSTERDAM))
        await started.wait()
        search.cancel()
        with pytest.raises(asyncio.CancelledError):
            await search

    asyncio.run(scenario())

    assert controller.state.is_search_loading is False
    assert controller.state.nearby_businesses == []


def test_newer_search_supersedes_older():
    """The slower, older search is cancelled and never writes its results."""
    controller, api = make_controller()

    async def scenario():
        started = asyncio.Event()

        async def fake_search(location, params):
            if location == AMSTERDAM:
                started.set()
                await asyncio.sleep(10)
                return nearby_response("Stale")
            return nearby_response("Fresh")

        api.search_nearby.side_effect = fake_search
        first = asyncio.ensure_future(controller.search_at(AMSTERDAM))
        await started.wait()
        await controller.search_at(UTRECHT)
        await first

    asyncio.run(scenario())

    assert [b.name for b in controller.state.nearby_businesses] == ["Fresh"]
    assert controller.state.is_search_loading is False
    assert controller.state.search_error is None


def test_close_cancels_search_and_tracking():
    provider = FakePositionProvider()
    controller, api = make_controller(provider)

    async def scenario():
        started = asyncio.Event()

        async def slow_search(location, params):
            started.set()
            await asyncio.sleep(10)
            return nearby_response("Never")

        api.search_nearby.side_effect = slow_search
        controller.start_location_tracking()
        search = asyncio.ensure_future(controller.search_at(AMSTERDAM))
        await started.wait()
        controller.close()
        await search

    asyncio.run(scenario())

    assert controller.state.nearby_businesses == []
    assert provider.cleared == [1]


def test_clear_search_and_map_setters():
    controller, _ = make_controller()
    selected = nearby_response("Bakery").results[0]

    controller.set_map_center(UTRECHT)
    controller.set_map_zoom(15)
    controller.select_business(selected)
    assert controller.state.map_center == UTRECHT
    assert controller.state.map_zoom == 15
    assert controller.state.selected_business == selected

    controller.clear_search()
    assert controller.state.selected_business is None
    assert controller.state.nearby_businesses == []
    assert controller.state.search_error is None


def test_geocode_address():
    controller, api = make_controller()
    api.geocode_address.return_value = GeocodeResponse(
        result=GeocodePayload(coordinates=DAM_SQUARE, address={"formatted": "Dam 1"})
    )
    assert asyncio.run(controller.geocode_address("Dam 1")) == DAM_SQUARE

    api.geocode_address.side_effect = MapsAPIError("Address not found", status_code=404)
    assert asyncio.run(controller.geocode_address("zzzz")) is None


def test_calculate_distance():
    controller, api = make_controller()
    assert asyncio.run(controller.calculate_distance(UTRECHT)) is None
    api.calculate_distance.assert_not_called()

    api.calculate_distance.return_value = DistanceResponse(
        from_=DAM_SQUARE, to=UTRECHT, distance=36.2, unit="km"
    )

    async def scenario():
        await controller.get_current_location()
        return await controller.calculate_distance(UTRECHT)

    assert asyncio.run(scenario()) == 36.2
    api.calculate_distance.assert_awaited_once_with(DAM_SQUARE, UTRECHT)

    api.calculate_distance.side_effect = MapsAPIError("Network error: down")
    assert asyncio.run(controller.calculate_distance(UTRECHT)) is None


def test_check_location_permission():
    provider = FakePositionProvider(permission=PermissionState.GRANTED)
    controller, _ = make_controller(provider)

    assert asyncio.run(controller.check_location_permission()) == PermissionState.GRANTED
    assert controller.state.has_location_permission is True

    provider.permission = PermissionState.DENIED
    asyncio.run(controller.check_location_permission())
    assert controller.state.has_location_permission is False


def test_unsubscribe_stops_notifications():
    controller, _ = make_controller()
    snapshots = []
    unsubscribe = controller.subscribe(snapshots.append)

    controller.set_map_zoom(10)
    unsubscribe()
    controller.set_map_zoom(11)

    assert [s.map_zoom for s in snapshots] == [10]
