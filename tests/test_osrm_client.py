import httpx
import pytest

from schoolroute.errors import ProviderTimeoutError, RouteComputationError
from schoolroute.models.domain import GeoPoint
from schoolroute.services.routing import osrm_client as osrm_module
from schoolroute.services.routing.osrm_client import OSRMClient

DEPOT = GeoPoint(21.5, 39.2)
STOPS = [GeoPoint(21.51, 39.21), GeoPoint(21.52, 39.22)]


def _client(handler, **kwargs):
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("backoff_seconds", 0.0)
    return OSRMClient(base_url="http://osrm.local/", profile="driving", transport=httpx.MockTransport(handler), **kwargs)


def test_round_trip_uses_trip_service_and_maps_visiting_order():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "code": "Ok",
                # Input 0 is the depot; stop 1 is visited before stop 0.
                "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 2}, {"waypoint_index": 1}],
                "trips": [
                    {
                        "geometry": "encoded",
                        "legs": [
                            {"distance": 1500.0, "duration": 180.0},
                            {"distance": 1400.0, "duration": 170.0},
                            {"distance": 3000.0, "duration": 320.0},
                        ],
                    }
                ],
            },
        )

    route = _client(handler).multi_stop_route(DEPOT, DEPOT, STOPS, optimize_order=True)

    assert route.ok
    assert route.order == [1, 0]
    assert [leg.duration_seconds for leg in route.legs] == [180.0, 170.0, 320.0]
    assert route.legs[0].end_location == STOPS[1]
    assert route.geometry == "encoded"
    request = seen[0]
    assert request.url.path == "/trip/v1/driving/39.200000,21.500000;39.210000,21.510000;39.220000,21.520000"
    assert request.url.params["roundtrip"] == "true"
    assert request.url.params["source"] == "first"
    assert request.url.params["destination"] == "any"


def test_fixed_order_uses_route_service():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        legs = [{"distance": 100.0, "duration": 10.0}] * 3
        return httpx.Response(200, json={"code": "Ok", "routes": [{"geometry": "g", "legs": legs}]})

    route = _client(handler).multi_stop_route(DEPOT, DEPOT, STOPS, optimize_order=False)

    assert route.order == [0, 1]
    assert len(route.legs) == 3
    assert seen[0].url.path.startswith("/route/v1/driving/")


def test_osrm_error_code_is_returned_as_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "NoTrips", "message": "No trip visiting all destinations possible."})

    route = _client(handler).multi_stop_route(DEPOT, DEPOT, STOPS)

    assert not route.ok
    assert route.status == "NoTrips"
    assert route.order == []


def test_point_to_point_eta():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 600.0, "distance": 8000.0}]})

    eta = _client(handler).point_to_point_eta(STOPS[0], DEPOT)

    assert eta.ok
    assert (eta.duration_seconds, eta.distance_meters) == (600.0, 8000.0)


def test_exhausted_timeouts_raise_provider_timeout():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderTimeoutError):
        _client(handler, max_retries=1).point_to_point_eta(STOPS[0], DEPOT)
    assert len(calls) == 2


def test_server_errors_are_retried_then_raised():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(RouteComputationError) as excinfo:
        _client(handler, max_retries=2).point_to_point_eta(STOPS[0], DEPOT)
    assert not isinstance(excinfo.value, ProviderTimeoutError)
    assert len(calls) == 3


def test_retry_recovers_after_transient_failure():
    responses = iter(
        [
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 60.0, "distance": 500.0}]}),
        ]
    )

    eta = _client(lambda request: next(responses), max_retries=1).point_to_point_eta(STOPS[0], DEPOT)

    assert eta.duration_seconds == 60.0


def test_missing_base_url_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(osrm_module.settings, "osrm_base_url", None)
    with pytest.raises(ValueError):
        OSRMClient()


def test_health_check_without_url_is_unhealthy(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(osrm_module.settings, "osrm_base_url", None)
    assert osrm_module.check_health() is False
