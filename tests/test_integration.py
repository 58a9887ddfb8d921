from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from schoolroute.config import Settings
from schoolroute.container import build_container
from schoolroute.main import create_app
from schoolroute.models.domain import GeoPoint, Trip
from schoolroute.persistence.memory import InMemoryTripRepository
from schoolroute.services.geospatial import encode_polyline
from schoolroute.services.routing.models import STATUS_OK, MultiStopRoute, PointToPointEta, RouteLeg

T0 = datetime(2024, 9, 2, 7, 0, tzinfo=timezone.utc)
DEPOT = {"lat": 21.5, "lng": 39.2}


class DummyOSRM:
    """Visits stops in request order with ten-minute legs."""

    def multi_stop_route(self, origin, destination, waypoints, optimize_order=True):
        legs = [RouteLeg(distance_meters=2000.0, duration_seconds=600.0) for _ in range(len(waypoints) + 1)]
        geometry = encode_polyline([origin, *waypoints, destination])
        return MultiStopRoute(status=STATUS_OK, order=list(range(len(waypoints))), legs=legs, geometry=geometry)

    def point_to_point_eta(self, origin, destination):
        return PointToPointEta(status=STATUS_OK, duration_seconds=3600.0, distance_meters=30000.0)


class ServerClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


def _settings(**overrides):
    values = {"osrm_base_url": None, "supabase_url": None, "supabase_key": None, "alert_webhook_url": None}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def trips() -> InMemoryTripRepository:
    return InMemoryTripRepository()


@pytest.fixture
def clock() -> ServerClock:
    return ServerClock()


@pytest.fixture
def api_client(trips: InMemoryTripRepository, clock: ServerClock) -> TestClient:
    container = build_container(_settings(), provider=DummyOSRM(), trips=trips, clock=clock)
    return TestClient(create_app(container))


def _optimize(client: TestClient, **overrides):
    payload = {
        "driver_id": "D1",
        "school_id": "SCH1",
        "depot": DEPOT,
        "stops": [
            {"student_id": "S1", "lat": 21.51, "lng": 39.21},
            {"student_id": "S2", "lat": 21.52, "lng": 39.22, "address": "Street 2"},
        ],
        "scheduled_arrival": "2030-01-01T08:00:00Z",
    }
    payload.update(overrides)
    return client.post("/api/routes/optimize", json=payload)


def _ping(client: TestClient, clock: ServerClock, minutes: int, **extra):
    clock.now = T0 + timedelta(minutes=minutes)
    payload = {"driver_id": "D1", "lat": 21.5, "lng": 39.2}
    payload.update(extra)
    return client.post("/api/monitoring/drivers/location", json=payload)


def test_health(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}
    osrm = api_client.get("/api/health/osrm").json()
    assert osrm["healthy"] is False


def test_optimize_then_read_active_route(api_client: TestClient):
    response = _optimize(api_client)
    assert response.status_code == 200
    payload = response.json()
    assert payload["stop_order"] == ["S1", "S2"]
    assert [stop["sequence"] for stop in payload["stops"]] == [1, 2]
    assert payload["stops"][0]["estimated_arrival"].startswith("2030-01-01T07:40:00")
    assert payload["total_duration_minutes"] == 30.0

    active = api_client.get("/api/routes/D1/SCH1")
    assert active.status_code == 200
    assert active.json()["route_id"] == payload["route_id"]
    assert active.json()["regenerated"] is False

    staleness = api_client.get(f"/api/routes/{payload['route_id']}/staleness").json()
    assert staleness == {"route_id": payload["route_id"], "needs_regeneration": False}

    history = api_client.get("/api/routes/history/D1").json()
    assert [route["route_id"] for route in history["routes"]] == [payload["route_id"]]


def test_reoptimizing_keeps_one_active_route(api_client: TestClient):
    first = _optimize(api_client).json()
    second = _optimize(api_client).json()

    history = api_client.get("/api/routes/history/D1").json()["routes"]
    active = {route["route_id"]: route["active"] for route in history}
    assert active == {first["route_id"]: False, second["route_id"]: True}


def test_invalid_coordinates_are_bad_requests(api_client: TestClient):
    response = _optimize(api_client, depot={"lat": 123.0, "lng": 39.2})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_input"


def test_stop_without_location_is_a_bad_request(api_client: TestClient):
    response = _optimize(api_client, stops=[{"student_id": "S1"}])
    assert response.status_code == 400


def test_missing_route_is_not_found(api_client: TestClient):
    response = api_client.get("/api/routes/D9/SCH9")
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


def test_unconfigured_provider_is_a_gateway_error():
    client = TestClient(create_app(build_container(_settings())))
    response = _optimize(client)
    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "provider_error"


def test_gps_silence_raises_no_gps_alert(api_client: TestClient, clock: ServerClock):
    assert _ping(api_client, clock, 0).json()["no_gps_alert"] is None
    response = _ping(api_client, clock, 12)
    assert response.status_code == 200
    alert = response.json()["no_gps_alert"]
    assert alert["type"] == "no_gps"
    assert alert["metadata"]["durationMinutes"] == 12

    alerts = api_client.get("/api/monitoring/alerts", params={"type": "no_gps"}).json()["alerts"]
    assert [item["id"] for item in alerts] == [alert["id"]]


def test_buffered_fix_is_timed_by_server_receive_time(api_client: TestClient, clock: ServerClock):
    assert _ping(api_client, clock, 0).json()["no_gps_alert"] is None

    buffered = (T0 + timedelta(seconds=30)).isoformat()
    response = _ping(api_client, clock, 20, timestamp=buffered)

    assert response.status_code == 200
    body = response.json()
    received_at = datetime.fromisoformat(body["received_at"].replace("Z", "+00:00"))
    assert received_at == T0 + timedelta(minutes=20)
    assert body["no_gps_alert"]["type"] == "no_gps"
    assert body["no_gps_alert"]["metadata"]["durationMinutes"] == 20


def test_fast_device_clock_does_not_stall_silence_detection(api_client: TestClient, clock: ServerClock):
    ahead = (T0 + timedelta(hours=2)).isoformat()
    _ping(api_client, clock, 0, timestamp=ahead)
    assert _ping(api_client, clock, 3, timestamp=ahead).json()["no_gps_alert"] is None

    alert = _ping(api_client, clock, 12, timestamp=ahead).json()["no_gps_alert"]

    assert alert["metadata"]["durationMinutes"] == 9


def test_ping_with_bad_coordinates_is_rejected(api_client: TestClient, clock: ServerClock):
    response = _ping(api_client, clock, 0, lat=-95.0)
    assert response.status_code == 400


def test_ping_on_trip_checks_deviation(api_client: TestClient, trips: InMemoryTripRepository, clock: ServerClock):
    _optimize(api_client)
    trips.upsert(Trip(id="T1", driver_id="D1", scheduled_at=T0, school_id="SCH1"))

    on_route = _ping(api_client, clock, 0, trip_id="T1").json()
    assert on_route["deviation"]["deviated"] is False

    off_route = _ping(api_client, clock, 1, lat=21.6, lng=39.3, trip_id="T1").json()
    assert off_route["deviation"]["deviated"] is True

    check = api_client.post(
        "/api/monitoring/trips/T1/deviation-check",
        json={"driver_id": "D1", "lat": 21.51, "lng": 39.21},
    )
    assert check.json()["deviated"] is False
    assert check.json()["expected_location"] == {"lat": 21.51, "lng": 39.21}

    assert api_client.post("/api/monitoring/trips/T1/end").json() == {"trip_id": "T1", "released": True}


def test_late_check_and_sweep(api_client: TestClient, trips: InMemoryTripRepository):
    soon = datetime.now(timezone.utc) + timedelta(minutes=5)
    trips.upsert(
        Trip(
            id="T1",
            driver_id="D1",
            scheduled_at=soon,
            current_location=GeoPoint(21.4, 39.1),
            destination=GeoPoint(21.5, 39.2),
        )
    )

    late = api_client.post("/api/monitoring/trips/T1/late-check").json()
    assert late["late"] is True
    assert late["delay_minutes"] >= 50

    sweep = api_client.post("/api/monitoring/trips/late-sweep")
    assert sweep.status_code == 200
    assert sweep.json()["processed"] == 1
    assert sweep.json()["late_trip_ids"] == ["T1"]

    unknown = api_client.post("/api/monitoring/trips/UNKNOWN/late-check").json()
    assert unknown["late"] is False


def test_driver_heatmap(api_client: TestClient, clock: ServerClock):
    for minutes in (0, 1, 2):
        _ping(api_client, clock, minutes)

    response = api_client.get("/api/monitoring/drivers/D1/heatmap")

    assert response.status_code == 200
    cells = response.json()["cells"]
    assert [(cell["lat"], cell["lng"], cell["weight"]) for cell in cells] == [(21.5, 39.2, 3)]


def test_container_uses_supabase_when_configured(monkeypatch: pytest.MonkeyPatch):
    from schoolroute import container as container_module
    from schoolroute.persistence.database import SupabasePingRepository, SupabaseTripRepository

    monkeypatch.setattr(container_module, "get_supabase_client", lambda url, key: object())
    services = build_container(
        _settings(supabase_url="https://project.supabase.co", supabase_key="service-key"),
        provider=DummyOSRM(),
    )

    assert isinstance(services.pings, SupabasePingRepository)
    assert isinstance(services.trips, SupabaseTripRepository)
    assert services.webhook is None
