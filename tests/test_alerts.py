import json
from datetime import datetime, timezone

import httpx
import pytest

from schoolroute.errors import PersistenceError
from schoolroute.models.domain import AlertSeverity, AlertType
from schoolroute.persistence.memory import InMemoryAlertRepository
from schoolroute.services.alerts import AlertService, CompositeAlertSink, LoggingAlertSink, WebhookAlertSink

NOW = datetime(2024, 9, 2, 7, 0, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self):
        self.published = []

    def publish(self, alert):
        self.published.append(alert)


class BrokenSink:
    def publish(self, alert):
        raise RuntimeError("notification service down")


class BrokenRepository(InMemoryAlertRepository):
    def append(self, alert):
        raise PersistenceError("alerts table unavailable")


def test_alert_is_persisted_then_published():
    repo = InMemoryAlertRepository()
    sink = RecordingSink()
    service = AlertService(repo, sink, clock=lambda: NOW)

    alert = service.raise_alert(AlertType.NO_GPS, driver_id="D1", metadata={"durationMinutes": 7}, trip_id="T1")

    assert alert.created_at == NOW
    assert alert.severity is AlertSeverity.WARNING
    assert repo.recent() == [alert]
    assert sink.published == [alert]


def test_sink_failure_never_fails_the_caller():
    repo = InMemoryAlertRepository()
    service = AlertService(repo, BrokenSink(), clock=lambda: NOW)

    alert = service.raise_alert(AlertType.LATE_ARRIVAL, driver_id="D1", metadata={})

    assert repo.recent() == [alert]


def test_persistence_failure_propagates_and_skips_publish():
    sink = RecordingSink()
    service = AlertService(BrokenRepository(), sink, clock=lambda: NOW)

    with pytest.raises(PersistenceError):
        service.raise_alert(AlertType.ROUTE_DEVIATION, driver_id="D1", metadata={})
    assert sink.published == []


def test_recent_filters_by_type_and_driver():
    repo = InMemoryAlertRepository()
    service = AlertService(repo, RecordingSink(), clock=lambda: NOW)
    service.raise_alert(AlertType.NO_GPS, driver_id="D1", metadata={})
    service.raise_alert(AlertType.LATE_ARRIVAL, driver_id="D1", metadata={})
    service.raise_alert(AlertType.NO_GPS, driver_id="D2", metadata={})

    assert len(service.recent(types=[AlertType.NO_GPS])) == 2
    assert [alert.type for alert in service.recent(driver_id="D1", types=[AlertType.LATE_ARRIVAL])] == [
        AlertType.LATE_ARRIVAL
    ]
    assert len(service.recent(limit=1)) == 1


def test_composite_sink_keeps_going_after_a_failure():
    recording = RecordingSink()
    service = AlertService(
        InMemoryAlertRepository(),
        CompositeAlertSink([BrokenSink(), LoggingAlertSink(), recording]),
        clock=lambda: NOW,
    )

    alert = service.raise_alert(AlertType.NO_GPS, driver_id="D1", metadata={})

    assert recording.published == [alert]


def test_webhook_sink_posts_alert_json():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    webhook = WebhookAlertSink("http://notify.local/alerts", transport=httpx.MockTransport(handler))
    service = AlertService(InMemoryAlertRepository(), webhook, clock=lambda: NOW)

    alert = service.raise_alert(AlertType.NO_GPS, driver_id="D1", metadata={"durationMinutes": 6})
    webhook.close()

    assert received == [alert.to_payload()]
    assert received[0]["type"] == "no_gps"
    assert received[0]["created_at"] == NOW.isoformat()


def test_webhook_delivery_failure_is_only_logged(caplog):
    webhook = WebhookAlertSink(
        "http://notify.local/alerts",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    service = AlertService(InMemoryAlertRepository(), webhook, clock=lambda: NOW)

    alert = service.raise_alert(AlertType.NO_GPS, driver_id="D1", metadata={})
    webhook.close()

    assert alert.id
    assert any("webhook delivery" in record.getMessage() for record in caplog.records)
