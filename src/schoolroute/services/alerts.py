"""Alert creation and hand-off to the notification fan-out."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

import httpx

from ..models.domain import Alert, AlertSeverity, AlertType
from ..persistence.base import AlertRepository

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def publish(self, alert: Alert) -> None:
        """One-way send; delivery guarantees belong to the sink."""


class LoggingAlertSink:
    def publish(self, alert: Alert) -> None:
        logger.warning(
            f"ALERT {alert.type.value} [{alert.severity.value}] driver={alert.driver_id} "
            f"trip={alert.trip_id} metadata={alert.metadata}"
        )


class WebhookAlertSink:
    """POSTs alerts as JSON to the notification service from a small worker pool."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        max_workers: int = 4,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="alert-webhook")

    def _send(self, payload: dict[str, Any]) -> None:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f"Alert webhook delivery of {payload['id']} failed: {exc}")

    def publish(self, alert: Alert) -> None:
        self._executor.submit(self._send, alert.to_payload())

    def close(self) -> None:
        self._executor.shutdown(wait=True)


class CompositeAlertSink:
    def __init__(self, sinks: Sequence[AlertSink]) -> None:
        self.sinks = list(sinks)

    def publish(self, alert: Alert) -> None:
        for sink in self.sinks:
            try:
                sink.publish(alert)
            except Exception as exc:
                logger.warning(f"Alert sink {type(sink).__name__} rejected alert {alert.id}: {exc}")


class AlertService:
    def __init__(
        self,
        repository: AlertRepository,
        sink: AlertSink,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repository = repository
        self.sink = sink
        self.clock = clock

    def raise_alert(
        self,
        alert_type: AlertType,
        driver_id: str,
        metadata: dict[str, Any],
        trip_id: Optional[str] = None,
        severity: AlertSeverity = AlertSeverity.WARNING,
    ) -> Alert:
        """Persist an alert and publish it.

        A failed write propagates to the caller. A failed publish is logged
        only, so notification trouble never fails the check that raised it.
        """
        alert = Alert(
            id=uuid.uuid4().hex,
            type=alert_type,
            severity=severity,
            driver_id=driver_id,
            trip_id=trip_id,
            metadata=metadata,
            created_at=self.clock(),
        )
        self.repository.append(alert)
        logger.info(f"Raised {alert_type.value} alert {alert.id} for driver {driver_id}")
        try:
            self.sink.publish(alert)
        except Exception as exc:
            logger.warning(f"Publishing alert {alert.id} failed: {exc}")
        return alert

    def recent(
        self,
        limit: int = 50,
        types: Optional[Sequence[AlertType]] = None,
        driver_id: Optional[str] = None,
    ) -> list[Alert]:
        return self.repository.recent(limit=limit, types=types, driver_id=driver_id)
