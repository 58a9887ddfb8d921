"""GPS ping ingestion and silence detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...errors import InvalidInputError
from ...models.domain import Alert, AlertType, DriverLiveState, LocationPing
from ...persistence.base import PingRepository
from ..alerts import AlertService
from ..cache import BoundedTTLCache, KeyedLocks
from .deviation import DeviationMonitor, DeviationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestResult:
    no_gps_alert: Optional[Alert] = None
    deviation: Optional[DeviationResult] = None


class GPSIngest:
    """Logs driver pings, tracks per-driver silence and feeds the deviation monitor.

    Live state per driver is held in a bounded cache. A driver missing from it
    (first ping after start-up or after eviction) is rebuilt from the newest
    stored ping, so a restart does not hide a silence that spans it.

    Silence is measured on the server receive time only. A fix the device
    buffered while offline still counts from the moment it arrives.
    """

    def __init__(
        self,
        pings: PingRepository,
        alerts: AlertService,
        deviation: DeviationMonitor,
        gps_timeout: timedelta = timedelta(minutes=5),
        max_tracked_drivers: int = 5000,
        state_ttl_seconds: float = 12 * 3600.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.pings = pings
        self.alerts = alerts
        self.deviation = deviation
        self.gps_timeout = gps_timeout
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._states: BoundedTTLCache[str, DriverLiveState] = BoundedTTLCache(max_tracked_drivers, state_ttl_seconds)
        self._driver_locks: KeyedLocks[str] = KeyedLocks()

    def live_state(self, driver_id: str) -> Optional[DriverLiveState]:
        return self._states.get(driver_id)

    def _previous_ping_at(self, driver_id: str) -> Optional[datetime]:
        state = self._states.get(driver_id)
        if state is not None:
            return state.last_ping_at
        latest = self.pings.latest(driver_id)
        return latest.received_at if latest is not None else None

    def ingest(self, driver_id: str, ping: LocationPing) -> IngestResult:
        if ping.driver_id != driver_id:
            raise InvalidInputError(f"Ping belongs to driver {ping.driver_id}, not {driver_id}.")

        alert: Optional[Alert] = None
        with self._driver_locks.hold(driver_id):
            previous = self._previous_ping_at(driver_id)
            self.pings.append(ping)
            if ping.device_time is not None and ping.received_at - ping.device_time > self.gps_timeout:
                logger.info(
                    f"Buffered fix from driver {driver_id}: device time {ping.device_time.isoformat()}, "
                    f"received {ping.received_at.isoformat()}"
                )

            if previous is not None and ping.received_at - previous > self.gps_timeout:
                silence = ping.received_at - previous
                alert = self.alerts.raise_alert(
                    AlertType.NO_GPS,
                    driver_id=driver_id,
                    trip_id=ping.trip_id,
                    metadata={
                        "lastUpdate": previous.isoformat(),
                        "durationMinutes": round(silence.total_seconds() / 60),
                    },
                )

            if previous is None or ping.received_at >= previous:
                self._states.set(driver_id, DriverLiveState(last_ping_at=ping.received_at))
            else:
                logger.debug(
                    f"Out-of-order ping for driver {driver_id} ({ping.received_at.isoformat()} < "
                    f"{previous.isoformat()}); logged without moving the silence clock"
                )

        deviation: Optional[DeviationResult] = None
        if ping.trip_id:
            deviation = self.deviation.check_deviation(driver_id, ping.location, ping.trip_id)
            geometry = self.deviation.cached_geometry(ping.trip_id)
            if geometry is not None:
                with self._driver_locks.hold(driver_id):
                    state = self._states.get(driver_id)
                    if state is not None:
                        state.cached_route_geometry = geometry.points
        return IngestResult(no_gps_alert=alert, deviation=deviation)
