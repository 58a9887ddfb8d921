"""Late-arrival detection against a trip's scheduled time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from ...errors import RouteComputationError
from ...models.domain import AlertType
from ...persistence.base import TripRepository
from ..alerts import AlertService
from ..routing.provider import RoutingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LateArrivalResult:
    late: bool
    delay_minutes: int = 0
    eta: Optional[datetime] = None


class ArrivalMonitor:
    def __init__(
        self,
        provider: RoutingProvider,
        trips: TripRepository,
        alerts: AlertService,
        grace: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.provider = provider
        self.trips = trips
        self.alerts = alerts
        self.grace = grace
        self.clock = clock

    def check_late_arrival(self, trip_id: str) -> LateArrivalResult:
        trip = self.trips.get_trip(trip_id)
        if trip is None or trip.current_location is None or trip.destination is None:
            # A trip that has not started (or is unknown) has no meaningful lateness.
            return LateArrivalResult(late=False)

        answer = self.provider.point_to_point_eta(trip.current_location, trip.destination)
        if not answer.ok:
            detail = f": {answer.message}" if answer.message else ""
            raise RouteComputationError(f"Routing provider returned status '{answer.status}' for trip {trip_id}{detail}")

        scheduled = trip.scheduled_at
        if scheduled.tzinfo is None:
            scheduled = scheduled.replace(tzinfo=timezone.utc)
        eta = self.clock() + timedelta(seconds=answer.duration_seconds)
        delay_minutes = round((eta - scheduled).total_seconds() / 60)

        if eta > scheduled + self.grace:
            self.alerts.raise_alert(
                AlertType.LATE_ARRIVAL,
                driver_id=trip.driver_id,
                trip_id=trip_id,
                metadata={
                    "eta": eta.isoformat(),
                    "scheduledTime": scheduled.isoformat(),
                    "delay": delay_minutes,
                },
            )
            return LateArrivalResult(late=True, delay_minutes=delay_minutes, eta=eta)
        return LateArrivalResult(late=False, delay_minutes=max(delay_minutes, 0), eta=eta)

    def sweep(self, trip_ids: Optional[Iterable[str]] = None) -> dict:
        """Check a batch of trips, by default every active one.

        Provider failures are counted per trip so one unreachable route does
        not abort the rest of the sweep.
        """
        ids = list(trip_ids) if trip_ids is not None else self.trips.active_trip_ids()
        processed = 0
        late = 0
        errors = 0
        late_trips: list[str] = []
        for trip_id in ids:
            processed += 1
            try:
                result = self.check_late_arrival(trip_id)
            except RouteComputationError as exc:
                errors += 1
                logger.warning(f"Late-arrival check for trip {trip_id} failed: {exc}")
                continue
            if result.late:
                late += 1
                late_trips.append(trip_id)
        logger.info(f"Late-arrival sweep: {processed} trip(s), {late} late, {errors} error(s)")
        return {
            "ok": errors == 0,
            "processed": processed,
            "late": late,
            "errors": errors,
            "late_trip_ids": late_trips,
        }
