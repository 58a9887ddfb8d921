"""In-process repositories, used when no database is configured and in tests."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from ..models.domain import Alert, AlertType, LocationPing, OptimizedRoute, Trip


class InMemoryRouteRepository:
    def __init__(self) -> None:
        self._routes: dict[str, OptimizedRoute] = {}
        self._lock = threading.Lock()

    def replace_active(self, route: OptimizedRoute) -> None:
        with self._lock:
            for route_id, existing in self._routes.items():
                if (
                    existing.active
                    and existing.driver_id == route.driver_id
                    and existing.school_id == route.school_id
                ):
                    self._routes[route_id] = replace(existing, active=False)
            self._routes[route.id] = replace(route, active=True)

    def get(self, route_id: str) -> Optional[OptimizedRoute]:
        with self._lock:
            return self._routes.get(route_id)

    def get_active(self, driver_id: str, school_id: str) -> Optional[OptimizedRoute]:
        with self._lock:
            candidates = [
                route
                for route in self._routes.values()
                if route.active and route.driver_id == driver_id and route.school_id == school_id
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda route: route.generated_at)

    def list_for_driver(self, driver_id: str, limit: int = 20, offset: int = 0) -> list[OptimizedRoute]:
        with self._lock:
            routes = [route for route in self._routes.values() if route.driver_id == driver_id]
        routes.sort(key=lambda route: route.generated_at, reverse=True)
        return routes[offset : offset + limit]


class InMemoryPingRepository:
    def __init__(self) -> None:
        self._pings: list[LocationPing] = []
        self._lock = threading.Lock()

    def append(self, ping: LocationPing) -> None:
        with self._lock:
            self._pings.append(ping)

    def latest(self, driver_id: str) -> Optional[LocationPing]:
        with self._lock:
            pings = [ping for ping in self._pings if ping.driver_id == driver_id]
        if not pings:
            return None
        return max(pings, key=lambda ping: ping.received_at)

    def in_range(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[LocationPing]:
        with self._lock:
            pings = list(self._pings)
        return [
            ping
            for ping in pings
            if ping.driver_id == driver_id
            and (start is None or ping.received_at >= start)
            and (end is None or ping.received_at <= end)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._pings)


class InMemoryAlertRepository:
    def __init__(self) -> None:
        self._alerts: list[Alert] = []
        self._lock = threading.Lock()

    def append(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)

    def recent(
        self,
        limit: int = 50,
        types: Optional[Sequence[AlertType]] = None,
        driver_id: Optional[str] = None,
    ) -> list[Alert]:
        with self._lock:
            alerts = list(self._alerts)
        wanted = set(types) if types else None
        selected = [
            alert
            for alert in alerts
            if (wanted is None or alert.type in wanted) and (driver_id is None or alert.driver_id == driver_id)
        ]
        selected.sort(key=lambda alert: alert.created_at, reverse=True)
        return selected[:limit]


class InMemoryTripRepository:
    """Trip lookup backed by a dict; trips are registered with ``upsert``."""

    def __init__(self, trips: Sequence[Trip] = ()) -> None:
        self._trips: dict[str, Trip] = {trip.id: trip for trip in trips}
        self._active: set[str] = set(self._trips)
        self._lock = threading.Lock()

    def upsert(self, trip: Trip, active: bool = True) -> None:
        with self._lock:
            self._trips[trip.id] = trip
            if active:
                self._active.add(trip.id)
            else:
                self._active.discard(trip.id)

    def finish(self, trip_id: str) -> None:
        with self._lock:
            self._active.discard(trip_id)

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        with self._lock:
            return self._trips.get(trip_id)

    def active_trip_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._active)
