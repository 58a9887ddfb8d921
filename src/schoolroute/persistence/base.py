"""Storage contracts used by the routing and monitoring services."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..models.domain import Alert, AlertType, LocationPing, OptimizedRoute, Trip


class RouteRepository(Protocol):
    def replace_active(self, route: OptimizedRoute) -> None:
        """Deactivate the active route of the route's (driver, school) pair and insert ``route``.

        Implementations must perform both steps as one transaction.
        """

    def get(self, route_id: str) -> Optional[OptimizedRoute]: ...

    def get_active(self, driver_id: str, school_id: str) -> Optional[OptimizedRoute]: ...

    def list_for_driver(self, driver_id: str, limit: int = 20, offset: int = 0) -> list[OptimizedRoute]: ...


class PingRepository(Protocol):
    def append(self, ping: LocationPing) -> None: ...

    def latest(self, driver_id: str) -> Optional[LocationPing]: ...

    def in_range(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[LocationPing]: ...


class AlertRepository(Protocol):
    def append(self, alert: Alert) -> None: ...

    def recent(
        self,
        limit: int = 50,
        types: Optional[Sequence[AlertType]] = None,
        driver_id: Optional[str] = None,
    ) -> list[Alert]: ...


class TripRepository(Protocol):
    def get_trip(self, trip_id: str) -> Optional[Trip]: ...

    def active_trip_ids(self) -> list[str]: ...
