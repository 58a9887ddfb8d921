"""Persistence and staleness policy for optimized routes."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...models.domain import OptimizedRoute
from ...persistence.base import RouteRepository
from ..cache import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_STALENESS = timedelta(hours=24)

RouteSavedListener = Callable[[OptimizedRoute], None]


class RouteStore:
    def __init__(
        self,
        repository: RouteRepository,
        staleness: timedelta = DEFAULT_STALENESS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repository = repository
        self.staleness = staleness
        self.clock = clock
        self._pair_locks: KeyedLocks[tuple[str, str]] = KeyedLocks()
        self._listeners: list[RouteSavedListener] = []

    def add_listener(self, listener: RouteSavedListener) -> None:
        """Register a callback run after every successful save."""
        self._listeners.append(listener)

    def save(self, route: OptimizedRoute) -> None:
        """Make ``route`` the single active route of its (driver, school) pair."""
        with self._pair_locks.hold((route.driver_id, route.school_id)):
            self.repository.replace_active(route)
        logger.info(f"Saved route {route.id} as active for driver {route.driver_id} / school {route.school_id}")
        for listener in self._listeners:
            listener(route)

    def get(self, route_id: str) -> Optional[OptimizedRoute]:
        return self.repository.get(route_id)

    def get_active(self, driver_id: str, school_id: str) -> Optional[OptimizedRoute]:
        return self.repository.get_active(driver_id, school_id)

    def history(self, driver_id: str, limit: int = 20, offset: int = 0) -> list[OptimizedRoute]:
        return self.repository.list_for_driver(driver_id, limit=limit, offset=offset)

    def is_stale(self, route: OptimizedRoute) -> bool:
        return self.clock() - route.generated_at > self.staleness

    def needs_regeneration(self, route_id: str) -> bool:
        route = self.repository.get(route_id)
        if route is None:
            return True
        return self.is_stale(route)
