"""Routing orchestration service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from ...errors import InvalidInputError, NotFoundError
from ...models.domain import GeoPoint, OptimizedRoute, Stop
from .optimizer import RouteOptimizer
from .store import RouteStore

logger = logging.getLogger(__name__)


class RoutePlanningService:
    """Generates routes, stores them and refreshes stale ones on read."""

    def __init__(self, optimizer: RouteOptimizer, store: RouteStore) -> None:
        self.optimizer = optimizer
        self.store = store

    def generate(
        self,
        driver_id: str,
        school_id: str,
        depot: GeoPoint,
        stops: Sequence[Stop],
        scheduled_arrival: datetime,
    ) -> OptimizedRoute:
        route = self.optimizer.optimize(driver_id, school_id, depot, stops, scheduled_arrival)
        self.store.save(route)
        return route

    def regenerate(self, route: OptimizedRoute) -> OptimizedRoute:
        """Re-run optimization for the stops and depot recorded on ``route``.

        The scheduled arrival keeps its time of day and moves to today (in the
        route's own timezone) when the recorded date is in the past.
        """
        if route.depot is None or route.scheduled_arrival is None or not route.stops:
            raise InvalidInputError(f"Route {route.id} does not record enough input to be regenerated.")
        arrival = route.scheduled_arrival
        now = self.optimizer.clock().astimezone(arrival.tzinfo)
        if arrival < now:
            arrival = arrival.replace(year=now.year, month=now.month, day=now.day)
        logger.info(f"Regenerating stale route {route.id} for driver {route.driver_id} / school {route.school_id}")
        return self.generate(route.driver_id, route.school_id, route.depot, route.stops, arrival)

    def active_route(self, driver_id: str, school_id: str) -> tuple[OptimizedRoute, bool]:
        """Return the active route of the pair and whether it was just regenerated."""
        route = self.store.get_active(driver_id, school_id)
        if route is None:
            raise NotFoundError(f"No active route found for driver {driver_id} and school {school_id}.")
        if self.store.needs_regeneration(route.id):
            return self.regenerate(route), True
        return route, False
