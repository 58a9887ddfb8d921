"""Route-deviation detection for in-progress trips."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Sequence

from ...models.domain import AlertType, GeoPoint, OptimizedRoute
from ...persistence.base import TripRepository
from ..alerts import AlertService
from ..cache import BoundedTTLCache, KeyedLocks
from ..geospatial import NearestPoint, decode_polyline, nearest_point_on_polyline, nearest_point_on_segments
from ..routing.store import RouteStore

logger = logging.getLogger(__name__)

MatchMode = Literal["vertex", "segment"]

_MATCHERS: dict[str, Callable[[GeoPoint, Sequence[GeoPoint]], NearestPoint]] = {
    "vertex": nearest_point_on_polyline,
    "segment": nearest_point_on_segments,
}


@dataclass(frozen=True, slots=True)
class CachedGeometry:
    route_id: str
    driver_id: str
    school_id: str
    points: tuple[GeoPoint, ...]


@dataclass(frozen=True, slots=True)
class DeviationResult:
    deviated: bool
    distance_meters: Optional[float] = None
    expected_location: Optional[GeoPoint] = None


class DeviationMonitor:
    def __init__(
        self,
        routes: RouteStore,
        trips: TripRepository,
        alerts: AlertService,
        threshold_meters: float = 500.0,
        match_mode: MatchMode = "vertex",
        max_cached_trips: int = 2000,
        cache_ttl_seconds: float = 3600.0,
    ) -> None:
        if match_mode not in _MATCHERS:
            raise ValueError(f"Unknown deviation match mode '{match_mode}'.")
        self.routes = routes
        self.trips = trips
        self.alerts = alerts
        self.threshold_meters = threshold_meters
        self.match_mode = match_mode
        self._cache: BoundedTTLCache[str, CachedGeometry] = BoundedTTLCache(max_cached_trips, cache_ttl_seconds)
        self._trip_locks: KeyedLocks[str] = KeyedLocks()
        self._saves_seen = 0
        self._saves_guard = threading.Lock()

    def _resolve_route(self, trip_id: str, driver_id: str) -> Optional[OptimizedRoute]:
        trip = self.trips.get_trip(trip_id)
        if trip is None:
            return None
        if trip.route_id:
            route = self.routes.get(trip.route_id)
            if route is not None:
                return route
        if trip.school_id:
            return self.routes.get_active(trip.driver_id or driver_id, trip.school_id)
        return None

    def geometry_for_trip(self, trip_id: str, driver_id: str) -> Optional[CachedGeometry]:
        cached = self._cache.get(trip_id)
        if cached is not None:
            return cached
        with self._trip_locks.hold(trip_id):
            # Another ping may have filled the entry while this one waited.
            cached = self._cache.get(trip_id)
            if cached is not None:
                return cached
            with self._saves_guard:
                saves_before = self._saves_seen
            route = self._resolve_route(trip_id, driver_id)
            if route is None or not route.geometry:
                return None
            try:
                points = tuple(decode_polyline(route.geometry))
            except ValueError as exc:
                logger.warning(f"Route {route.id} has an undecodable geometry: {exc}")
                return None
            entry = CachedGeometry(route.id, route.driver_id, route.school_id, points)
            # A route saved during the lookup may supersede this one, so only cache a quiet read.
            with self._saves_guard:
                if saves_before != self._saves_seen:
                    return entry
                self._cache.set(trip_id, entry)
            logger.debug(f"Cached {len(points)} route vertices for trip {trip_id}")
            return entry

    def cached_geometry(self, trip_id: str) -> Optional[CachedGeometry]:
        return self._cache.get(trip_id)

    def check_deviation(self, driver_id: str, location: GeoPoint, trip_id: str) -> DeviationResult:
        geometry = self.geometry_for_trip(trip_id, driver_id)
        if geometry is None or not geometry.points:
            # Ad-hoc trips without a planned route are simply not monitored.
            return DeviationResult(deviated=False)

        nearest = _MATCHERS[self.match_mode](location, geometry.points)
        if nearest.point is None:
            return DeviationResult(deviated=False)

        if nearest.distance_meters > self.threshold_meters:
            self.alerts.raise_alert(
                AlertType.ROUTE_DEVIATION,
                driver_id=driver_id,
                trip_id=trip_id,
                metadata={
                    "currentLocation": location.as_dict(),
                    "deviation": round(nearest.distance_meters, 1),
                    "expectedLocation": nearest.point.as_dict(),
                },
            )
            return DeviationResult(True, nearest.distance_meters, nearest.point)
        return DeviationResult(False, nearest.distance_meters, nearest.point)

    def invalidate(self, trip_id: str) -> None:
        with self._trip_locks.hold(trip_id):
            self._cache.pop(trip_id)

    def end_trip(self, trip_id: str) -> None:
        self.invalidate(trip_id)
        logger.info(f"Trip {trip_id} ended; route geometry released")

    def invalidate_route(self, driver_id: str, school_id: str) -> None:
        dropped = self._cache.discard_where(
            lambda _trip_id, entry: entry.driver_id == driver_id and entry.school_id == school_id
        )
        if dropped:
            logger.debug(f"Dropped cached geometry for trips {dropped} after route regeneration")

    def on_route_saved(self, route: OptimizedRoute) -> None:
        with self._saves_guard:
            self._saves_seen += 1
            self.invalidate_route(route.driver_id, route.school_id)
