"""Supabase persistence for routes, GPS logs, alerts and trips."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from supabase import Client

from ..errors import PersistenceError
from ..models.domain import (
    Alert,
    AlertSeverity,
    AlertType,
    GeoPoint,
    LocationPing,
    OptimizedRoute,
    Stop,
    StopETA,
    Trip,
)

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _point_or_none(lat: Any, lng: Any) -> Optional[GeoPoint]:
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=float(lat), lng=float(lng))


def route_to_row(route: OptimizedRoute) -> dict[str, Any]:
    """Serialize a route into a ``driver_routes`` row."""
    return {
        "id": route.id,
        "driver_id": route.driver_id,
        "school_id": route.school_id,
        "stop_order": list(route.stop_order),
        "per_stop_eta": [
            {
                "student_id": eta.student_id,
                "estimated_arrival": eta.estimated_arrival.isoformat(),
                "leg_duration_seconds": eta.leg_duration_seconds,
                "leg_distance_meters": eta.leg_distance_meters,
            }
            for eta in route.per_stop_eta
        ],
        "polyline": route.geometry,
        "estimated_duration": route.total_duration_seconds,
        "estimated_distance": route.total_distance_meters,
        "last_generated_at": route.generated_at.isoformat(),
        "is_active": route.active,
        "route_data": {
            "depot": route.depot.as_dict() if route.depot else None,
            "scheduled_arrival": route.scheduled_arrival.isoformat() if route.scheduled_arrival else None,
            "first_leg": {
                "duration_seconds": route.first_leg_duration_seconds,
                "distance_meters": route.first_leg_distance_meters,
            },
            "stops": [
                {
                    "student_id": stop.student_id,
                    "address": stop.address,
                    "location": stop.location.as_dict() if stop.location else None,
                }
                for stop in route.stops
            ],
        },
    }


def row_to_route(row: dict[str, Any]) -> OptimizedRoute:
    route_data = row.get("route_data") or {}
    depot = route_data.get("depot") or {}
    first_leg = route_data.get("first_leg") or {}
    stops = tuple(
        Stop(
            student_id=str(stop.get("student_id")),
            location=_point_or_none((stop.get("location") or {}).get("lat"), (stop.get("location") or {}).get("lng")),
            address=stop.get("address") or "",
        )
        for stop in route_data.get("stops") or []
    )
    return OptimizedRoute(
        id=str(row["id"]),
        driver_id=str(row["driver_id"]),
        school_id=str(row["school_id"]),
        stop_order=tuple(str(student_id) for student_id in row.get("stop_order") or []),
        per_stop_eta=tuple(
            StopETA(
                student_id=str(eta["student_id"]),
                estimated_arrival=parse_timestamp(eta["estimated_arrival"]),
                leg_duration_seconds=float(eta.get("leg_duration_seconds") or 0.0),
                leg_distance_meters=float(eta.get("leg_distance_meters") or 0.0),
            )
            for eta in row.get("per_stop_eta") or []
        ),
        geometry=row.get("polyline") or "",
        total_duration_seconds=float(row.get("estimated_duration") or 0.0),
        total_distance_meters=float(row.get("estimated_distance") or 0.0),
        generated_at=parse_timestamp(row.get("last_generated_at")),
        active=bool(row.get("is_active")),
        depot=_point_or_none(depot.get("lat"), depot.get("lng")),
        scheduled_arrival=parse_timestamp(route_data.get("scheduled_arrival")),
        stops=stops,
        first_leg_duration_seconds=float(first_leg.get("duration_seconds") or 0.0),
        first_leg_distance_meters=float(first_leg.get("distance_meters") or 0.0),
    )


def ping_to_row(ping: LocationPing) -> dict[str, Any]:
    return {
        "driver_id": ping.driver_id,
        "lat": ping.location.lat,
        "lng": ping.location.lng,
        "trip_id": ping.trip_id,
        "speed": ping.speed,
        "heading": ping.heading,
        "accuracy": ping.accuracy,
        "timestamp": ping.received_at.isoformat(),
        "device_time": ping.device_time.isoformat() if ping.device_time else None,
    }


def row_to_ping(row: dict[str, Any]) -> LocationPing:
    return LocationPing(
        driver_id=str(row["driver_id"]),
        location=GeoPoint(lat=float(row["lat"]), lng=float(row["lng"])),
        received_at=parse_timestamp(row["timestamp"]),
        speed=row.get("speed"),
        heading=row.get("heading"),
        accuracy=row.get("accuracy"),
        trip_id=str(row["trip_id"]) if row.get("trip_id") is not None else None,
        device_time=parse_timestamp(row.get("device_time")),
    )


def alert_to_row(alert: Alert) -> dict[str, Any]:
    payload = alert.to_payload()
    return {
        "id": payload["id"],
        "type": payload["type"],
        "severity": payload["severity"],
        "driver_id": payload["driver_id"],
        "trip_id": payload["trip_id"],
        "metadata": payload["metadata"],
        "created_at": payload["created_at"],
    }


def row_to_alert(row: dict[str, Any]) -> Alert:
    return Alert(
        id=str(row["id"]),
        type=AlertType(row["type"]),
        severity=AlertSeverity(row.get("severity") or AlertSeverity.WARNING.value),
        driver_id=str(row["driver_id"]),
        trip_id=str(row["trip_id"]) if row.get("trip_id") is not None else None,
        metadata=row.get("metadata") or {},
        created_at=parse_timestamp(row["created_at"]),
    )


class _SupabaseRepository:
    def __init__(self, client: Client) -> None:
        self.client = client

    def _execute(self, query: Any, action: str) -> list[dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as exc:
            logger.error(f"Supabase {action} failed: {exc}")
            raise PersistenceError(f"Database {action} failed: {exc}") from exc
        return list(response.data or [])


class SupabaseRouteRepository(_SupabaseRepository):
    table = "driver_routes"

    def replace_active(self, route: OptimizedRoute) -> None:
        self._execute(
            self.client.rpc("replace_active_driver_route", {"p_route": route_to_row(route)}),
            f"route swap for driver {route.driver_id} / school {route.school_id}",
        )

    def get(self, route_id: str) -> Optional[OptimizedRoute]:
        rows = self._execute(
            self.client.table(self.table).select("*").eq("id", route_id).limit(1),
            f"route lookup {route_id}",
        )
        return row_to_route(rows[0]) if rows else None

    def get_active(self, driver_id: str, school_id: str) -> Optional[OptimizedRoute]:
        rows = self._execute(
            self.client.table(self.table)
            .select("*")
            .eq("driver_id", driver_id)
            .eq("school_id", school_id)
            .eq("is_active", True)
            .order("last_generated_at", desc=True)
            .limit(1),
            f"active route lookup for driver {driver_id} / school {school_id}",
        )
        return row_to_route(rows[0]) if rows else None

    def list_for_driver(self, driver_id: str, limit: int = 20, offset: int = 0) -> list[OptimizedRoute]:
        rows = self._execute(
            self.client.table(self.table)
            .select("*")
            .eq("driver_id", driver_id)
            .order("last_generated_at", desc=True)
            .range(offset, offset + limit - 1),
            f"route history for driver {driver_id}",
        )
        return [row_to_route(row) for row in rows]


class SupabasePingRepository(_SupabaseRepository):
    table = "gps_logs"

    def append(self, ping: LocationPing) -> None:
        self._execute(self.client.table(self.table).insert(ping_to_row(ping)), f"GPS log insert for driver {ping.driver_id}")

    def latest(self, driver_id: str) -> Optional[LocationPing]:
        rows = self._execute(
            self.client.table(self.table).select("*").eq("driver_id", driver_id).order("timestamp", desc=True).limit(1),
            f"latest GPS log for driver {driver_id}",
        )
        return row_to_ping(rows[0]) if rows else None

    def in_range(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[LocationPing]:
        query = self.client.table(self.table).select("*").eq("driver_id", driver_id)
        if start is not None:
            query = query.gte("timestamp", start.isoformat())
        if end is not None:
            query = query.lte("timestamp", end.isoformat())
        rows = self._execute(query.order("timestamp", desc=True), f"GPS log range for driver {driver_id}")
        return [row_to_ping(row) for row in rows]


class SupabaseAlertRepository(_SupabaseRepository):
    table = "alerts"

    def append(self, alert: Alert) -> None:
        self._execute(self.client.table(self.table).insert(alert_to_row(alert)), f"alert insert {alert.type.value}")

    def recent(
        self,
        limit: int = 50,
        types: Optional[Sequence[AlertType]] = None,
        driver_id: Optional[str] = None,
    ) -> list[Alert]:
        query = self.client.table(self.table).select("*")
        if types:
            query = query.in_("type", [alert_type.value for alert_type in types])
        if driver_id is not None:
            query = query.eq("driver_id", driver_id)
        rows = self._execute(query.order("created_at", desc=True).limit(limit), "alert query")
        return [row_to_alert(row) for row in rows]


class SupabaseTripRepository(_SupabaseRepository):
    table = "trips"

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        rows = self._execute(
            self.client.table(self.table)
            .select(
                "id, driver_id, school_id, route_id, scheduled_at, "
                "drivers(current_location_lat, current_location_lng), "
                "schools(location_lat, location_lng)"
            )
            .eq("id", trip_id)
            .limit(1),
            f"trip lookup {trip_id}",
        )
        if not rows:
            return None
        row = rows[0]
        driver = row.get("drivers") or {}
        school = row.get("schools") or {}
        return Trip(
            id=str(row["id"]),
            driver_id=str(row["driver_id"]),
            scheduled_at=parse_timestamp(row["scheduled_at"]),
            current_location=_point_or_none(driver.get("current_location_lat"), driver.get("current_location_lng")),
            destination=_point_or_none(school.get("location_lat"), school.get("location_lng")),
            school_id=str(row["school_id"]) if row.get("school_id") is not None else None,
            route_id=str(row["route_id"]) if row.get("route_id") is not None else None,
        )

    def active_trip_ids(self) -> list[str]:
        rows = self._execute(
            self.client.table(self.table).select("id").eq("status", "in_progress"),
            "active trip listing",
        )
        return [str(row["id"]) for row in rows]
