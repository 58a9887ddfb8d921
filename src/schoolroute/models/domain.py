"""Domain models for routes, GPS pings, trips and alerts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..errors import InvalidInputError


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A WGS84 coordinate."""

    lat: float
    lng: float

    @classmethod
    def checked(cls, lat: Any, lng: Any) -> "GeoPoint":
        """Build a point, raising ``InvalidInputError`` when it is out of range."""
        try:
            lat_value = float(lat)
            lng_value = float(lng)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Coordinates must be numbers, got ({lat!r}, {lng!r}).") from exc
        if not (math.isfinite(lat_value) and math.isfinite(lng_value)):
            raise InvalidInputError(f"Coordinates must be finite, got ({lat_value}, {lng_value}).")
        if not -90.0 <= lat_value <= 90.0:
            raise InvalidInputError(f"Latitude {lat_value} is outside [-90, 90].")
        if not -180.0 <= lng_value <= 180.0:
            raise InvalidInputError(f"Longitude {lng_value} is outside [-180, 180].")
        return cls(lat_value, lng_value)

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True, slots=True)
class Stop:
    """A student pickup request within a route."""

    student_id: str
    location: Optional[GeoPoint]
    address: str = ""


@dataclass(frozen=True, slots=True)
class StopETA:
    """Scheduled arrival at a stop plus the leg departing it."""

    student_id: str
    estimated_arrival: datetime
    leg_duration_seconds: float
    leg_distance_meters: float


@dataclass(slots=True)
class OptimizedRoute:
    id: str
    driver_id: str
    school_id: str
    stop_order: tuple[str, ...]
    per_stop_eta: tuple[StopETA, ...]
    geometry: str
    total_duration_seconds: float
    total_distance_meters: float
    generated_at: datetime
    active: bool = True
    depot: Optional[GeoPoint] = None
    scheduled_arrival: Optional[datetime] = None
    stops: tuple[Stop, ...] = ()
    first_leg_duration_seconds: float = 0.0
    first_leg_distance_meters: float = 0.0


@dataclass(frozen=True, slots=True)
class LocationPing:
    """One GPS sample reported by a driver; never mutated once logged.

    ``received_at`` is the server receive time and is the only clock used for
    silence detection. ``device_time`` is the fix time the device reported.
    """

    driver_id: str
    location: GeoPoint
    received_at: datetime
    speed: Optional[float] = None
    heading: Optional[float] = None
    accuracy: Optional[float] = None
    trip_id: Optional[str] = None
    device_time: Optional[datetime] = None


@dataclass(slots=True)
class DriverLiveState:
    last_ping_at: datetime
    cached_route_geometry: Optional[tuple[GeoPoint, ...]] = None


class AlertType(str, Enum):
    ROUTE_DEVIATION = "route_deviation"
    LATE_ARRIVAL = "late_arrival"
    NO_GPS = "no_gps"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Alert:
    id: str
    type: AlertType
    severity: AlertSeverity
    driver_id: str
    created_at: datetime
    trip_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """JSON-friendly representation handed to sinks and the API."""
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "driver_id": self.driver_id,
            "trip_id": self.trip_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class Trip:
    """Read-only view of a trip as supplied by trip management."""

    id: str
    driver_id: str
    scheduled_at: datetime
    current_location: Optional[GeoPoint] = None
    destination: Optional[GeoPoint] = None
    school_id: Optional[str] = None
    route_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class HeatmapCell:
    lat: float
    lng: float
    weight: int
    time_group: datetime
