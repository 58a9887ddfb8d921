"""Monitoring request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Alert, HeatmapCell
from ..services.monitoring import DeviationResult, LateArrivalResult
from .routing import LocationModel, UtcDatetime


class LocationPingRequest(BaseModel):
    driver_id: str
    lat: float
    lng: float
    speed: Optional[float] = Field(default=None, description="Ground speed reported by the device (m/s).")
    heading: Optional[float] = Field(default=None, ge=0.0, le=360.0)
    accuracy: Optional[float] = Field(default=None, ge=0.0, description="Reported horizontal accuracy (m).")
    trip_id: Optional[str] = None
    timestamp: Optional[UtcDatetime] = Field(
        default=None,
        description="Device time of the fix. Stored as-is; silence detection uses the server receive time.",
    )


class AlertModel(BaseModel):
    id: str
    type: str
    severity: str
    driver_id: str
    trip_id: Optional[str] = None
    metadata: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertModel":
        return cls(
            id=alert.id,
            type=alert.type.value,
            severity=alert.severity.value,
            driver_id=alert.driver_id,
            trip_id=alert.trip_id,
            metadata=alert.metadata,
            created_at=alert.created_at,
        )


class DeviationModel(BaseModel):
    deviated: bool
    distance_meters: Optional[float] = None
    expected_location: Optional[LocationModel] = None

    @classmethod
    def from_result(cls, result: DeviationResult) -> "DeviationModel":
        expected = result.expected_location
        return cls(
            deviated=result.deviated,
            distance_meters=result.distance_meters,
            expected_location=LocationModel.from_point(expected) if expected is not None else None,
        )


class LocationPingResponse(BaseModel):
    logged: bool = True
    received_at: datetime
    no_gps_alert: Optional[AlertModel] = None
    deviation: Optional[DeviationModel] = None


class DeviationCheckRequest(BaseModel):
    driver_id: str
    lat: float
    lng: float


class LateCheckResponse(BaseModel):
    trip_id: str
    late: bool
    delay_minutes: int
    eta: Optional[datetime] = None

    @classmethod
    def from_result(cls, trip_id: str, result: LateArrivalResult) -> "LateCheckResponse":
        return cls(trip_id=trip_id, late=result.late, delay_minutes=result.delay_minutes, eta=result.eta)


class LateSweepRequest(BaseModel):
    trip_ids: Optional[List[str]] = Field(
        default=None,
        description="Trips to check; every in-progress trip when omitted.",
    )


class LateSweepResponse(BaseModel):
    ok: bool
    processed: int
    late: int
    errors: int
    late_trip_ids: List[str]


class AlertListResponse(BaseModel):
    alerts: List[AlertModel]


class HeatmapCellModel(BaseModel):
    lat: float
    lng: float
    weight: int
    time_group: datetime

    @classmethod
    def from_cell(cls, cell: HeatmapCell) -> "HeatmapCellModel":
        return cls(lat=cell.lat, lng=cell.lng, weight=cell.weight, time_group=cell.time_group)


class HeatmapResponse(BaseModel):
    driver_id: str
    cells: List[HeatmapCellModel]
