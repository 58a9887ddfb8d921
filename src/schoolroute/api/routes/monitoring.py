"""Live monitoring endpoints: GPS ingest, trip checks, alerts and heatmap."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...container import ServiceContainer
from ...models.domain import AlertType, GeoPoint, LocationPing
from ...schemas.monitoring import (
    AlertListResponse,
    AlertModel,
    DeviationCheckRequest,
    DeviationModel,
    HeatmapCellModel,
    HeatmapResponse,
    LateCheckResponse,
    LateSweepRequest,
    LateSweepResponse,
    LocationPingRequest,
    LocationPingResponse,
)
from ...schemas.routing import as_utc
from ...services.monitoring import heatmap
from ..dependencies import get_services, http_error

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.post("/drivers/location", response_model=LocationPingResponse, status_code=status.HTTP_200_OK)
def report_location(
    payload: LocationPingRequest,
    services: ServiceContainer = Depends(get_services),
) -> LocationPingResponse:
    """Log a driver's GPS fix, then run silence and deviation checks on it."""
    try:
        ping = LocationPing(
            driver_id=payload.driver_id,
            location=GeoPoint.checked(payload.lat, payload.lng),
            received_at=services.gps.clock(),
            speed=payload.speed,
            heading=payload.heading,
            accuracy=payload.accuracy,
            trip_id=payload.trip_id,
            device_time=payload.timestamp,
        )
        result = services.gps.ingest(payload.driver_id, ping)
    except Exception as exc:
        raise http_error(exc, "record driver location") from exc
    return LocationPingResponse(
        received_at=ping.received_at,
        no_gps_alert=AlertModel.from_alert(result.no_gps_alert) if result.no_gps_alert else None,
        deviation=DeviationModel.from_result(result.deviation) if result.deviation else None,
    )


@router.get("/drivers/{driver_id}/heatmap", response_model=HeatmapResponse, status_code=status.HTTP_200_OK)
def driver_heatmap(
    driver_id: str,
    start: Optional[datetime] = Query(default=None, description="Only pings at or after this time."),
    end: Optional[datetime] = Query(default=None, description="Only pings at or before this time."),
    services: ServiceContainer = Depends(get_services),
) -> HeatmapResponse:
    try:
        cells = heatmap(services.pings, driver_id, start=as_utc(start), end=as_utc(end))
    except Exception as exc:
        raise http_error(exc, "build driver heatmap") from exc
    return HeatmapResponse(driver_id=driver_id, cells=[HeatmapCellModel.from_cell(cell) for cell in cells])


@router.post("/trips/late-sweep", response_model=LateSweepResponse, status_code=status.HTTP_200_OK)
def late_sweep(
    payload: Optional[LateSweepRequest] = None,
    services: ServiceContainer = Depends(get_services),
) -> LateSweepResponse:
    """Run the late-arrival check over the given trips, or every in-progress trip."""
    trip_ids = payload.trip_ids if payload is not None else None
    try:
        summary = services.arrival.sweep(trip_ids)
    except Exception as exc:
        raise http_error(exc, "run late-arrival sweep") from exc
    return LateSweepResponse(**summary)


@router.post("/trips/{trip_id}/deviation-check", response_model=DeviationModel, status_code=status.HTTP_200_OK)
def deviation_check(
    trip_id: str,
    payload: DeviationCheckRequest,
    services: ServiceContainer = Depends(get_services),
) -> DeviationModel:
    try:
        location = GeoPoint.checked(payload.lat, payload.lng)
        result = services.deviation.check_deviation(payload.driver_id, location, trip_id)
    except Exception as exc:
        raise http_error(exc, "check route deviation") from exc
    return DeviationModel.from_result(result)


@router.post("/trips/{trip_id}/late-check", response_model=LateCheckResponse, status_code=status.HTTP_200_OK)
def late_check(trip_id: str, services: ServiceContainer = Depends(get_services)) -> LateCheckResponse:
    try:
        result = services.arrival.check_late_arrival(trip_id)
    except Exception as exc:
        raise http_error(exc, "check late arrival") from exc
    return LateCheckResponse.from_result(trip_id, result)


@router.post("/trips/{trip_id}/end", status_code=status.HTTP_200_OK)
def end_trip(trip_id: str, services: ServiceContainer = Depends(get_services)) -> dict:
    """Release the monitoring state held for a finished trip."""
    services.deviation.end_trip(trip_id)
    return {"trip_id": trip_id, "released": True}


@router.get("/alerts", response_model=AlertListResponse, status_code=status.HTTP_200_OK)
def list_alerts(
    limit: int = Query(default=50, ge=1, le=500),
    alert_type: Optional[List[AlertType]] = Query(default=None, alias="type"),
    driver_id: Optional[str] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
) -> AlertListResponse:
    try:
        alerts = services.alerts.recent(limit=limit, types=alert_type, driver_id=driver_id)
    except Exception as exc:
        raise http_error(exc, "list alerts") from exc
    return AlertListResponse(alerts=[AlertModel.from_alert(alert) for alert in alerts])
