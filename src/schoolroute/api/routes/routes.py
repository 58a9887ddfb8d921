"""Routing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...container import ServiceContainer
from ...schemas.routing import (
    RouteHistoryResponse,
    RouteOptimizeRequest,
    RouteResponse,
    RouteStalenessResponse,
)
from ..dependencies import get_services, http_error

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def optimize(payload: RouteOptimizeRequest, services: ServiceContainer = Depends(get_services)) -> RouteResponse:
    """Order the pickups, schedule ETAs and store the result as the pair's active route."""
    try:
        route = services.planner.generate(
            driver_id=payload.driver_id,
            school_id=payload.school_id,
            depot=payload.depot.to_point(),
            stops=[stop.to_stop() for stop in payload.stops],
            scheduled_arrival=payload.scheduled_arrival,
        )
    except Exception as exc:
        raise http_error(exc, "optimize route") from exc
    return RouteResponse.from_route(route)


# Declared before the two-segment lookup below so "history" and "staleness" are not read as ids.
@router.get("/history/{driver_id}", response_model=RouteHistoryResponse, status_code=status.HTTP_200_OK)
def route_history(
    driver_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    services: ServiceContainer = Depends(get_services),
) -> RouteHistoryResponse:
    try:
        routes = services.route_store.history(driver_id, limit=limit, offset=offset)
    except Exception as exc:
        raise http_error(exc, "load route history") from exc
    return RouteHistoryResponse(driver_id=driver_id, routes=[RouteResponse.from_route(route) for route in routes])


@router.get("/{route_id}/staleness", response_model=RouteStalenessResponse, status_code=status.HTTP_200_OK)
def route_staleness(route_id: str, services: ServiceContainer = Depends(get_services)) -> RouteStalenessResponse:
    try:
        stale = services.route_store.needs_regeneration(route_id)
    except Exception as exc:
        raise http_error(exc, "check route staleness") from exc
    return RouteStalenessResponse(route_id=route_id, needs_regeneration=stale)


@router.get("/{driver_id}/{school_id}", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def active_route(
    driver_id: str,
    school_id: str,
    services: ServiceContainer = Depends(get_services),
) -> RouteResponse:
    """Return the active route of a driver and school, regenerating it first when stale."""
    try:
        route, regenerated = services.planner.active_route(driver_id, school_id)
    except Exception as exc:
        raise http_error(exc, "load active route") from exc
    return RouteResponse.from_route(route, regenerated=regenerated)
