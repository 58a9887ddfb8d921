"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...container import ServiceContainer
from ...services.routing.osrm_client import check_health as osrm_health_check
from ..dependencies import get_services

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm(services: ServiceContainer = Depends(get_services)) -> dict:
    """Check OSRM service health."""
    base_url = services.settings.osrm_base_url
    if not base_url:
        return {"service": "osrm", "healthy": False, "error": "OSRM base URL is not configured"}
    return {"service": "osrm", "healthy": osrm_health_check(base_url)}
