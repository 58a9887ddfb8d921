"""Shared helpers for the HTTP layer."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from ..container import ServiceContainer
from ..errors import SchoolRouteError


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def http_error(exc: Exception, action: str) -> HTTPException:
    """Map a service failure to an ``HTTPException`` the client can act on."""
    if isinstance(exc, SchoolRouteError):
        if exc.status_code >= 500:
            logging.warning(f"Failed to {action}: {exc}")
        return HTTPException(status_code=exc.status_code, detail={"error": exc.kind, "message": str(exc)})
    logging.exception(f"Unexpected error while trying to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "internal_error", "message": f"Failed to {action}: {exc}"},
    )
