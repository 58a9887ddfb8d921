"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class SchoolRouteError(Exception):
    """Base class for errors raised by the routing and monitoring services."""

    kind = "internal_error"
    status_code = 500


class InvalidInputError(SchoolRouteError, ValueError):
    """Malformed or missing input; fixable by the caller, never retried."""

    kind = "invalid_input"
    status_code = 400


class NotFoundError(SchoolRouteError):
    """A referenced driver, trip or route does not exist where it must."""

    kind = "not_found"
    status_code = 404


class RouteComputationError(SchoolRouteError):
    """The routing provider could not produce a usable answer."""

    kind = "provider_error"
    status_code = 502


class ProviderTimeoutError(RouteComputationError):
    """The routing provider did not answer within the configured timeout."""

    kind = "provider_timeout"
    status_code = 504


class PersistenceError(SchoolRouteError):
    """The backing store rejected or failed a read or write."""

    kind = "persistence_error"
    status_code = 500
