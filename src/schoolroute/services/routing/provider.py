"""Contract the route optimizer and arrival monitor need from a routing provider."""

from __future__ import annotations

from typing import Protocol, Sequence

from ...errors import RouteComputationError
from ...models.domain import GeoPoint
from .models import MultiStopRoute, PointToPointEta


class RoutingProvider(Protocol):
    def multi_stop_route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint],
        optimize_order: bool = True,
    ) -> MultiStopRoute:
        ...

    def point_to_point_eta(self, origin: GeoPoint, destination: GeoPoint) -> PointToPointEta:
        ...


class UnavailableProvider:
    """Stand-in used when no routing backend is configured; every call fails."""

    def __init__(self, reason: str = "Routing provider is not configured.") -> None:
        self.reason = reason

    def multi_stop_route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint],
        optimize_order: bool = True,
    ) -> MultiStopRoute:
        raise RouteComputationError(self.reason)

    def point_to_point_eta(self, origin: GeoPoint, destination: GeoPoint) -> PointToPointEta:
        raise RouteComputationError(self.reason)
