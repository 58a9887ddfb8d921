"""Routing provider result models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ...models.domain import GeoPoint

STATUS_OK = "Ok"


@dataclass(slots=True)
class RouteLeg:
    distance_meters: float
    duration_seconds: float
    start_location: Optional[GeoPoint] = None
    end_location: Optional[GeoPoint] = None


@dataclass(slots=True)
class MultiStopRoute:
    """Answer to a multi-stop request.

    ``order[k]`` is the index (into the requested waypoints) of the k-th stop
    visited. ``legs`` run origin -> first stop -> ... -> last stop -> destination.
    """

    status: str
    order: List[int]
    legs: List[RouteLeg]
    geometry: str = ""
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass(slots=True)
class PointToPointEta:
    status: str
    duration_seconds: float = 0.0
    distance_meters: float = 0.0
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK
