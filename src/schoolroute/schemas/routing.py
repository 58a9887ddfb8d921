"""Routing request/response schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, Field

from ..models.domain import GeoPoint, OptimizedRoute, Stop


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps from clients as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class LocationModel(BaseModel):
    # Range checks happen in GeoPoint.checked so bad coordinates surface as invalid_input.
    lat: float
    lng: float

    def to_point(self) -> GeoPoint:
        return GeoPoint.checked(self.lat, self.lng)

    @classmethod
    def from_point(cls, point: GeoPoint) -> "LocationModel":
        return cls(lat=point.lat, lng=point.lng)


class StopRequest(BaseModel):
    student_id: str
    lat: Optional[float] = Field(default=None, description="Pickup latitude; omit when unresolved.")
    lng: Optional[float] = Field(default=None, description="Pickup longitude; omit when unresolved.")
    address: str = ""

    def to_stop(self) -> Stop:
        location = None
        if self.lat is not None and self.lng is not None:
            location = GeoPoint.checked(self.lat, self.lng)
        return Stop(student_id=self.student_id, location=location, address=self.address)


class RouteOptimizeRequest(BaseModel):
    driver_id: str
    school_id: str
    depot: LocationModel = Field(..., description="Start and end of the route (the driver's base).")
    stops: List[StopRequest]
    scheduled_arrival: UtcDatetime = Field(..., description="Time the bus is due back at the depot.")


class StopEtaModel(BaseModel):
    student_id: str
    sequence: int
    estimated_arrival: datetime
    leg_duration_seconds: float
    leg_distance_meters: float


class RouteResponse(BaseModel):
    route_id: str
    driver_id: str
    school_id: str
    active: bool
    stop_order: List[str]
    stops: List[StopEtaModel]
    geometry: str
    total_duration_minutes: float
    total_distance_km: float
    generated_at: datetime
    scheduled_arrival: Optional[datetime] = None
    regenerated: bool = False

    @classmethod
    def from_route(cls, route: OptimizedRoute, regenerated: bool = False) -> "RouteResponse":
        return cls(
            route_id=route.id,
            driver_id=route.driver_id,
            school_id=route.school_id,
            active=route.active,
            stop_order=list(route.stop_order),
            stops=[
                StopEtaModel(
                    student_id=eta.student_id,
                    sequence=index + 1,
                    estimated_arrival=eta.estimated_arrival,
                    leg_duration_seconds=eta.leg_duration_seconds,
                    leg_distance_meters=eta.leg_distance_meters,
                )
                for index, eta in enumerate(route.per_stop_eta)
            ],
            geometry=route.geometry,
            total_duration_minutes=round(route.total_duration_seconds / 60.0, 2),
            total_distance_km=round(route.total_distance_meters / 1000.0, 3),
            generated_at=route.generated_at,
            scheduled_arrival=route.scheduled_arrival,
            regenerated=regenerated,
        )


class RouteStalenessResponse(BaseModel):
    route_id: str
    needs_regeneration: bool


class RouteHistoryResponse(BaseModel):
    driver_id: str
    routes: List[RouteResponse]
