"""Pickup ordering and ETA scheduling for a school route."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from ...errors import InvalidInputError, RouteComputationError
from ...models.domain import GeoPoint, OptimizedRoute, Stop, StopETA
from .models import MultiStopRoute
from .provider import RoutingProvider

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_stops(stops: Sequence[Stop]) -> list[Stop]:
    if not stops:
        raise InvalidInputError("At least one stop is required to build a route.")
    seen: set[str] = set()
    validated: list[Stop] = []
    for stop in stops:
        if not stop.student_id:
            raise InvalidInputError("Every stop needs a student id.")
        if stop.student_id in seen:
            raise InvalidInputError(f"Student {stop.student_id} appears more than once in the stop set.")
        seen.add(stop.student_id)
        if stop.location is None:
            raise InvalidInputError(f"Stop for student {stop.student_id} has no resolvable location.")
        # Re-check in case the point was built without GeoPoint.checked.
        location = GeoPoint.checked(stop.location.lat, stop.location.lng)
        validated.append(Stop(student_id=stop.student_id, location=location, address=stop.address))
    return validated


def _check_provider_answer(answer: MultiStopRoute, stop_count: int) -> None:
    if not answer.ok:
        detail = f": {answer.message}" if answer.message else ""
        raise RouteComputationError(f"Routing provider returned status '{answer.status}'{detail}")
    if sorted(answer.order) != list(range(stop_count)):
        raise RouteComputationError(
            f"Routing provider returned visiting order {answer.order}, "
            f"which is not a permutation of {stop_count} stop(s)."
        )
    if len(answer.legs) != stop_count + 1:
        raise RouteComputationError(
            f"Routing provider returned {len(answer.legs)} leg(s) for a round trip through {stop_count} stop(s)."
        )


def schedule_etas(
    stop_order: Sequence[str],
    legs: Sequence[tuple[float, float]],
    scheduled_arrival: datetime,
) -> list[StopETA]:
    """Turn leg (duration, distance) pairs into absolute per-stop ETAs.

    ``legs[0]`` runs from the depot to the first stop and ``legs[k]`` departs
    stop ``k - 1``. The schedule is anchored so that the last stop's ETA plus
    the return leg lands exactly on ``scheduled_arrival``.
    """
    if len(legs) != len(stop_order) + 1:
        raise ValueError("Expected one leg more than there are stops.")
    total = sum(duration for duration, _ in legs)
    current = scheduled_arrival - timedelta(seconds=total) + timedelta(seconds=legs[0][0])
    etas: list[StopETA] = []
    for position, student_id in enumerate(stop_order):
        duration, distance = legs[position + 1]
        etas.append(
            StopETA(
                student_id=student_id,
                estimated_arrival=current,
                leg_duration_seconds=duration,
                leg_distance_meters=distance,
            )
        )
        current = current + timedelta(seconds=duration)
    return etas


class RouteOptimizer:
    """Orders pickups through an external routing provider and derives ETAs.

    The combinatorial ordering is delegated to the provider. This class
    composes the request, validates the answer and converts leg durations
    into a schedule ending at the school's arrival time.
    """

    def __init__(self, provider: RoutingProvider, clock: Callable[[], datetime] = utc_now) -> None:
        self.provider = provider
        self.clock = clock

    def optimize(
        self,
        driver_id: str,
        school_id: str,
        depot: GeoPoint,
        stops: Sequence[Stop],
        scheduled_arrival: datetime,
    ) -> OptimizedRoute:
        if not driver_id or not school_id:
            raise InvalidInputError("Driver id and school id are required.")
        depot = GeoPoint.checked(depot.lat, depot.lng)
        validated = _validate_stops(stops)
        if scheduled_arrival.tzinfo is None:
            scheduled_arrival = scheduled_arrival.replace(tzinfo=timezone.utc)

        logger.info(
            f"Optimizing route for driver {driver_id} / school {school_id} "
            f"with {len(validated)} stop(s), arrival {scheduled_arrival.isoformat()}"
        )
        answer = self.provider.multi_stop_route(
            origin=depot,
            destination=depot,
            waypoints=[stop.location for stop in validated],
            optimize_order=True,
        )
        _check_provider_answer(answer, len(validated))

        ordered = [validated[index] for index in answer.order]
        stop_order = tuple(stop.student_id for stop in ordered)
        leg_pairs = [(leg.duration_seconds, leg.distance_meters) for leg in answer.legs]
        etas = schedule_etas(stop_order, leg_pairs, scheduled_arrival)

        route = OptimizedRoute(
            id=uuid.uuid4().hex,
            driver_id=driver_id,
            school_id=school_id,
            stop_order=stop_order,
            per_stop_eta=tuple(etas),
            geometry=answer.geometry,
            total_duration_seconds=sum(duration for duration, _ in leg_pairs),
            total_distance_meters=sum(distance for _, distance in leg_pairs),
            generated_at=self.clock(),
            active=True,
            depot=depot,
            scheduled_arrival=scheduled_arrival,
            stops=tuple(ordered),
            first_leg_duration_seconds=leg_pairs[0][0],
            first_leg_distance_meters=leg_pairs[0][1],
        )
        logger.info(
            f"Route {route.id}: {route.total_distance_meters / 1000:.2f} km, "
            f"{route.total_duration_seconds / 60:.1f} min, order {list(stop_order)}"
        )
        return route
