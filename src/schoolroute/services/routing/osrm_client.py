"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ...config import settings
from ...errors import ProviderTimeoutError, RouteComputationError
from ...models.domain import GeoPoint
from .models import STATUS_OK, MultiStopRoute, PointToPointEta, RouteLeg

logger = logging.getLogger(__name__)


def _format_coordinates(points: Sequence[GeoPoint]) -> str:
    # OSRM expects "lon,lat;lon,lat;..."
    return ";".join(f"{point.lng:.6f},{point.lat:.6f}" for point in points)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self._transport,
        )

    def _get(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        """GET an OSRM endpoint with bounded retries.

        OSRM answers routing failures (``NoRoute``, ``NoTrips``...) with a 4xx
        status and a JSON body carrying ``code``; those bodies are returned as
        is so callers can read the status. Transport failures are retried and
        then raised as provider errors.
        """
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    if 400 <= response.status_code < 500:
                        try:
                            body = response.json()
                        except ValueError:
                            body = None
                        if isinstance(body, dict) and "code" in body:
                            return body
                    response.raise_for_status()
                    return response.json()
                except httpx.TimeoutException as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {attempt} attempt(s): {exc}")
                        raise ProviderTimeoutError(
                            f"OSRM did not answer within {self.timeout:.1f}s ({attempt} attempt(s))."
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM request timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except httpx.HTTPStatusError as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise RouteComputationError(
                            f"OSRM returned HTTP {exc.response.status_code} for {exc.request.url.path}."
                        ) from exc
                    time.sleep(self.backoff_seconds * attempt)
                except (httpx.TransportError, ValueError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise RouteComputationError(
                            f"Failed to reach OSRM service at {self.base_url}: {exc}"
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}")
                    time.sleep(wait_time)
        finally:
            client.close()

    def multi_stop_route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint],
        optimize_order: bool = True,
    ) -> MultiStopRoute:
        """Route from ``origin`` through every waypoint to ``destination``.

        With ``optimize_order`` the OSRM trip service solves the visiting
        order; a trip that starts and ends at the same point is requested as a
        round trip. Otherwise waypoints are visited in the given order through
        the route service.
        """
        if not waypoints:
            raise ValueError("At least one waypoint is required for a multi-stop route.")

        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        round_trip = origin == destination
        if optimize_order:
            coordinates = [origin, *waypoints] if round_trip else [origin, *waypoints, destination]
            params.update(
                {
                    "roundtrip": "true" if round_trip else "false",
                    "source": "first",
                    "destination": "any" if round_trip else "last",
                }
            )
            url = f"{self.base_url}/trip/v1/{self.profile}/{_format_coordinates(coordinates)}"
        else:
            coordinates = [origin, *waypoints, destination]
            url = f"{self.base_url}/route/v1/{self.profile}/{_format_coordinates(coordinates)}"

        data = self._get(url, params)
        code = str(data.get("code", "Unknown"))
        if code != STATUS_OK:
            logger.warning(f"OSRM multi-stop request failed with code {code}: {data.get('message')}")
            return MultiStopRoute(status=code, order=[], legs=[], message=data.get("message"))

        if optimize_order:
            route = (data.get("trips") or [{}])[0]
            positions = [int(waypoint["waypoint_index"]) for waypoint in data.get("waypoints", [])]
            # positions[i] is where input coordinate i sits in the trip; index 0 is the origin.
            stop_positions = positions[1 : 1 + len(waypoints)]
            order = sorted(range(len(waypoints)), key=lambda i: stop_positions[i]) if stop_positions else []
        else:
            route = (data.get("routes") or [{}])[0]
            order = list(range(len(waypoints)))

        visited = [origin, *(waypoints[i] for i in order), destination]
        legs = []
        for i, leg in enumerate(route.get("legs", [])):
            legs.append(
                RouteLeg(
                    distance_meters=float(leg.get("distance", 0.0)),
                    duration_seconds=float(leg.get("duration", 0.0)),
                    start_location=visited[i] if i < len(visited) else None,
                    end_location=visited[i + 1] if i + 1 < len(visited) else None,
                )
            )
        return MultiStopRoute(status=code, order=order, legs=legs, geometry=route.get("geometry") or "")

    def point_to_point_eta(self, origin: GeoPoint, destination: GeoPoint) -> PointToPointEta:
        url = f"{self.base_url}/route/v1/{self.profile}/{_format_coordinates([origin, destination])}"
        data = self._get(url, {"overview": "false", "steps": "false"})
        code = str(data.get("code", "Unknown"))
        if code != STATUS_OK or not data.get("routes"):
            return PointToPointEta(status=code if code != STATUS_OK else "NoRoute", message=data.get("message"))
        route = data["routes"][0]
        return PointToPointEta(
            status=code,
            duration_seconds=float(route.get("duration", 0.0)),
            distance_meters=float(route.get("distance", 0.0)),
        )


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a minimal two-point route request.

    Public OSRM endpoints may not have a /health endpoint, so connectivity is
    tested by routing between two fixed coordinates.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == STATUS_OK
    except (httpx.HTTPError, ValueError):
        return False
