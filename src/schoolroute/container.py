"""Service wiring for the API process."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .config import Settings
from .db.supabase import get_supabase_client
from .persistence.base import AlertRepository, PingRepository, RouteRepository, TripRepository
from .persistence.database import (
    SupabaseAlertRepository,
    SupabasePingRepository,
    SupabaseRouteRepository,
    SupabaseTripRepository,
)
from .persistence.memory import (
    InMemoryAlertRepository,
    InMemoryPingRepository,
    InMemoryRouteRepository,
    InMemoryTripRepository,
)
from .services.alerts import AlertService, AlertSink, CompositeAlertSink, LoggingAlertSink, WebhookAlertSink
from .services.monitoring import ArrivalMonitor, DeviationMonitor, GPSIngest
from .services.routing.optimizer import RouteOptimizer
from .services.routing.osrm_client import OSRMClient
from .services.routing.provider import RoutingProvider, UnavailableProvider
from .services.routing.service import RoutePlanningService
from .services.routing.store import RouteStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    provider: RoutingProvider
    pings: PingRepository
    trips: TripRepository
    route_store: RouteStore
    planner: RoutePlanningService
    alerts: AlertService
    deviation: DeviationMonitor
    arrival: ArrivalMonitor
    gps: GPSIngest
    webhook: Optional[WebhookAlertSink] = field(default=None)

    def close(self) -> None:
        if self.webhook is not None:
            self.webhook.close()


def build_container(
    settings: Settings,
    provider: Optional[RoutingProvider] = None,
    routes: Optional[RouteRepository] = None,
    pings: Optional[PingRepository] = None,
    alerts: Optional[AlertRepository] = None,
    trips: Optional[TripRepository] = None,
    sink: Optional[AlertSink] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ServiceContainer:
    """Build every service from ``settings``.

    Arguments left as ``None`` are created here: Supabase repositories when a
    client is configured, in-memory ones otherwise, and an OSRM client when a
    base URL is set.
    """
    if provider is None:
        if settings.osrm_base_url:
            provider = OSRMClient(
                base_url=settings.osrm_base_url,
                profile=settings.osrm_profile,
                timeout=settings.osrm_timeout_seconds,
                max_retries=settings.osrm_max_retries,
                backoff_seconds=settings.osrm_backoff_seconds,
            )
        else:
            logger.warning("OSRM base URL not configured; route generation and ETA checks will fail")
            provider = UnavailableProvider("OSRM base URL is not configured.")

    client = None
    if None in (routes, pings, alerts, trips) and settings.supabase_url and settings.supabase_key:
        client = get_supabase_client(settings.supabase_url, settings.supabase_key)
        if client is None:
            logger.error("Supabase is configured but no client could be created; using in-memory persistence")
    if client is not None:
        logger.info("Using Supabase persistence")
        routes = routes if routes is not None else SupabaseRouteRepository(client)
        pings = pings if pings is not None else SupabasePingRepository(client)
        alerts = alerts if alerts is not None else SupabaseAlertRepository(client)
        trips = trips if trips is not None else SupabaseTripRepository(client)
    else:
        routes = routes if routes is not None else InMemoryRouteRepository()
        pings = pings if pings is not None else InMemoryPingRepository()
        alerts = alerts if alerts is not None else InMemoryAlertRepository()
        trips = trips if trips is not None else InMemoryTripRepository()

    webhook = None
    if sink is None:
        sinks: list[AlertSink] = [LoggingAlertSink()]
        if settings.alert_webhook_url:
            webhook = WebhookAlertSink(settings.alert_webhook_url)
            sinks.append(webhook)
        sink = CompositeAlertSink(sinks)

    route_store = RouteStore(routes, staleness=timedelta(hours=settings.route_staleness_hours))
    alert_service = AlertService(alerts, sink)
    optimizer = RouteOptimizer(provider)
    deviation = DeviationMonitor(
        route_store,
        trips,
        alert_service,
        threshold_meters=settings.deviation_threshold_meters,
        match_mode=settings.deviation_match_mode,
        max_cached_trips=settings.max_cached_trips,
        cache_ttl_seconds=settings.route_cache_ttl_seconds,
    )
    # Regenerated routes must replace cached geometry before the next ping is checked.
    route_store.add_listener(deviation.on_route_saved)

    return ServiceContainer(
        settings=settings,
        provider=provider,
        pings=pings,
        trips=trips,
        route_store=route_store,
        planner=RoutePlanningService(optimizer, route_store),
        alerts=alert_service,
        deviation=deviation,
        arrival=ArrivalMonitor(
            provider,
            trips,
            alert_service,
            grace=timedelta(minutes=settings.late_grace_minutes),
        ),
        gps=GPSIngest(
            pings,
            alert_service,
            deviation,
            gps_timeout=timedelta(seconds=settings.gps_timeout_seconds),
            max_tracked_drivers=settings.max_tracked_drivers,
            state_ttl_seconds=settings.driver_state_ttl_seconds,
            clock=clock,
        ),
        webhook=webhook,
    )
