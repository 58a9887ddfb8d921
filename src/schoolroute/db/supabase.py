"""Supabase client for Python backend."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client(url: str | None = None, key: str | None = None) -> Client | None:
    """Get cached Supabase client instance.

    ``url`` and ``key`` default to the configured settings.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    url = url or settings.supabase_url
    key = key or settings.supabase_key
    if not url or not key:
        logger.info("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(url, key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


# Tables and RPCs used by persistence.database:
#
# driver_routes(id, driver_id, school_id, stop_order jsonb, per_stop_eta jsonb,
#               polyline, estimated_duration, estimated_distance,
#               last_generated_at, is_active, route_data jsonb)
# gps_logs(driver_id, lat, lng, trip_id, speed, heading, accuracy, timestamp, device_time)
# alerts(id, type, severity, driver_id, trip_id, metadata jsonb, created_at)
# trips(id, driver_id, school_id, route_id, scheduled_at, status)
#   -> drivers(current_location_lat, current_location_lng)
#   -> schools(location_lat, location_lng)
#
# replace_active_driver_route(p_route jsonb): in one transaction sets
# is_active = false on the active row of (driver_id, school_id) and inserts p_route.
