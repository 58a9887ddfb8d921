#!/usr/bin/env python3
"""Verify that the configured OSRM instance answers the requests the service makes."""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from schoolroute.config import settings
from schoolroute.errors import RouteComputationError
from schoolroute.models.domain import GeoPoint
from schoolroute.services.routing.osrm_client import OSRMClient, check_health

# Three points in central Berlin, covered by the public demo server.
DEPOT = GeoPoint(52.517037, 13.388860)
PICKUPS = [GeoPoint(52.496891, 13.385983), GeoPoint(52.508210, 13.376520)]


def main():
    print("=" * 60)
    print("OSRM Connection Test")
    print("=" * 60)
    print()

    print("1. Checking OSRM configuration...")
    if not settings.osrm_base_url:
        print("   [ERROR] OSRM base URL is not configured")
        print("   Please set SCHOOLROUTE_OSRM_BASE_URL in your .env file")
        return 1
    print(f"   [OK] OSRM Base URL: {settings.osrm_base_url}")
    print(f"   [OK] OSRM Profile: {settings.osrm_profile}")
    print()

    print("2. Testing OSRM health check...")
    if not check_health():
        print("   [ERROR] OSRM service is not responding")
        return 1
    print("   [OK] OSRM service is healthy and accessible!")
    print()

    client = OSRMClient()

    print("3. Testing optimized round trip (trip service)...")
    try:
        trip = client.multi_stop_route(DEPOT, DEPOT, PICKUPS, optimize_order=True)
    except RouteComputationError as e:
        print(f"   [ERROR] Trip request failed: {e}")
        return 1
    if not trip.ok:
        print(f"   [ERROR] OSRM answered {trip.status}: {trip.message}")
        return 1
    print(f"   [OK] Visiting order: {trip.order}")
    print(f"   [OK] {len(trip.legs)} legs, {sum(leg.duration_seconds for leg in trip.legs):.0f} s total")
    print()

    print("4. Testing point-to-point ETA (route service)...")
    try:
        eta = client.point_to_point_eta(PICKUPS[0], DEPOT)
    except RouteComputationError as e:
        print(f"   [ERROR] Route request failed: {e}")
        return 1
    if not eta.ok:
        print(f"   [ERROR] OSRM answered {eta.status}: {eta.message}")
        return 1
    print(f"   [OK] {eta.duration_seconds:.0f} s over {eta.distance_meters:.0f} m")
    print()

    print("=" * 60)
    print("[SUCCESS] OSRM is connected and working!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
