"""Ping-density aggregation for the driver heatmap."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Optional

from ...models.domain import HeatmapCell
from ...persistence.base import PingRepository

# Four decimals is roughly an 11 m cell at the equator.
CELL_PRECISION = 4


def _hour_bucket(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def heatmap(
    pings: PingRepository,
    driver_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[HeatmapCell]:
    """Count a driver's pings per rounded location and hour, newest hour first."""
    counts: Counter[tuple[float, float, datetime]] = Counter()
    for ping in pings.in_range(driver_id, start=start, end=end):
        key = (
            round(ping.location.lat, CELL_PRECISION),
            round(ping.location.lng, CELL_PRECISION),
            _hour_bucket(ping.received_at),
        )
        counts[key] += 1
    cells = [
        HeatmapCell(lat=lat, lng=lng, weight=weight, time_group=hour)
        for (lat, lng, hour), weight in counts.items()
    ]
    cells.sort(key=lambda cell: (cell.time_group, cell.weight), reverse=True)
    return cells
