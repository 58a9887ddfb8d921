"""Live trip monitoring services."""

from .arrival import ArrivalMonitor, LateArrivalResult
from .deviation import DeviationMonitor, DeviationResult
from .gps_ingest import GPSIngest, IngestResult
from .heatmap import heatmap

__all__ = [
    "ArrivalMonitor",
    "DeviationMonitor",
    "DeviationResult",
    "GPSIngest",
    "IngestResult",
    "LateArrivalResult",
    "heatmap",
]
