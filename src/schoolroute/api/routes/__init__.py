"""Route group exports."""

from . import health, monitoring, routes

__all__ = ["health", "monitoring", "routes"]
