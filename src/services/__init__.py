"""Service layer: health tracking, analytics queries, metrics and caching."""

from .health import HealthTracker, Store

__all__ = ["HealthTracker", "Store"]
