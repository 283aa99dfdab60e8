"""app-metrics – periodic runtime and system metrics for embedding in Python services."""

from .collector.base import BaseCollector, CollectorState, MetricSample, Snapshot
from .collector.runtime import RuntimeCollector, RuntimeStats
from .collector.system import SystemCollector, SystemStats

__version__ = "0.1.0"

__all__ = [
    "BaseCollector",
    "CollectorState",
    "MetricSample",
    "RuntimeCollector",
    "RuntimeStats",
    "Snapshot",
    "SystemCollector",
    "SystemStats",
    "__version__",
]
