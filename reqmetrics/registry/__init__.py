"""Dimension-aware metric registries."""

from reqmetrics.registry.dimensions import KEY_DELIMITER, Dimensions, storage_key
from reqmetrics.registry.schemas import MetricSnapshot, TimerSnapshot
from reqmetrics.registry.self_reporting import SelfReportingMetricsRegistry
from reqmetrics.registry.store import DimensionAwareMetricsRegistry, MetricWrapper

__all__ = [
    "KEY_DELIMITER",
    "DimensionAwareMetricsRegistry",
    "Dimensions",
    "MetricSnapshot",
    "MetricWrapper",
    "SelfReportingMetricsRegistry",
    "TimerSnapshot",
    "storage_key",
]
