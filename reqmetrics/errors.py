"""Exception hierarchy shared by the registry, scheduler, and reporters."""

from __future__ import annotations


class MetricsError(Exception):
    """Base class for all reqmetrics errors."""


class MetricNotFoundError(MetricsError, KeyError):
    """Raised when a lookup targets a key that was never registered."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No metric registered under key '{self.key}'"


class DimensionTypeError(MetricsError, TypeError):
    """Raised when a dimension name or value is not a string."""


class MetricKindMismatchError(MetricsError, TypeError):
    """Raised when get-or-create finds a metric of a different kind under the key."""


class ReporterError(MetricsError, RuntimeError):
    """Raised by reporters when a snapshot could not be delivered."""
