"""Snapshot delivery backends."""

from reqmetrics.reporting.reporters import HttpReporter, LoggingReporter, Reporter

__all__ = ["HttpReporter", "LoggingReporter", "Reporter"]
