"""Pytest fixtures for reqmetrics tests."""

from collections.abc import AsyncIterator, Iterator, Sequence
import os
import threading

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("METRICS_REPORTER", "logging")
os.environ.setdefault("LOG_LEVEL", "INFO")

from reqmetrics.config import Settings
from reqmetrics.main import create_app
from reqmetrics.registry import DimensionAwareMetricsRegistry, MetricSnapshot, SelfReportingMetricsRegistry

# Long enough that no tick fires during a test unless the test asks for it
IDLE_INTERVAL_SECONDS = 3600.0


class RecordingReporter:
    """Reporter double that keeps every batch it receives."""

    def __init__(self, fail_times: int = 0) -> None:
        self.calls: list[list[MetricSnapshot]] = []
        self.fail_times = fail_times
        self._condition = threading.Condition()

    def report(self, snapshots: Sequence[MetricSnapshot]) -> None:
        with self._condition:
            self.calls.append(list(snapshots))
            self._condition.notify_all()
            if self.fail_times > 0:
                self.fail_times -= 1
                raise RuntimeError("collector unavailable")

    def wait_for_calls(self, count: int, timeout: float = 2.0) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: len(self.calls) >= count, timeout=timeout)

    def reported_keys(self) -> set[str]:
        with self._condition:
            return {snapshot.key for batch in self.calls for snapshot in batch}


@pytest.fixture()
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture()
def registry() -> DimensionAwareMetricsRegistry:
    return DimensionAwareMetricsRegistry()


@pytest.fixture()
def reporting_registry(reporter: RecordingReporter) -> Iterator[SelfReportingMetricsRegistry]:
    """Self-reporting registry whose default loop stays idle for the test's duration."""

    metrics = SelfReportingMetricsRegistry(reporter, default_interval_seconds=IDLE_INTERVAL_SECONDS)
    yield metrics
    metrics.shutdown()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        report_interval_seconds=IDLE_INTERVAL_SECONDS,
        reporter="logging",
        final_flush=False,
    )


@pytest.fixture()
def app(settings: Settings, reporter: RecordingReporter) -> Iterator[FastAPI]:
    """Return a FastAPI application wired to the recording reporter."""

    application = create_app(settings, reporter=reporter)
    yield application
    application.state.metrics.shutdown()


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` configured for the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
