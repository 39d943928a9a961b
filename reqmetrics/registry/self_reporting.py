"""Registry wrapper that reports its metrics on fixed-rate background loops."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Callable, TypeVar

from reqmetrics.errors import MetricKindMismatchError
from reqmetrics.lib.logger import get_logger
from reqmetrics.lib.metrics import Counter, Gauge, Metric, Timer
from reqmetrics.registry.dimensions import storage_key
from reqmetrics.registry.schemas import MetricSnapshot
from reqmetrics.registry.store import DimensionAwareMetricsRegistry, DimensionsLike

if TYPE_CHECKING:
    from reqmetrics.reporting.reporters import Reporter

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0

M = TypeVar("M", Counter, Timer, Gauge)


class _ReportingLoop(threading.Thread):
    """Daemon thread calling ``tick`` every ``interval_seconds`` at a fixed rate.

    The stop event doubles as the sleep primitive, so ``stop()`` wakes the loop
    immediately. When a tick overruns its slot the next one starts right after
    it and the schedule restarts from there instead of firing the missed ticks.
    """

    def __init__(self, interval_seconds: float, tick: Callable[[float], None]) -> None:
        super().__init__(name=f"reqmetrics-report-{interval_seconds:g}s", daemon=True)
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.debug("metrics.loop.started", extra={"interval_seconds": self.interval_seconds})
        next_tick = time.monotonic() + self.interval_seconds
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self._tick(self.interval_seconds)
            next_tick += self.interval_seconds
            now = time.monotonic()
            if next_tick < now:
                logger.warning(
                    "metrics.loop.overrun",
                    extra={"interval_seconds": self.interval_seconds, "behind_seconds": now - next_tick},
                )
                next_tick = now
        logger.debug("metrics.loop.stopped", extra={"interval_seconds": self.interval_seconds})

    def stop(self) -> None:
        self._stop_event.set()
        # A reporter calling shutdown() runs on this thread and cannot join itself
        if threading.current_thread() is not self and self.is_alive():
            self.join()


class SelfReportingMetricsRegistry:
    """Owns a :class:`DimensionAwareMetricsRegistry` and ships its metrics to a reporter.

    Each metric is scheduled on one reporting interval (the default unless the
    caller asks for another). Every distinct interval gets its own loop; the
    default loop starts as soon as the registry is constructed, others start
    the first time a metric is scheduled on them. Metrics placed straight into
    the underlying registry (before injection or through :attr:`registry`)
    report on the default interval.

    Windowing per kind when a tick reports a metric:

    * ``Counter`` reports the count since the previous tick, then restarts at 0.
    * ``Timer`` reports the window's count/total/mean/min/max, then restarts.
    * ``Gauge`` reports its last-set value and keeps it.
    """

    def __init__(
        self,
        reporter: "Reporter",
        *,
        registry: DimensionAwareMetricsRegistry | None = None,
        default_interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._reporter = reporter
        self._registry = registry if registry is not None else DimensionAwareMetricsRegistry()
        self.default_interval_seconds = _validate_interval(default_interval_seconds)
        self._lock = threading.Lock()
        self._loops: dict[float, _ReportingLoop] = {}
        self._intervals: dict[str, float] = {}
        self._shut_down = False
        with self._lock:
            self._ensure_loop(self.default_interval_seconds)

    @property
    def registry(self) -> DimensionAwareMetricsRegistry:
        return self._registry

    @property
    def is_shut_down(self) -> bool:
        with self._lock:
            return self._shut_down

    def register(
        self,
        name: str,
        metric: Metric,
        dimensions: DimensionsLike = None,
        interval_seconds: float | None = None,
    ) -> str:
        """Store ``metric`` (replacing any previous one) and schedule it for reporting."""

        key = self._registry.put_metric(name, metric, dimensions)
        self._schedule(key, interval_seconds, replace=True)
        return key

    def get_or_create_counter(
        self, name: str, dimensions: DimensionsLike = None, interval_seconds: float | None = None
    ) -> Counter:
        return self._get_or_create(name, dimensions, Counter, interval_seconds)

    def get_or_create_timer(
        self, name: str, dimensions: DimensionsLike = None, interval_seconds: float | None = None
    ) -> Timer:
        return self._get_or_create(name, dimensions, Timer, interval_seconds)

    def get_or_create_gauge(
        self, name: str, dimensions: DimensionsLike = None, interval_seconds: float | None = None
    ) -> Gauge:
        return self._get_or_create(name, dimensions, Gauge, interval_seconds)

    def snapshot(self, *, reset: bool = False) -> list[MetricSnapshot]:
        """Capture every registered metric; only resets windows when ``reset`` is set."""

        return [MetricSnapshot.capture(key, wrapper, reset=reset) for key, wrapper in self._registry.wrappers()]

    def flush(self) -> None:
        """Report every registered metric now, regardless of its interval."""

        self._deliver(self.snapshot(reset=True), interval_seconds=None)

    def shutdown(self, final_flush: bool = False) -> None:
        """Stop all reporting loops; later calls do nothing.

        A tick already running is allowed to finish before this returns, and no
        tick starts afterwards. Nothing is reported on the way out unless
        ``final_flush`` is set.
        """

        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True
            loops = list(self._loops.values())

        for loop in loops:
            loop.stop()
        logger.info("metrics.registry.shutdown", extra={"loops": len(loops), "final_flush": final_flush})

        if final_flush:
            self.flush()

    def _get_or_create(
        self,
        name: str,
        dimensions: DimensionsLike,
        metric_type: type[M],
        interval_seconds: float | None,
    ) -> M:
        wrapper, _ = self._registry.get_or_create(name, dimensions, metric_type)
        metric = wrapper.metric
        if not isinstance(metric, metric_type):
            raise MetricKindMismatchError(
                f"Metric '{name}' is a {metric.kind}, not a {metric_type.kind}"
            )
        self._schedule(storage_key(name, wrapper.dimensions), interval_seconds, replace=False)
        return metric

    def _schedule(self, key: str, interval_seconds: float | None, *, replace: bool) -> None:
        interval = (
            self.default_interval_seconds if interval_seconds is None else _validate_interval(interval_seconds)
        )
        with self._lock:
            if not replace and key in self._intervals:
                return
            self._intervals[key] = interval
            if not self._shut_down:
                self._ensure_loop(interval)

    def _ensure_loop(self, interval: float) -> None:
        # Caller holds self._lock
        if interval in self._loops:
            return
        loop = _ReportingLoop(interval, self._report_interval)
        self._loops[interval] = loop
        loop.start()

    def _report_interval(self, interval_seconds: float) -> None:
        with self._lock:
            intervals = dict(self._intervals)
        snapshots = [
            MetricSnapshot.capture(key, wrapper, reset=True)
            for key, wrapper in self._registry.wrappers()
            if intervals.get(key, self.default_interval_seconds) == interval_seconds
        ]
        if snapshots:
            self._deliver(snapshots, interval_seconds=interval_seconds)

    def _deliver(self, snapshots: list[MetricSnapshot], *, interval_seconds: float | None) -> None:
        try:
            self._reporter.report(snapshots)
        except Exception:
            logger.exception(
                "metrics.report.failed",
                extra={"interval_seconds": interval_seconds, "count": len(snapshots)},
            )


def _validate_interval(value: float) -> float:
    interval = float(value)
    if interval <= 0:
        raise ValueError("Reporting interval must be positive")
    return interval
