"""Thread-safe in-memory metric types: counters, timers, and gauges."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ClassVar, Iterator, Literal, Union

MetricKind = Literal["counter", "timer", "gauge"]


class Counter:
    """Resettable event count."""

    kind: ClassVar[MetricKind] = "counter"

    def __init__(self, count: int = 0) -> None:
        self._lock = threading.Lock()
        self._count = count

    def increment(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def value(self) -> int:
        with self._lock:
            return self._count

    def value_and_reset(self) -> int:
        """Return the current count and start a new window at zero in one step."""

        with self._lock:
            count, self._count = self._count, 0
        return count

    def __repr__(self) -> str:
        return f"Counter(count={self.value()})"


@dataclass(frozen=True)
class TimerStats:
    """Aggregates of the durations recorded during one window, in milliseconds."""

    count: int = 0
    total: float = 0.0
    min: float | None = None
    max: float | None = None

    @property
    def mean(self) -> float | None:
        if self.count == 0:
            return None
        return self.total / self.count


class _TimerWindow:
    __slots__ = ("count", "total", "min", "max")

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0
        self.min: float | None = None
        self.max: float | None = None

    def add(self, duration: float) -> None:
        self.count += 1
        self.total += duration
        if self.min is None or duration < self.min:
            self.min = duration
        if self.max is None or duration > self.max:
            self.max = duration

    def stats(self) -> TimerStats:
        return TimerStats(count=self.count, total=self.total, min=self.min, max=self.max)


class Timer:
    """Records durations in milliseconds; every record also bumps the count."""

    kind: ClassVar[MetricKind] = "timer"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._window = _TimerWindow()

    def record(self, duration_millis: float) -> None:
        if duration_millis < 0:
            raise ValueError("Timer durations cannot be negative")
        with self._lock:
            self._window.add(float(duration_millis))

    @contextmanager
    def time(self) -> Iterator[None]:
        """Record the wall time spent inside the ``with`` block."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.record((time.perf_counter() - start) * 1000.0)

    def snapshot(self) -> TimerStats:
        with self._lock:
            return self._window.stats()

    def snapshot_and_reset(self) -> TimerStats:
        """Swap in a fresh accumulator and return the stats of the old one."""

        fresh = _TimerWindow()
        with self._lock:
            window, self._window = self._window, fresh
        return window.stats()

    def __repr__(self) -> str:
        return f"Timer({self.snapshot()!r})"


class Gauge:
    """Holds the last value it was set to; never reset by reporting."""

    kind: ClassVar[MetricKind] = "gauge"

    def __init__(self, value: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._value = float(value)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def value(self) -> float:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"Gauge(value={self.value()})"


Metric = Union[Counter, Timer, Gauge]
