"""Pydantic schemas describing reported metric snapshots."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from reqmetrics.lib.metrics import Counter, Gauge, MetricKind, Timer, TimerStats
from reqmetrics.registry.store import MetricWrapper


class TimerSnapshot(BaseModel):
    """Aggregated durations (milliseconds) for one reporting window."""

    count: int = Field(default=0, ge=0)
    total: float = 0.0
    mean: float | None = None
    min: float | None = None
    max: float | None = None

    @classmethod
    def from_stats(cls, stats: TimerStats) -> "TimerSnapshot":
        return cls(count=stats.count, total=stats.total, mean=stats.mean, min=stats.min, max=stats.max)


class MetricSnapshot(BaseModel):
    """Point-in-time value of one registered metric."""

    key: str
    name: str
    dimensions: dict[str, str] = Field(default_factory=dict)
    kind: MetricKind
    value: float | None = None
    timer: TimerSnapshot | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def capture(cls, key: str, wrapper: MetricWrapper, *, reset: bool) -> "MetricSnapshot":
        """Read ``wrapper``'s metric, applying the per-kind windowing policy when ``reset`` is set.

        Counters and timers start a new window after being read; gauges are
        reported as-is and keep their value.
        """

        metric = wrapper.metric
        payload: dict[str, object] = {
            "key": key,
            "name": wrapper.name,
            "dimensions": wrapper.dimensions.to_dict(),
            "kind": metric.kind,
        }
        if isinstance(metric, Counter):
            payload["value"] = metric.value_and_reset() if reset else metric.value()
        elif isinstance(metric, Timer):
            stats = metric.snapshot_and_reset() if reset else metric.snapshot()
            payload["value"] = stats.count
            payload["timer"] = TimerSnapshot.from_stats(stats)
        elif isinstance(metric, Gauge):
            payload["value"] = metric.value()
        else:  # pragma: no cover - registry only stores known kinds
            raise TypeError(f"Unsupported metric type {type(metric).__name__}")
        return cls(**payload)

    def json_payload(self) -> dict[str, object]:
        """Return JSON-serializable payload."""

        return self.model_dump(mode="json")
