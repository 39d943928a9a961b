"""Dimension-aware metric storage keyed by name plus label values."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from reqmetrics.errors import MetricNotFoundError
from reqmetrics.lib.metrics import Metric
from reqmetrics.registry.dimensions import Dimensions, storage_key

DimensionsLike = Dimensions | Mapping[str, Any] | None


@dataclass(frozen=True)
class MetricWrapper:
    """Identity (name + dimensions) of a stored metric and the live metric object."""

    name: str
    dimensions: Dimensions
    metric: Metric


class DimensionAwareMetricsRegistry:
    """Stores metrics by name and dimensions.

    Every operation runs under a single lock, so the registry can be shared by
    any number of request handlers and reporting threads. Lookups that miss
    raise :class:`MetricNotFoundError`; nothing returns a sentinel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, MetricWrapper] = {}

    def has_metric(self, name: str, dimensions: DimensionsLike = None) -> bool:
        key = storage_key(name, dimensions)
        with self._lock:
            return key in self._metrics

    def get_metric(self, name: str, dimensions: DimensionsLike = None) -> Metric:
        return self.get_metric_wrapper_by_key(storage_key(name, dimensions)).metric

    def get_metric_wrapper_by_key(self, key: str) -> MetricWrapper:
        with self._lock:
            wrapper = self._metrics.get(key)
        if wrapper is None:
            raise MetricNotFoundError(key)
        return wrapper

    def put_metric(self, name: str, metric: Metric, dimensions: DimensionsLike = None) -> str:
        """Insert or replace the metric stored for ``name`` and ``dimensions``; return its key."""

        dims = Dimensions.of(dimensions)
        key = storage_key(name, dims)
        wrapper = MetricWrapper(name=name, dimensions=dims, metric=metric)
        with self._lock:
            self._metrics[key] = wrapper
        return key

    def get_or_create(
        self,
        name: str,
        dimensions: DimensionsLike,
        factory: Callable[[], Metric],
    ) -> tuple[MetricWrapper, bool]:
        """Return the wrapper for ``name``/``dimensions``, building it with ``factory`` if absent.

        The lookup and the insert happen under one lock acquisition, so callers
        racing on a new key all receive the same wrapper and ``factory`` runs
        once. The flag is ``True`` only for the caller that created it.
        """

        dims = Dimensions.of(dimensions)
        key = storage_key(name, dims)
        with self._lock:
            wrapper = self._metrics.get(key)
            if wrapper is not None:
                return wrapper, False
            wrapper = MetricWrapper(name=name, dimensions=dims, metric=factory())
            self._metrics[key] = wrapper
            return wrapper, True

    def all_keys(self) -> list[str]:
        with self._lock:
            return list(self._metrics)

    def wrappers(self) -> list[tuple[str, MetricWrapper]]:
        """Return a point-in-time copy of ``(key, wrapper)`` pairs."""

        with self._lock:
            return list(self._metrics.items())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._metrics

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
