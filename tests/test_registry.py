"""DimensionAwareMetricsRegistry storage semantics."""

from __future__ import annotations

import threading

import pytest

from reqmetrics.errors import DimensionTypeError, MetricNotFoundError
from reqmetrics.lib.metrics import Counter, Timer
from reqmetrics.registry import DimensionAwareMetricsRegistry, MetricWrapper


def test_put_then_get_returns_same_metric(registry: DimensionAwareMetricsRegistry) -> None:
    timer = Timer()
    registry.put_metric("requests", timer, {"method": "GET", "uri": "/hello"})

    assert registry.get_metric("requests", {"uri": "/hello", "method": "GET"}) is timer
    assert registry.has_metric("requests", {"method": "GET", "uri": "/hello"})
    assert not registry.has_metric("requests", {"method": "POST", "uri": "/hello"})


def test_put_returns_stable_key(registry: DimensionAwareMetricsRegistry) -> None:
    first = registry.put_metric("requests", Counter(), {"method": "GET"})
    second = registry.put_metric("requests", Counter(), {"method": "GET"})

    assert first == second == "requests-GET"
    assert registry.all_keys() == ["requests-GET"]


def test_put_overwrites_existing_metric(registry: DimensionAwareMetricsRegistry) -> None:
    replacement = Counter()
    registry.put_metric("jobs", Counter())
    registry.put_metric("jobs", replacement)

    assert registry.get_metric("jobs") is replacement
    assert len(registry) == 1


def test_missing_metric_raises_not_found(registry: DimensionAwareMetricsRegistry) -> None:
    with pytest.raises(MetricNotFoundError):
        registry.get_metric("requests", {"method": "GET"})
    with pytest.raises(KeyError):
        registry.get_metric_wrapper_by_key("requests-GET")


def test_wrapper_by_key_exposes_identity(registry: DimensionAwareMetricsRegistry) -> None:
    key = registry.put_metric("requests", Timer(), {"statusCode": "201", "method": "POST", "uri": "/world"})

    wrapper = registry.get_metric_wrapper_by_key(key)
    assert isinstance(wrapper, MetricWrapper)
    assert key == "requests-POST-201-/world"
    assert wrapper.name == "requests"
    assert wrapper.dimensions == {"statusCode": "201", "method": "POST", "uri": "/world"}
    assert key in registry


def test_invalid_dimensions_leave_registry_untouched(registry: DimensionAwareMetricsRegistry) -> None:
    with pytest.raises(DimensionTypeError):
        registry.put_metric("requests", Counter(), {"statusCode": 200})

    assert registry.all_keys() == []


def test_get_or_create_reuses_existing(registry: DimensionAwareMetricsRegistry) -> None:
    first, created_first = registry.get_or_create("jobs", {"queue": "a"}, Counter)
    second, created_second = registry.get_or_create("jobs", {"queue": "a"}, Counter)

    assert first is second
    assert (created_first, created_second) == (True, False)


def test_concurrent_get_or_create_builds_one_wrapper(registry: DimensionAwareMetricsRegistry) -> None:
    registry.put_metric("other", Counter())
    keys_before = len(registry.all_keys())
    workers = 16
    barrier = threading.Barrier(workers)
    factory_calls: list[int] = []
    results: list[tuple[MetricWrapper, bool]] = []
    results_lock = threading.Lock()

    def factory() -> Timer:
        factory_calls.append(1)
        return Timer()

    def worker() -> None:
        barrier.wait()
        outcome = registry.get_or_create("requests", {"method": "GET", "uri": "/new"}, factory)
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    wrappers = {id(wrapper) for wrapper, _ in results}
    assert len(factory_calls) == 1
    assert len(wrappers) == 1
    assert sum(created for _, created in results) == 1
    assert len(registry.all_keys()) == keys_before + 1


def test_all_keys_lists_each_key_once(registry: DimensionAwareMetricsRegistry) -> None:
    for method in ("GET", "POST", "GET", "PUT", "POST"):
        registry.get_or_create("requests", {"method": method}, Timer)

    keys = registry.all_keys()
    assert sorted(keys) == ["requests-GET", "requests-POST", "requests-PUT"]
    assert len(keys) == len(set(keys))
