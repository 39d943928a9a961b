"""Counter, Timer, and Gauge behaviour."""

from __future__ import annotations

import threading

import pytest

from reqmetrics.lib.metrics import Counter, Gauge, Timer


def test_counter_value_and_reset_starts_new_window() -> None:
    counter = Counter()
    counter.increment()
    counter.increment(4)

    assert counter.value() == 5
    assert counter.value_and_reset() == 5
    assert counter.value() == 0


def test_counter_reset_never_drops_concurrent_increments() -> None:
    counter = Counter()
    workers, per_worker = 8, 2000
    done = threading.Event()
    drained: list[int] = []

    def drain() -> None:
        while not done.is_set():
            drained.append(counter.value_and_reset())

    def bump() -> None:
        for _ in range(per_worker):
            counter.increment()

    drainer = threading.Thread(target=drain)
    drainer.start()
    threads = [threading.Thread(target=bump) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    done.set()
    drainer.join()

    assert sum(drained) + counter.value() == workers * per_worker


def test_timer_aggregates_window() -> None:
    timer = Timer()
    timer.record(10)
    timer.record(30)
    timer.record(20)

    stats = timer.snapshot()
    assert stats.count == 3
    assert stats.total == pytest.approx(60.0)
    assert stats.mean == pytest.approx(20.0)
    assert stats.min == pytest.approx(10.0)
    assert stats.max == pytest.approx(30.0)


def test_timer_snapshot_and_reset_isolates_windows() -> None:
    timer = Timer()
    timer.record(5)

    first = timer.snapshot_and_reset()
    second = timer.snapshot_and_reset()

    assert first.count == 1
    assert second.count == 0
    assert second.mean is None
    assert second.min is None and second.max is None


def test_timer_rejects_negative_duration() -> None:
    with pytest.raises(ValueError):
        Timer().record(-1)


def test_timer_context_manager_records_once() -> None:
    timer = Timer()
    with timer.time():
        pass

    stats = timer.snapshot()
    assert stats.count == 1
    assert stats.total >= 0.0


def test_gauge_keeps_last_value() -> None:
    gauge = Gauge()
    assert gauge.value() == 0.0

    gauge.set(3)
    gauge.set(7.5)

    assert gauge.value() == 7.5


def test_metrics_declare_their_kind() -> None:
    assert Counter.kind == "counter"
    assert Timer.kind == "timer"
    assert Gauge.kind == "gauge"
