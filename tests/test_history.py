"""Tests for the in-memory performance history."""

import pytest

from partitioner import PerformanceHistory


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _add(
    history,
    algorithm="lpt",
    success=True,
    delta=1.0,
    elapsed=10.0,
    size=20,
    groups=4,
    group_size=5,
):
    return history.add_entry(
        algorithm=algorithm,
        problem_size=size,
        groups=groups,
        group_size=group_size,
        delta=delta,
        stdev=0.5,
        execution_time_ms=elapsed,
        success=success,
        time_budget_ms=1000,
    )


def test_entries_use_injected_clock():
    clock = FakeClock(42.0)
    history = PerformanceHistory(clock=clock)
    entry = _add(history, algorithm="LPT")
    assert entry.timestamp == 42.0
    assert entry.algorithm == "lpt"
    assert len(history) == 1


def test_max_entries_drops_oldest():
    history = PerformanceHistory(max_entries=3)
    for d in range(5):
        _add(history, delta=float(d))
    assert len(history) == 3
    assert list(history.to_frame()["delta"]) == [2.0, 3.0, 4.0]


def test_empty_history_has_no_recommendations():
    assert PerformanceHistory().get_recommendations(20, 4, 5, 1000) == []
    assert list(PerformanceHistory().to_frame().columns)[0] == "algorithm"


def test_confidence_for_fresh_samples():
    history = PerformanceHistory(clock=FakeClock())
    for _ in range(10):
        _add(history)
    (rec,) = history.get_recommendations(20, 4, 5, 1000)
    assert rec.algorithm == "lpt"
    assert rec.confidence == pytest.approx(0.7)
    assert rec.sample_count == 10
    assert rec.success_rate == 1.0
    assert rec.expected_delta == 1.0
    assert rec.expected_time_ms == 10.0


def test_confidence_decays_with_age():
    clock = FakeClock()
    history = PerformanceHistory(clock=clock)
    _add(history)
    fresh = history.get_recommendations(20, 4, 5, 1000)[0].confidence
    clock.now += 48 * 3600
    stale = history.get_recommendations(20, 4, 5, 1000)[0].confidence
    assert stale < fresh


def test_similarity_filter():
    history = PerformanceHistory(clock=FakeClock())
    _add(history, size=20, groups=4, group_size=5)
    assert history.get_recommendations(24, 4, 5, 1000)
    assert history.get_recommendations(40, 4, 5, 1000) == []
    assert history.get_recommendations(20, 8, 5, 1000) == []
    assert history.get_recommendations(20, 4, 9, 1000) == []


def test_unreliable_and_slow_algorithms_dropped():
    history = PerformanceHistory(clock=FakeClock())
    for ok in (False, False, False, True):
        _add(history, algorithm="kk", success=ok)
    _add(history, algorithm="dp", elapsed=5000.0)
    _add(history, algorithm="lpt")
    recs = history.get_recommendations(20, 4, 5, 1000)
    assert [r.algorithm for r in recs] == ["lpt"]


def test_ranking_by_confidence_then_delta():
    history = PerformanceHistory(clock=FakeClock())
    for _ in range(4):
        _add(history, algorithm="kk", delta=2.0)
    for _ in range(4):
        _add(history, algorithm="lpt", delta=1.0)
    for _ in range(8):
        _add(history, algorithm="roundrobin", delta=5.0)
    recs = history.get_recommendations(20, 4, 5, 1000)
    assert [r.algorithm for r in recs] == ["roundrobin", "lpt", "kk"]


def test_clear():
    history = PerformanceHistory()
    _add(history)
    history.clear()
    assert len(history) == 0
