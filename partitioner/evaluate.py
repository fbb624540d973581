"""Scoring of candidate groupings plus the bounded evaluation cache."""

from __future__ import annotations

import math
import weakref
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .types import Grouping, Item, ItemSet, NumericalError, ValidationError

DEFAULT_CACHE_ENTRIES = 200
MIN_CACHE_ENTRIES = 10


@dataclass(frozen=True)
class EvaluationResult:
    group_sums: tuple[float, ...]
    delta: float
    stdev: float
    mean: float
    cv: float
    total_capacity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_sums": list(self.group_sums),
            "delta": self.delta,
            "stdev": self.stdev,
            "mean": self.mean,
            "cv": self.cv,
            "total_capacity": self.total_capacity,
        }


@dataclass(frozen=True)
class CacheLimits:
    max_items: int = 1000
    max_groups: int = 50
    max_group_size: int = 100


LARGE_PROBLEM_CACHE_LIMITS = CacheLimits(max_items=500, max_groups=25, max_group_size=50)


def kahan_sum(values: Sequence[float]) -> float:
    """Compensated summation."""
    total = 0.0
    comp = 0.0
    for v in values:
        y = v - comp
        t = total + y
        comp = (t - total) - y
        total = t
    return total


def _check_indices(n_items: int, groups_by_index: Sequence[Sequence[int]]) -> None:
    for g, group in enumerate(groups_by_index):
        for idx in group:
            if isinstance(idx, bool) or not isinstance(idx, int) or idx < 0 or idx >= n_items:
                raise ValidationError(
                    f"Invalid item index {idx!r} in group {g}",
                    reasons=["index_out_of_range"],
                    details={"group": g, "index": idx, "item_count": n_items},
                )


def _stats(group_sums: list[float], total: float) -> EvaluationResult:
    n = len(group_sums)
    if not all(math.isfinite(s) for s in group_sums):
        raise NumericalError("Non-finite group sum", details={"group_sums": group_sums})
    delta = max(group_sums) - min(group_sums) if n > 1 else 0.0
    mean = total / n if n else 0.0
    variance = sum((s - mean) ** 2 for s in group_sums) / n if n else 0.0
    stdev = math.sqrt(variance)
    cv = stdev / mean if mean > 0 else 0.0
    return EvaluationResult(
        group_sums=tuple(group_sums),
        delta=delta,
        stdev=stdev,
        mean=mean,
        cv=cv,
        total_capacity=total,
    )


def evaluate_grouping(
    items: Sequence[Item], groups_by_index: Sequence[Sequence[int]]
) -> EvaluationResult:
    _check_indices(len(items), groups_by_index)
    sums = [float(sum(items[i].capacity for i in group)) for group in groups_by_index]
    return _stats(sums, sum(sums))


def evaluate_grouping_precise(
    items: Sequence[Item], groups_by_index: Sequence[Sequence[int]]
) -> EvaluationResult:
    """Same as :func:`evaluate_grouping` using compensated sums throughout."""
    _check_indices(len(items), groups_by_index)
    sums = [kahan_sum([items[i].capacity for i in group]) for group in groups_by_index]
    n = len(sums)
    total = kahan_sum(sums)
    if not all(math.isfinite(s) for s in sums):
        raise NumericalError("Non-finite group sum", details={"group_sums": sums})
    delta = max(sums) - min(sums) if n > 1 else 0.0
    mean = total / n if n else 0.0
    variance = kahan_sum([(s - mean) ** 2 for s in sums]) / n if n else 0.0
    stdev = math.sqrt(variance)
    return EvaluationResult(
        group_sums=tuple(sums),
        delta=delta,
        stdev=stdev,
        mean=mean,
        cv=stdev / mean if mean > 0 else 0.0,
        total_capacity=total,
    )


def _structural_key(groups_by_index: Sequence[Sequence[int]]) -> tuple[tuple[int, ...], ...]:
    return tuple(tuple(g) for g in groups_by_index)


class EvaluationCache:
    """Per item-set FIFO cache of evaluation results.

    Buckets are held weakly on the ``ItemSet`` so a bucket lives exactly as
    long as the items it describes.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_ENTRIES) -> None:
        self.max_entries = max(MIN_CACHE_ENTRIES, int(max_entries))
        self._buckets: weakref.WeakKeyDictionary[ItemSet, dict[Any, EvaluationResult]] = (
            weakref.WeakKeyDictionary()
        )
        self.hits = 0
        self.misses = 0

    def get(self, items: ItemSet, key: Any) -> EvaluationResult | None:
        bucket = self._buckets.get(items)
        if bucket is None or key not in bucket:
            self.misses += 1
            return None
        self.hits += 1
        return bucket[key]

    def put(self, items: ItemSet, key: Any, result: EvaluationResult) -> None:
        bucket = self._buckets.setdefault(items, {})
        if key in bucket:
            return
        if len(bucket) >= self.max_entries:
            # dicts keep insertion order; drop the oldest
            del bucket[next(iter(bucket))]
        bucket[key] = result

    def size(self, items: ItemSet) -> int:
        return len(self._buckets.get(items, {}))

    def clear(self) -> None:
        self._buckets.clear()
        self.hits = 0
        self.misses = 0


class Evaluator:
    """Scores groupings, consulting an optional injected cache."""

    def __init__(
        self,
        cache: EvaluationCache | None = None,
        limits: CacheLimits | None = None,
    ) -> None:
        self.cache = cache
        self.limits = limits or CacheLimits()

    def _within_limits(
        self,
        items: Sequence[Item],
        groups_by_index: Sequence[Sequence[int]],
        limits: CacheLimits,
    ) -> bool:
        if len(items) > limits.max_items or len(groups_by_index) > limits.max_groups:
            return False
        return max((len(g) for g in groups_by_index), default=0) <= limits.max_group_size

    def evaluate(
        self,
        items: Sequence[Item],
        groups_by_index: Sequence[Sequence[int]],
        limits: CacheLimits | None = None,
    ) -> EvaluationResult:
        cache = self.cache
        if (
            cache is None
            or not isinstance(items, ItemSet)
            or not self._within_limits(items, groups_by_index, limits or self.limits)
        ):
            return evaluate_grouping(items, groups_by_index)
        key = _structural_key(groups_by_index)
        hit = cache.get(items, key)
        if hit is not None:
            return hit
        result = evaluate_grouping(items, groups_by_index)
        cache.put(items, key, result)
        return result

    def finalize(
        self, items: Sequence[Item], grouping: Grouping, limits: CacheLimits | None = None
    ) -> Grouping:
        """Recompute ``grouping``'s stats in place and return it."""
        res = self.evaluate(items, grouping.groups_by_index, limits)
        grouping.group_sums = list(res.group_sums)
        grouping.delta = res.delta
        grouping.stdev = res.stdev
        grouping.groups_by_id = [[items[i].id for i in g] for g in grouping.groups_by_index]
        return grouping


def build_grouping(
    items: Sequence[Item],
    groups_by_index: list[list[int]],
    method: str,
    iterations: int = 1,
    metadata: dict[str, Any] | None = None,
) -> Grouping:
    res = evaluate_grouping(items, groups_by_index)
    return Grouping(
        groups_by_index=groups_by_index,
        groups_by_id=[[items[i].id for i in g] for g in groups_by_index],
        group_sums=list(res.group_sums),
        delta=res.delta,
        stdev=res.stdev,
        method_used=method,
        iterations=iterations,
        metadata=dict(metadata or {}),
    )


def validate_grouping(
    grouping: Grouping, items: Sequence[Item], groups: int, group_size: int
) -> list[str]:
    """Structural checks; returns a list of human-readable errors (empty if valid)."""
    errors: list[str] = []
    gbi = grouping.groups_by_index
    if len(gbi) != groups:
        errors.append(f"Expected {groups} groups, got {len(gbi)}")
    seen: set[int] = set()
    for g, group in enumerate(gbi):
        if len(group) != group_size:
            errors.append(f"Group {g} has {len(group)} items, expected {group_size}")
        for idx in group:
            if isinstance(idx, bool) or not isinstance(idx, int) or idx < 0 or idx >= len(items):
                errors.append(f"Invalid item index {idx!r} in group {g}")
            elif idx in seen:
                errors.append(f"Item index {idx} assigned more than once")
            else:
                seen.add(idx)
    missing = len(items) - len(seen)
    if missing > 0:
        errors.append(f"{missing} items not assigned to any group")
    if len(grouping.groups_by_id) != len(gbi) or any(
        len(a) != len(b) for a, b in zip(grouping.groups_by_id, gbi)
    ):
        errors.append("groups_by_id does not mirror groups_by_index")
    return errors


def calculate_balance_score(
    result: EvaluationResult, weights: dict[str, float] | None = None
) -> float:
    """Weighted combination of delta, stdev and cv; lower is better."""
    w = {"delta": 1.0, "stdev": 1.0, "cv": 0.5}
    if weights:
        w.update(weights)
    return w["delta"] * result.delta + w["stdev"] * result.stdev + w["cv"] * result.cv


def compare_groupings(a: EvaluationResult, b: EvaluationResult, tolerance: float = 1e-10) -> int:
    """-1 if ``a`` balances better than ``b``, 1 if worse, 0 if tied within tolerance."""
    if abs(a.delta - b.delta) > tolerance:
        return -1 if a.delta < b.delta else 1
    if abs(a.stdev - b.stdev) > tolerance:
        return -1 if a.stdev < b.stdev else 1
    return 0


def satisfies_balance_constraints(
    result: EvaluationResult,
    max_delta: float | None = None,
    max_stdev: float | None = None,
    max_cv: float | None = None,
) -> bool:
    if max_delta is not None and result.delta > max_delta:
        return False
    if max_stdev is not None and result.stdev > max_stdev:
        return False
    if max_cv is not None and result.cv > max_cv:
        return False
    return True


def summarize_evaluation(result: EvaluationResult) -> str:
    sums = ", ".join(f"{s:.2f}" for s in result.group_sums)
    return (
        f"groups={len(result.group_sums)} total={result.total_capacity:.2f} "
        f"mean={result.mean:.2f} delta={result.delta:.4f} "
        f"stdev={result.stdev:.4f} cv={result.cv * 100:.2f}% sums=[{sums}]"
    )
