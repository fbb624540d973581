"""Swap-based local refinement shared by the LPT and KK solvers and the hybrid pass.

Only size-preserving moves are considered: 1<->1 swaps exchange one item between
two groups, 2<->2 swaps exchange a pair of items from each. Every applied move
strictly lowers delta, so the output never balances worse than the input.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from itertools import combinations
from typing import Literal

from .evaluate import evaluate_grouping
from .rng import Randomizer
from .types import Grouping, Item

Strategy = Literal["best", "stochastic"]

MAX_PAIR_COMBINATIONS = 200_000
_EPS = 1e-12


@dataclass
class RefinementResult:
    groups_by_index: list[list[int]]
    group_sums: list[float]
    delta: float
    iterations: int
    improvements: int


# (new_delta, group_a, group_b, positions_in_a, positions_in_b)
_Move = tuple[float, int, int, tuple[int, ...], tuple[int, ...]]


def _spread(sums: list[float]) -> float:
    return max(sums) - min(sums) if len(sums) > 1 else 0.0


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.perf_counter() > deadline


class _SwapSpace:
    """Group sums plus the bookkeeping to price a swap in O(1)."""

    def __init__(self, caps: list[float], groups: list[list[int]]) -> None:
        self.caps = caps
        self.groups = groups
        self.sums = [sum(caps[i] for i in g) for g in groups]
        self._reorder()

    def _reorder(self) -> None:
        self.desc = sorted(range(len(self.sums)), key=lambda g: -self.sums[g])

    def delta(self) -> float:
        return _spread(self.sums)

    def delta_after(self, a: int, b: int, diff: float) -> float:
        """Delta once ``diff`` capacity moves from group ``a`` to group ``b``."""
        na = self.sums[a] - diff
        nb = self.sums[b] + diff
        hi = max(na, nb)
        lo = min(na, nb)
        for g in self.desc:
            if g != a and g != b:
                hi = max(hi, self.sums[g])
                break
        for g in reversed(self.desc):
            if g != a and g != b:
                lo = min(lo, self.sums[g])
                break
        return hi - lo

    def apply(self, a: int, b: int, pos_a: tuple[int, ...], pos_b: tuple[int, ...]) -> None:
        ga, gb = self.groups[a], self.groups[b]
        for pa, pb in zip(pos_a, pos_b):
            ga[pa], gb[pb] = gb[pb], ga[pa]
        self.sums[a] = sum(self.caps[i] for i in ga)
        self.sums[b] = sum(self.caps[i] for i in gb)
        self._reorder()

    def best_one_one(self, current: float, deadline: float | None = None) -> _Move | None:
        best: _Move | None = None
        bound = current - _EPS
        n = len(self.groups)
        for a in range(n):
            ga = self.groups[a]
            for b in range(a + 1, n):
                if _expired(deadline):
                    return best
                gb = self.groups[b]
                for pa, ia in enumerate(ga):
                    ca = self.caps[ia]
                    for pb, ib in enumerate(gb):
                        d = self.delta_after(a, b, ca - self.caps[ib])
                        if d < bound:
                            bound = d - _EPS
                            best = (d, a, b, (pa,), (pb,))
        return best

    def best_two_two(
        self, current: float, max_pair_combinations: int, deadline: float | None = None
    ) -> _Move | None:
        best: _Move | None = None
        bound = current - _EPS
        n = len(self.groups)
        pairs = [list(combinations(range(len(g)), 2)) for g in self.groups]
        for a in range(n):
            for b in range(a + 1, n):
                if len(pairs[a]) * len(pairs[b]) > max_pair_combinations:
                    continue
                ga, gb = self.groups[a], self.groups[b]
                for pa in pairs[a]:
                    if _expired(deadline):
                        return best
                    ca = self.caps[ga[pa[0]]] + self.caps[ga[pa[1]]]
                    for pb in pairs[b]:
                        cb = self.caps[gb[pb[0]]] + self.caps[gb[pb[1]]]
                        d = self.delta_after(a, b, ca - cb)
                        if d < bound:
                            bound = d - _EPS
                            best = (d, a, b, pa, pb)
        return best

    def sample(self, rng: Randomizer, two_two: bool) -> _Move | None:
        n = len(self.groups)
        a = rng.below(n)
        b = rng.below(n - 1)
        if b >= a:
            b += 1
        ga, gb = self.groups[a], self.groups[b]
        if two_two:
            if len(ga) < 2 or len(gb) < 2:
                return None
            pa = _two_positions(rng, len(ga))
            pb = _two_positions(rng, len(gb))
        else:
            if not ga or not gb:
                return None
            pa = (rng.below(len(ga)),)
            pb = (rng.below(len(gb)),)
        diff = sum(self.caps[ga[p]] for p in pa) - sum(self.caps[gb[p]] for p in pb)
        return (self.delta_after(a, b, diff), a, b, pa, pb)


def _two_positions(rng: Randomizer, size: int) -> tuple[int, int]:
    first = rng.below(size)
    second = rng.below(size - 1)
    if second >= first:
        second += 1
    return (min(first, second), max(first, second))


def refine(
    items: Sequence[Item],
    groups_by_index: Sequence[Sequence[int]],
    *,
    max_iters: int = 200,
    strategy: Strategy = "best",
    enable_11: bool = True,
    enable_22: bool = True,
    escalate: bool = False,
    max_pair_combinations: int = MAX_PAIR_COMBINATIONS,
    seed: int | None = None,
    deadline: float | None = None,
) -> RefinementResult:
    """Improve a grouping by swaps until no improving move remains.

    Parameters
    ----------
    strategy:
        ``best`` scans every candidate swap and applies the single most improving
        one per iteration. ``stochastic`` samples swaps and applies the first
        improving one, stopping when a sampling round finds none.
    escalate:
        In ``best`` mode, only scan 2<->2 swaps when no 1<->1 swap improves.
    max_pair_combinations:
        Group pairs whose 2<->2 combination count exceeds this are skipped.
    deadline:
        Absolute ``time.perf_counter()`` value after which refinement stops. A
        scan cut short by it still applies the best move found so far.
    """
    caps = [float(it.capacity) for it in items]
    original = [list(g) for g in groups_by_index]
    space = _SwapSpace(caps, [list(g) for g in original])
    start_delta = space.delta()
    iterations = 0
    improvements = 0
    if len(space.groups) < 2 or not (enable_11 or enable_22):
        return _result(space, iterations, improvements)

    rng = Randomizer(seed)
    n_items = sum(len(g) for g in space.groups)
    attempts = max(100, n_items * 2)
    while iterations < max_iters:
        if _expired(deadline):
            break
        iterations += 1
        current = space.delta()
        move: _Move | None = None
        if strategy == "stochastic":
            for _ in range(attempts):
                two_two = enable_22 and (not enable_11 or rng.random() < 0.5)
                cand = space.sample(rng, two_two)
                if cand is not None and cand[0] < current - _EPS:
                    move = cand
                    break
        elif escalate:
            if enable_11:
                move = space.best_one_one(current, deadline)
            if move is None and enable_22:
                move = space.best_two_two(current, max_pair_combinations, deadline)
        else:
            one = space.best_one_one(current, deadline) if enable_11 else None
            two = (
                space.best_two_two(current, max_pair_combinations, deadline)
                if enable_22
                else None
            )
            move = one
            if two is not None and (one is None or two[0] < one[0]):
                move = two
        if move is None:
            break
        _, a, b, pa, pb = move
        space.apply(a, b, pa, pb)
        improvements += 1
    if space.delta() > start_delta:
        # float drift across many swaps; never hand back a worse grouping
        return _result(_SwapSpace(caps, original), iterations, 0)
    return _result(space, iterations, improvements)


def _result(space: _SwapSpace, iterations: int, improvements: int) -> RefinementResult:
    return RefinementResult(
        groups_by_index=space.groups,
        group_sums=list(space.sums),
        delta=space.delta(),
        iterations=iterations,
        improvements=improvements,
    )


def refine_grouping(items: Sequence[Item], grouping: Grouping, **kwargs) -> RefinementResult:
    """Refine ``grouping`` in place (index swaps only) and refresh its stats."""
    res = refine(items, grouping.groups_by_index, **kwargs)
    ev = evaluate_grouping(items, res.groups_by_index)
    grouping.groups_by_index = res.groups_by_index
    grouping.groups_by_id = [[items[i].id for i in g] for g in res.groups_by_index]
    grouping.group_sums = list(ev.group_sums)
    grouping.delta = ev.delta
    grouping.stdev = ev.stdev
    return res
