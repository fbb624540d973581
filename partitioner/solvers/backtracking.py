from __future__ import annotations

import time
from collections.abc import Sequence

from ..evaluate import build_grouping
from ..types import Grouping, Item, capacity_order
from .lpt import lpt_groups

DEFAULT_MAX_ITERS = 10_000
DEFAULT_TIME_LIMIT_MS = 10_000
DEFAULT_MAX_DEPTH = 50


class _Search:
    """Branch-and-bound over capacity-sorted items.

    The objective is the max deviation of any group sum from the per-group
    target. For a partial assignment the running value counts full groups by
    their absolute deviation and open groups by their overshoot only, which
    never decreases as items are added.
    """

    def __init__(
        self,
        caps: list[float],
        groups: int,
        group_size: int,
        max_iters: int,
        deadline: float,
        max_depth: int,
        early_stop: float,
    ) -> None:
        self.caps = caps
        self.groups = groups
        self.group_size = group_size
        self.target = sum(caps) / groups
        self.max_iters = max_iters
        self.deadline = deadline
        self.max_depth = max_depth
        self.early_stop = early_stop

        self.members: list[list[int]] = [[] for _ in range(groups)]
        self.sums = [0.0] * groups
        self.remaining = [0.0] * (len(caps) + 1)
        for pos in range(len(caps) - 1, -1, -1):
            self.remaining[pos] = self.remaining[pos + 1] + caps[pos]
        self.full_sum = 0.0
        self.full_count = 0

        self.best_delta = float("inf")
        self.best: list[list[int]] | None = None
        self.iterations = 0
        self.truncated = False
        self.stopped = False

    def _guard(self, pos: int) -> bool:
        if self.iterations >= self.max_iters or time.perf_counter() > self.deadline:
            self.truncated = True
            self.stopped = True
            return True
        if pos > self.max_depth:
            self.truncated = True
            return True
        return False

    def _lower_bound(self, current: float, pos: int) -> float:
        open_groups = self.groups - self.full_count
        if open_groups == 0:
            return current
        open_sum = sum(self.sums) - self.full_sum
        avg_final = (open_sum + self.remaining[pos]) / open_groups
        return max(current, abs(avg_final - self.target))

    def run(self) -> None:
        self._descend(0, 0.0)

    def _descend(self, pos: int, current: float) -> None:
        if self.stopped:
            return
        if pos == len(self.caps):
            if current < self.best_delta:
                self.best_delta = current
                self.best = [list(g) for g in self.members]
                if current <= self.early_stop:
                    self.stopped = True
            return
        self.iterations += 1
        if self._guard(pos):
            return

        cap = self.caps[pos]
        tried_empty = False
        for g in sorted(range(self.groups), key=lambda k: (self.sums[k], k)):
            count = len(self.members[g])
            if count >= self.group_size:
                continue
            if count == 0:
                # empty groups are interchangeable
                if tried_empty:
                    continue
                tried_empty = True
            new_sum = self.sums[g] + cap
            completes = count + 1 == self.group_size
            dev = abs(new_sum - self.target) if completes else max(0.0, new_sum - self.target)
            nxt = max(current, dev)
            if nxt >= self.best_delta:
                continue

            self.members[g].append(pos)
            self.sums[g] = new_sum
            if completes:
                self.full_sum += new_sum
                self.full_count += 1
            try:
                if self._lower_bound(nxt, pos + 1) < self.best_delta:
                    self._descend(pos + 1, nxt)
            finally:
                if completes:
                    self.full_sum -= new_sum
                    self.full_count -= 1
                self.sums[g] = new_sum - cap
                self.members[g].pop()
            if self.stopped:
                return


def backtracking_partition(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_iters: int = DEFAULT_MAX_ITERS,
    time_limit_ms: float = DEFAULT_TIME_LIMIT_MS,
    max_recursion_depth: int = DEFAULT_MAX_DEPTH,
    early_stop_threshold: float = 1e-6,
) -> Grouping:
    """Exhaustive search with pruning; best-so-far on any guard, greedy if none.

    Parameters
    ----------
    max_recursion_depth:
        Items deeper than this are never assigned, so inputs with more items
        than the depth always take the greedy fallback.
    early_stop_threshold:
        Search ends as soon as a complete assignment deviates no more than this.
    """
    order = capacity_order(items)
    caps = [float(items[i].capacity) for i in order]
    search = _Search(
        caps,
        groups,
        group_size,
        max_iters=max_iters,
        deadline=time.perf_counter() + time_limit_ms / 1000.0,
        max_depth=max_recursion_depth,
        early_stop=early_stop_threshold,
    )
    search.run()
    meta = {"truncated": search.truncated, "nodes": search.iterations}
    if search.best is None:
        return build_grouping(
            items,
            lpt_groups(items, groups, group_size),
            "backtracking-fallback",
            max(1, search.iterations),
            meta,
        )
    groups_by_index = [[order[p] for p in g] for g in search.best]
    meta["max_deviation"] = search.best_delta
    return build_grouping(
        items, groups_by_index, "backtracking", max(1, search.iterations), meta
    )
