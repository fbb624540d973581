from __future__ import annotations

import math
import time
from collections.abc import Sequence

from ..evaluate import build_grouping
from ..refine import MAX_PAIR_COMBINATIONS, refine
from ..types import Grouping, Item, capacity_order

MAX_GROUPS_FOR_REFINEMENT = 20
MAX_GROUP_SIZE_FOR_REFINEMENT = 50


def lpt_groups(items: Sequence[Item], groups: int, group_size: int) -> list[list[int]]:
    """Greedy phase: largest item first into the lightest group with room."""
    out: list[list[int]] = [[] for _ in range(groups)]
    sums = [0.0] * groups
    for idx in capacity_order(items):
        best = -1
        for g in range(groups):
            if len(out[g]) < group_size and (best < 0 or sums[g] < sums[best]):
                best = g
        if best < 0:
            best = min(range(groups), key=lambda g: sums[g])
        out[best].append(idx)
        sums[best] += items[idx].capacity
    return out


def lpt(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    use_refinement: bool = True,
    max_refinement_iters: int = 100,
    use_advanced: bool = False,
    time_limit_ms: float | None = None,
) -> Grouping:
    """LPT greedy construction with optional swap refinement.

    Refinement is skipped above ``MAX_GROUPS_FOR_REFINEMENT`` groups or
    ``MAX_GROUP_SIZE_FOR_REFINEMENT`` items per group.
    """
    groups_by_index = lpt_groups(items, groups, group_size)
    can_refine = (
        use_refinement
        and groups <= MAX_GROUPS_FOR_REFINEMENT
        and group_size <= MAX_GROUP_SIZE_FOR_REFINEMENT
        and max_refinement_iters > 0
    )
    if not can_refine:
        return build_grouping(items, groups_by_index, "lpt")

    deadline = None
    if time_limit_ms is not None:
        deadline = time.perf_counter() + time_limit_ms / 1000.0

    if use_advanced:
        rounds = min(3, math.ceil(max_refinement_iters / 50))
        per_round = max(1, max_refinement_iters // rounds)
        iterations = 1
        for _ in range(rounds):
            res = refine(
                items,
                groups_by_index,
                max_iters=per_round,
                escalate=True,
                max_pair_combinations=MAX_PAIR_COMBINATIONS,
                deadline=deadline,
            )
            groups_by_index = res.groups_by_index
            iterations += res.iterations
            if res.improvements == 0:
                break
        return build_grouping(
            items, groups_by_index, "lpt-advanced", iterations, {"rounds": rounds}
        )

    res = refine(
        items,
        groups_by_index,
        max_iters=max_refinement_iters,
        escalate=True,
        max_pair_combinations=MAX_PAIR_COMBINATIONS,
        deadline=deadline,
    )
    return build_grouping(
        items,
        res.groups_by_index,
        "lpt-refined",
        1 + res.iterations,
        {"improvements": res.improvements},
    )
