from __future__ import annotations

from collections.abc import Sequence

from ..evaluate import build_grouping
from ..types import Grouping, Item, capacity_order

# Below this many items the optimized variant has no measurable edge.
OPTIMIZE_MIN_ITEMS = 20


def cyclic_groups(items: Sequence[Item], groups: int) -> list[list[int]]:
    out: list[list[int]] = [[] for _ in range(groups)]
    for pos, idx in enumerate(capacity_order(items)):
        out[pos % groups].append(idx)
    return out


def lightest_groups(items: Sequence[Item], groups: int, group_size: int) -> list[list[int]]:
    """Assign each item (largest first) to the lightest group with room."""
    out: list[list[int]] = [[] for _ in range(groups)]
    sums = [0.0] * groups
    for pos, idx in enumerate(capacity_order(items)):
        open_groups = [g for g in range(groups) if len(out[g]) < group_size]
        if open_groups:
            target = min(open_groups, key=lambda g: (sums[g], g))
        else:
            target = pos % groups
        out[target].append(idx)
        sums[target] += items[idx].capacity
    return out


def round_robin(
    items: Sequence[Item], groups: int, group_size: int, optimized: bool = True
) -> Grouping:
    if not optimized or len(items) <= OPTIMIZE_MIN_ITEMS:
        return build_grouping(items, cyclic_groups(items, groups), "roundrobin")
    return build_grouping(
        items, lightest_groups(items, groups, group_size), "roundrobin-optimized"
    )
