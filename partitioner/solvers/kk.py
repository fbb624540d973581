from __future__ import annotations

import time
from collections.abc import Sequence

from ..evaluate import build_grouping
from ..refine import refine
from ..types import Grouping, Item

MAX_LOCAL_ITERS = 300
MAX_REPAIR_ITERS = 1000


def _split_in_two(caps: Sequence[float], part: list[int]) -> tuple[list[int], list[int]]:
    left: list[int] = []
    right: list[int] = []
    sum_l = sum_r = 0.0
    for idx in sorted(part, key=lambda i: (-caps[i], i)):
        if sum_l <= sum_r:
            left.append(idx)
            sum_l += caps[idx]
        else:
            right.append(idx)
            sum_r += caps[idx]
    return left, right


def _bisect(caps: Sequence[float], groups: int) -> list[list[int]]:
    parts: list[list[int]] = [list(range(len(caps)))]
    while len(parts) < groups:
        splittable = [p for p in range(len(parts)) if len(parts[p]) > 1]
        if not splittable:
            break
        # heaviest splittable partition; lowest position on ties
        top = max(splittable, key=lambda p: (sum(caps[i] for i in parts[p]), -p))
        left, right = _split_in_two(caps, parts.pop(top))
        parts.extend([left, right])
    while len(parts) > groups:
        order = sorted(range(len(parts)), key=lambda p: (sum(caps[i] for i in parts[p]), p))
        a, b = sorted(order[:2])
        merged = parts[a] + parts[b]
        del parts[b]
        parts[a] = merged
    return parts


def _repair_sizes(
    caps: Sequence[float],
    parts: list[list[int]],
    group_size: int,
    max_moves: int = MAX_REPAIR_ITERS,
) -> int:
    """Move items from oversized to undersized partitions; returns moves made."""
    sums = [sum(caps[i] for i in p) for p in parts]
    moves = 0
    while moves < max_moves:
        donor = next((p for p in range(len(parts)) if len(parts[p]) > group_size), None)
        receiver = next((p for p in range(len(parts)) if len(parts[p]) < group_size), None)
        if donor is None or receiver is None:
            break
        others = [sums[p] for p in range(len(parts)) if p != donor and p != receiver]
        best_pos = 0
        best_delta = float("inf")
        for pos, idx in enumerate(parts[donor]):
            moved = (sums[donor] - caps[idx], sums[receiver] + caps[idx])
            d = max(*moved, *others) - min(*moved, *others)
            if d < best_delta:
                best_delta = d
                best_pos = pos
        idx = parts[donor].pop(best_pos)
        parts[receiver].append(idx)
        sums[donor] -= caps[idx]
        sums[receiver] += caps[idx]
        moves += 1
    return moves


def kk_partition(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_local_iters: int = MAX_LOCAL_ITERS,
    max_repair_iters: int = MAX_REPAIR_ITERS,
    time_limit_ms: float | None = None,
) -> Grouping:
    """Largest-differencing style bisection adapted to fixed-size groups.

    Partitions are split heaviest-first until there are ``groups`` of them,
    sizes are repaired by greedy moves, then a 1<->1 best-improvement pass runs
    until ``time_limit_ms`` has elapsed.
    """
    deadline = None
    if time_limit_ms is not None:
        deadline = time.perf_counter() + time_limit_ms / 1000.0
    caps = [float(it.capacity) for it in items]
    parts = _bisect(caps, groups)
    repairs = _repair_sizes(caps, parts, group_size, max_repair_iters)
    res = refine(items, parts, max_iters=max_local_iters, enable_22=False, deadline=deadline)
    return build_grouping(
        items,
        res.groups_by_index,
        "kk",
        1 + res.iterations,
        {"repair_moves": repairs},
    )
