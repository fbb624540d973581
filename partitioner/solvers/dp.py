"""Integer-scaled dynamic program over contiguous runs of the capacity-sorted items.

``dp[i, j]`` is the smallest achievable max deviation from the per-group target
when the first ``i`` sorted items fill ``j`` groups, each group taking exactly
``group_size`` consecutive items. This restricts the search to contiguous runs,
so the result is exact only within that family.
"""

from __future__ import annotations

import math
import time
from collections.abc import Sequence

import numpy as np

from ..evaluate import build_grouping
from ..types import Grouping, Item, MemoryLimitError, capacity_order
from .roundrobin import cyclic_groups

MAX_ITEMS = 20
MAX_TOTAL_SUM = 10_000
MAX_MEMORY_BYTES = 50 * 1024 * 1024
SCALE_TARGET = 1000


def estimate_memory_bytes(n_items: int, groups: int, scaled_total: int) -> int:
    return (n_items + 1) * (groups + 1) * (scaled_total + 1) * 8


def dp_partition(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_items: int = MAX_ITEMS,
    max_total_sum: float = MAX_TOTAL_SUM,
    max_iters: int = 1000,
    time_limit_ms: float = 5000,
) -> Grouping:
    n = len(items)
    total = sum(it.capacity for it in items)
    if n > max_items:
        raise MemoryLimitError(
            f"DP supports at most {max_items} items, got {n}",
            details={"algorithm": "dp", "items": n},
        )
    if total > max_total_sum:
        raise MemoryLimitError(
            f"DP supports total capacity up to {max_total_sum}, got {total}",
            details={"algorithm": "dp", "total_capacity": total},
        )

    order = capacity_order(items)
    max_cap = max(it.capacity for it in items)
    scale = max(1, math.floor(SCALE_TARGET / max_cap))
    scaled = np.array([round(items[i].capacity * scale) for i in order], dtype=np.int64)
    scaled_total = int(scaled.sum())
    need = estimate_memory_bytes(n, groups, scaled_total)
    if need > MAX_MEMORY_BYTES:
        raise MemoryLimitError(
            f"DP table would need {need} bytes (limit {MAX_MEMORY_BYTES})",
            memory_usage_bytes=need,
            details={"algorithm": "dp"},
        )

    target = scaled_total / groups
    prefix = np.concatenate(([0], np.cumsum(scaled)))
    table = np.full((n + 1, groups + 1), np.inf)
    parent = np.full((n + 1, groups + 1), -1, dtype=np.int64)
    table[0, 0] = 0.0

    start = time.perf_counter()
    iterations = 0
    for i in range(group_size, n + 1):
        if iterations >= max_iters or (time.perf_counter() - start) * 1000 > time_limit_ms:
            break
        iterations += 1
        deviation = abs(float(prefix[i] - prefix[i - group_size]) - target)
        for j in range(1, groups + 1):
            prev = table[i - group_size, j - 1]
            if not np.isfinite(prev):
                continue
            value = max(prev, deviation)
            if value < table[i, j]:
                table[i, j] = value
                parent[i, j] = i - group_size

    if not np.isfinite(table[n, groups]):
        return build_grouping(
            items, cyclic_groups(items, groups), "dp-fallback", max(1, iterations)
        )

    groups_by_index: list[list[int]] = []
    i, j = n, groups
    while j > 0:
        s = int(parent[i, j])
        groups_by_index.append([order[k] for k in range(s, i)])
        i, j = s, j - 1
    groups_by_index.reverse()
    return build_grouping(
        items,
        groups_by_index,
        "dp-integer-scaled",
        iterations,
        {"scale_factor": scale, "max_scaled_deviation": float(table[n, groups])},
    )
