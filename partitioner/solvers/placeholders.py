"""Greedy stand-ins for min-cost-flow and integer-programming solvers.

Neither calls an external solver. They return a valid grouping quickly and
mark themselves as non-optimal so callers never mistake them for exact output.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..evaluate import build_grouping
from ..types import Grouping, Item
from .roundrobin import lightest_groups

logger = logging.getLogger("partitioner.solvers")


def flow_partition(items: Sequence[Item], groups: int, group_size: int) -> Grouping:
    return build_grouping(
        items,
        lightest_groups(items, groups, group_size),
        "flow-heuristic",
        metadata={"is_optimal": False},
    )


def ilp_partition(items: Sequence[Item], groups: int, group_size: int) -> Grouping:
    logger.debug("ilp: no external solver configured, using greedy construction")
    grouping = build_grouping(
        items, lightest_groups(items, groups, group_size), "ilp-placeholder"
    )
    grouping.metadata.update({"is_optimal": False, "objective_value": grouping.delta})
    return grouping
