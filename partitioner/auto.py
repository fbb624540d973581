"""The ``auto`` strategy: pick, order, time-slice and run candidate solvers."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from .evaluate import CacheLimits, Evaluator
from .history import PerformanceHistory
from .options import PartitionOptions
from .recovery import graceful_degradation
from .refine import refine_grouping
from .solvers import SolveContext, SolverKind, SolverSuccess, run_solver
from .types import Grouping, Item

logger = logging.getLogger("partitioner.auto")

SMALL_PROBLEM_ITEMS = 12
MEDIUM_PROBLEM_ITEMS = 60
METAHEURISTIC_MIN_BUDGET_MS = 300
MIN_SLICE_MS = 5

QUALITY_PRIORITY: dict[SolverKind, int] = {
    SolverKind.KK: 3,
    SolverKind.LPT: 2,
    SolverKind.DP: 2,
    SolverKind.BACKTRACKING: 1,
    SolverKind.FLOW: 1,
    SolverKind.METAHEURISTIC: 1,
    SolverKind.ROUNDROBIN: 0,
    SolverKind.ILP: 0,
}
SPEED_PRIORITY: dict[SolverKind, int] = {
    SolverKind.ROUNDROBIN: 3,
    SolverKind.LPT: 2,
    SolverKind.KK: 2,
    SolverKind.FLOW: 1,
    SolverKind.ILP: 1,
    SolverKind.DP: 0,
    SolverKind.BACKTRACKING: 0,
    SolverKind.METAHEURISTIC: 0,
}


def _names(values: Sequence[str] | None) -> set[str]:
    return {v.strip().lower() for v in values or []}


def select_candidates(n_items: int, options: PartitionOptions) -> list[SolverKind]:
    """Size-based candidate set, with round-robin always first."""
    kinds = [SolverKind.ROUNDROBIN]
    if n_items <= SMALL_PROBLEM_ITEMS:
        kinds += [SolverKind.DP, SolverKind.BACKTRACKING, SolverKind.LPT, SolverKind.KK]
    elif n_items <= MEDIUM_PROBLEM_ITEMS:
        kinds += [SolverKind.LPT, SolverKind.KK]
    else:
        kinds += [SolverKind.LPT, SolverKind.KK]
        if options.time_limit_ms >= METAHEURISTIC_MIN_BUDGET_MS:
            kinds.append(SolverKind.METAHEURISTIC)
    if options.allow_placeholder_algorithms:
        kinds += [SolverKind.FLOW, SolverKind.ILP]
    return kinds


def order_candidates(
    kinds: list[SolverKind],
    options: PartitionOptions,
    recommendations: dict[str, float] | None = None,
) -> list[SolverKind]:
    """Filter disallowed kinds and boost preferred ones, then reorder.

    Reordering applies history (the head candidate stays in place) and then
    the selection strategy. Every sort is stable, so a ``balanced`` strategy
    keeps preferred kinds in front while ``quality`` and ``speed`` may move
    them back.
    """
    disallowed = _names(options.disallowed_algorithms)
    preferred = _names(options.preferred_algorithms)
    order = [k for k in kinds if k.value not in disallowed]
    order.sort(key=lambda k: k.value not in preferred)

    if recommendations and len(order) > 1:
        head, rest = order[:1], order[1:]
        rest.sort(key=lambda k: -recommendations.get(k.value, 0.0))
        order = head + rest

    if options.selection_strategy == "quality":
        order.sort(key=lambda k: -QUALITY_PRIORITY[k])
    elif options.selection_strategy == "speed":
        order.sort(key=lambda k: -SPEED_PRIORITY[k])
    return order


def run_auto(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    options: PartitionOptions,
    *,
    evaluator: Evaluator,
    history: PerformanceHistory | None = None,
    is_large: bool = False,
    limits: CacheLimits | None = None,
) -> Grouping:
    start = time.perf_counter()
    budget_ms = options.time_limit_ms

    recommendations: dict[str, float] = {}
    if history is not None:
        for rec in history.get_recommendations(len(items), groups, group_size, budget_ms):
            recommendations.setdefault(rec.algorithm, rec.confidence)

    kinds = order_candidates(select_candidates(len(items), options), options, recommendations)
    slice_ms = max(MIN_SLICE_MS, budget_ms // max(1, len(kinds)))
    logger.info(
        json.dumps(
            {
                "event": "auto_plan",
                "items": len(items),
                "groups": groups,
                "group_size": group_size,
                "candidates": [k.value for k in kinds],
                "slice_ms": slice_ms,
            }
        )
    )

    ctx = SolveContext(time_limit_ms=slice_ms, is_large=is_large, in_auto=True)
    best: Grouping | None = None
    attempts: list[dict[str, Any]] = []
    for n, kind in enumerate(kinds):
        elapsed_ms = (time.perf_counter() - start) * 1000
        if n > 0 and elapsed_ms > budget_ms:
            logger.info(
                json.dumps(
                    {"event": "auto_budget_exhausted", "elapsed_ms": round(elapsed_ms, 3)}
                )
            )
            break
        outcome = run_solver(kind, items, groups, group_size, options, ctx)
        if not isinstance(outcome, SolverSuccess):
            attempts.append(
                {"algorithm": kind.value, "ok": False, "error": outcome.error.code.value}
            )
            logger.warning(
                json.dumps(
                    {
                        "event": "auto_candidate_failed",
                        "algorithm": kind.value,
                        "error_code": outcome.error.code.value,
                        "error": outcome.error.message,
                    }
                )
            )
            continue

        grouping = evaluator.finalize(items, outcome.grouping, limits)
        attempts.append(
            {
                "algorithm": kind.value,
                "ok": True,
                "method": grouping.method_used,
                "delta": grouping.delta,
                "stdev": grouping.stdev,
                "elapsed_ms": round(outcome.elapsed_ms, 3),
            }
        )
        logger.debug(json.dumps({"event": "auto_candidate", **attempts[-1]}))
        if best is None or grouping.delta < best.delta:
            best = grouping
        if best.delta <= options.early_stop_delta:
            best.metadata["auto"] = {"attempts": attempts, "early_stop": True}
            return best

    if best is None:
        return graceful_degradation(
            items, groups, group_size, reason="no auto candidate produced a result"
        )

    hybrid = options.hybrid
    if hybrid is not None and hybrid.enable:
        refine_iters = max(5, hybrid.refine_iters or options.max_iters // 10)
        before = best.delta
        refine_grouping(
            items,
            best,
            max_iters=refine_iters,
            escalate=True,
            deadline=start + budget_ms / 1000.0,
        )
        evaluator.finalize(items, best, limits)
        if best.delta < before:
            best.method_used = f"{best.method_used}+hybrid-refine"
        attempts.append({"algorithm": "hybrid-refine", "ok": True, "delta": best.delta})

    best.metadata["auto"] = {"attempts": attempts, "early_stop": False}
    return best
