"""Core partition entry: validate, dispatch, recover, finalize."""

from __future__ import annotations

import json
import logging
import numbers
import time
from collections.abc import Mapping, Sequence
from typing import Any

from validators import InvalidReason, Rules, validate_partition_inputs

from .auto import run_auto
from .evaluate import LARGE_PROBLEM_CACHE_LIMITS, CacheLimits, EvaluationCache, Evaluator
from .history import PerformanceHistory
from .options import PartitionOptions, normalize_options
from .recovery import RecoveryManager, RecoveryRequest, graceful_degradation
from .solvers import SolveContext, SolverKind, SolverSuccess, run_solver, solver_kind
from .types import (
    Grouping,
    InfeasibleError,
    Item,
    ItemSet,
    PartitionError,
    ValidationError,
    algorithm_error,
)

logger = logging.getLogger("partitioner.core")

VERY_LARGE_DISALLOWED = ("dp", "backtracking", "metaheuristic")
VERY_LARGE_PREFERRED = ("roundrobin", "lpt")


def problem_scale(n_items: int, groups: int, group_size: int) -> tuple[bool, bool]:
    """Return ``(is_large, is_very_large)`` for a request shape."""
    large = n_items > 50 or groups > 10 or group_size > 20
    very_large = n_items > 100 or groups > 20 or group_size > 50
    return large, very_large


def from_capacities(capacities: Sequence[float], id_prefix: str = "item") -> list[Item]:
    return [Item(f"{id_prefix}{i}", float(c)) for i, c in enumerate(capacities)]


def _to_item(raw: Any) -> Item:
    if isinstance(raw, Item):
        return raw
    if isinstance(raw, Mapping):
        item_id, capacity = raw["id"], raw["capacity"]
    else:
        item_id, capacity = raw.id, raw.capacity
    if isinstance(item_id, numbers.Integral):
        item_id = int(item_id)
    return Item(item_id, float(capacity))


def _restrict_for_scale(options: PartitionOptions) -> PartitionOptions:
    disallowed = list(options.disallowed_algorithms or [])
    disallowed += [a for a in VERY_LARGE_DISALLOWED if a not in disallowed]
    update: dict[str, Any] = {"disallowed_algorithms": disallowed}
    if not options.preferred_algorithms:
        update["preferred_algorithms"] = list(VERY_LARGE_PREFERRED)
    return options.model_copy(update=update)


class Partitioner:
    """Partitioning service holding its evaluator, history and recovery chain.

    Services are per instance. Pass shared ones explicitly to reuse a cache or
    history across calls.
    """

    def __init__(
        self,
        evaluator: Evaluator | None = None,
        history: PerformanceHistory | None = None,
        recovery: RecoveryManager | None = None,
        rules: Rules | None = None,
    ) -> None:
        self.evaluator = evaluator or Evaluator(EvaluationCache())
        self.history = history
        self.recovery = recovery or RecoveryManager()
        self.rules = rules or Rules()

    def validate(self, items: Sequence[Any], groups: Any, group_size: Any) -> None:
        result = validate_partition_inputs(items, groups, group_size, self.rules)
        if result.valid:
            return
        if result.reasons == [InvalidReason.ZERO_TOTAL_CAPACITY]:
            raise InfeasibleError(result.messages[0], details=result.details)
        raise ValidationError(
            "; ".join(result.messages),
            reasons=[r.value for r in result.reasons],
            details=result.details,
        )

    def partition(
        self,
        items: Sequence[Any],
        groups: int,
        group_size: int,
        options: PartitionOptions | Mapping[str, Any] | None = None,
    ) -> Grouping:
        t0 = time.perf_counter()
        opts = normalize_options(options)
        self.validate(items, groups, group_size)
        item_set = ItemSet(tuple(_to_item(it) for it in items))

        is_large, very_large = problem_scale(len(item_set), groups, group_size)
        limits = LARGE_PROBLEM_CACHE_LIMITS if is_large else CacheLimits()
        if opts.method == "auto" and very_large:
            opts = _restrict_for_scale(opts)
        logger.info(
            json.dumps(
                {
                    "event": "partition_enter",
                    "method": opts.method,
                    "items": len(item_set),
                    "groups": groups,
                    "group_size": group_size,
                    "time_limit_ms": opts.time_limit_ms,
                }
            )
        )

        if opts.method == "auto":
            grouping = self._run_auto(item_set, groups, group_size, opts, is_large, limits)
        else:
            grouping = self._run_method(item_set, groups, group_size, opts, is_large)
        grouping = self.evaluator.finalize(item_set, grouping, limits)

        dt = time.perf_counter() - t0
        self._record(grouping, len(item_set), groups, group_size, opts, dt * 1000)
        logger.info(
            json.dumps(
                {
                    "event": "partition_exit",
                    "method_used": grouping.method_used,
                    "delta": grouping.delta,
                    "stdev": grouping.stdev,
                    "dt_s": round(dt, 6),
                }
            )
        )
        return grouping

    def _run_auto(
        self,
        items: ItemSet,
        groups: int,
        group_size: int,
        opts: PartitionOptions,
        is_large: bool,
        limits: CacheLimits,
    ) -> Grouping:
        try:
            return run_auto(
                items,
                groups,
                group_size,
                opts,
                evaluator=self.evaluator,
                history=self.history,
                is_large=is_large,
                limits=limits,
            )
        except PartitionError as e:
            return self._recover(items, groups, group_size, opts, e, "auto")
        except Exception as e:
            err = algorithm_error("auto", "orchestration", str(e) or type(e).__name__)
            err.__cause__ = e
            return self._recover(items, groups, group_size, opts, err, "auto")

    def _run_method(
        self,
        items: ItemSet,
        groups: int,
        group_size: int,
        opts: PartitionOptions,
        is_large: bool,
    ) -> Grouping:
        kind = SolverKind(opts.method)
        ctx = SolveContext(time_limit_ms=opts.time_limit_ms, is_large=is_large)
        outcome = run_solver(kind, items, groups, group_size, opts, ctx)
        if isinstance(outcome, SolverSuccess):
            return outcome.grouping
        logger.warning(
            json.dumps(
                {
                    "event": "solver_failed",
                    "algorithm": kind.value,
                    "error_code": outcome.error.code.value,
                    "error": outcome.error.message,
                }
            )
        )
        return self._recover(items, groups, group_size, opts, outcome.error, kind.value)

    def _recover(
        self,
        items: ItemSet,
        groups: int,
        group_size: int,
        opts: PartitionOptions,
        error: PartitionError,
        failed_method: str,
    ) -> Grouping:
        request = RecoveryRequest(
            items=items,
            groups=groups,
            group_size=group_size,
            options=opts,
            error=error,
            failed_method=failed_method,
            time_limit_ms=max(1.0, opts.time_limit_ms),
        )
        grouping = self.recovery.attempt_recovery(request)
        if grouping is not None:
            grouping.metadata["recovered_from"] = error.code.value
            return grouping
        return graceful_degradation(items, groups, group_size, reason=error.message)

    def _record(
        self,
        grouping: Grouping,
        n_items: int,
        groups: int,
        group_size: int,
        opts: PartitionOptions,
        elapsed_ms: float,
    ) -> None:
        if self.history is None:
            return
        attempts = grouping.metadata.get("auto", {}).get("attempts")
        if attempts is None:
            ok = "recovered_from" not in grouping.metadata and not grouping.metadata.get(
                "degraded", False
            )
            attempts = [
                {
                    "algorithm": opts.method,
                    "ok": ok,
                    "delta": grouping.delta,
                    "stdev": grouping.stdev,
                    "elapsed_ms": elapsed_ms,
                }
            ]
        for a in attempts:
            if solver_kind(a["algorithm"]) is None:
                continue
            self.history.add_entry(
                algorithm=a["algorithm"],
                problem_size=n_items,
                groups=groups,
                group_size=group_size,
                delta=a.get("delta", float("inf")),
                stdev=a.get("stdev", float("inf")),
                execution_time_ms=a.get("elapsed_ms", 0.0),
                success=bool(a.get("ok")),
                time_budget_ms=opts.time_limit_ms,
            )


def partition(
    items: Sequence[Any],
    groups: int,
    group_size: int,
    options: PartitionOptions | Mapping[str, Any] | None = None,
    *,
    evaluator: Evaluator | None = None,
    history: PerformanceHistory | None = None,
    recovery: RecoveryManager | None = None,
) -> Grouping:
    """Split ``groups * group_size`` items into equal-size groups with balanced sums.

    Parameters
    ----------
    items:
        ``Item`` instances or mappings with ``id`` and ``capacity``.
    groups, group_size:
        Shape of the result (N groups of M items).
    options:
        ``PartitionOptions`` or a mapping with snake_case or camelCase keys.

    Raises ``ValidationError``/``InfeasibleError`` for bad inputs and
    ``ConfigurationError`` for bad options; solver failures are recovered.
    """
    return Partitioner(evaluator=evaluator, history=history, recovery=recovery).partition(
        items, groups, group_size, options
    )
