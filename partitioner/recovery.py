"""Recovery chain run after a solver failure, plus the last-resort partition."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .evaluate import build_grouping, validate_grouping
from .options import PartitionOptions
from .solvers import SolveContext, SolverKind, SolverSuccess, run_solver
from .solvers.lpt import lpt_groups
from .solvers.roundrobin import cyclic_groups, lightest_groups
from .types import ErrorCodes, Grouping, Item, PartitionError

logger = logging.getLogger("partitioner.recovery")

DEGRADED_METHOD = "graceful-degradation"


@dataclass(frozen=True)
class RecoveryRequest:
    items: Sequence[Item]
    groups: int
    group_size: int
    options: PartitionOptions
    error: PartitionError
    failed_method: str
    time_limit_ms: float = 1000.0


class RecoveryStrategy:
    """A named recovery action for a fixed set of error codes."""

    name = "RecoveryStrategy"
    handles: frozenset[ErrorCodes] = frozenset()

    def can_handle(self, error: PartitionError) -> bool:
        return error.code in self.handles

    def recover(self, request: RecoveryRequest) -> Grouping | None:
        raise NotImplementedError


class NumericalPrecisionRecovery(RecoveryStrategy):
    """Rebuild on capacities normalized to the largest one."""

    name = "NumericalPrecisionRecovery"
    handles = frozenset({ErrorCodes.NUMERICAL_ERROR})

    def recover(self, request: RecoveryRequest) -> Grouping | None:
        top = max(it.capacity for it in request.items)
        if not top > 0:
            return None
        scaled = [Item(it.id, it.capacity / top) for it in request.items]
        groups_by_index = lpt_groups(scaled, request.groups, request.group_size)
        return build_grouping(request.items, groups_by_index, "lpt")


class ProblemSizeReduction(RecoveryStrategy):
    """Drop to the greedy LPT construction with no refinement."""

    name = "ProblemSizeReduction"
    handles = frozenset({ErrorCodes.MEMORY_LIMIT, ErrorCodes.SOLVER_TIMEOUT})

    def recover(self, request: RecoveryRequest) -> Grouping | None:
        groups_by_index = lpt_groups(request.items, request.groups, request.group_size)
        return build_grouping(request.items, groups_by_index, "lpt")


class TimeoutRecovery(RecoveryStrategy):
    """Single-pass lightest-group assignment."""

    name = "TimeoutRecovery"
    handles = frozenset({ErrorCodes.SOLVER_TIMEOUT})

    def recover(self, request: RecoveryRequest) -> Grouping | None:
        groups_by_index = lightest_groups(request.items, request.groups, request.group_size)
        return build_grouping(request.items, groups_by_index, "roundrobin-optimized")


class SimplerAlgorithmFallback(RecoveryStrategy):
    """Rerun the request on LPT, then round-robin, skipping the one that failed."""

    name = "SimplerAlgorithmFallback"
    handles = frozenset(
        {
            ErrorCodes.ALGORITHM_ERROR,
            ErrorCodes.SOLVER_TIMEOUT,
            ErrorCodes.MEMORY_LIMIT,
            ErrorCodes.NUMERICAL_ERROR,
        }
    )
    chain = (SolverKind.LPT, SolverKind.ROUNDROBIN)

    def recover(self, request: RecoveryRequest) -> Grouping | None:
        failed = request.failed_method.split("-")[0].lower()
        ctx = SolveContext(time_limit_ms=request.time_limit_ms)
        for kind in self.chain:
            if kind.value == failed:
                continue
            outcome = run_solver(
                kind, request.items, request.groups, request.group_size, request.options, ctx
            )
            if isinstance(outcome, SolverSuccess):
                return outcome.grouping
        return None


def default_strategies() -> list[RecoveryStrategy]:
    return [
        NumericalPrecisionRecovery(),
        ProblemSizeReduction(),
        TimeoutRecovery(),
        SimplerAlgorithmFallback(),
    ]


class RecoveryManager:
    def __init__(self, strategies: Sequence[RecoveryStrategy] | None = None) -> None:
        self.strategies: list[RecoveryStrategy] = (
            list(strategies) if strategies is not None else default_strategies()
        )

    def add_strategy(self, strategy: RecoveryStrategy) -> None:
        """Register ``strategy`` ahead of the existing ones."""
        self.strategies.insert(0, strategy)

    def remove_strategy(self, name: str) -> bool:
        before = len(self.strategies)
        self.strategies = [s for s in self.strategies if s.name != name]
        return len(self.strategies) != before

    def attempt_recovery(self, request: RecoveryRequest) -> Grouping | None:
        for strategy in self.strategies:
            if not strategy.can_handle(request.error):
                continue
            try:
                grouping = strategy.recover(request)
            except Exception as e:
                logger.warning(
                    json.dumps(
                        {
                            "event": "recovery_strategy_failed",
                            "strategy": strategy.name,
                            "error": str(e),
                        }
                    )
                )
                continue
            if grouping is None:
                continue
            if validate_grouping(grouping, request.items, request.groups, request.group_size):
                continue
            grouping.method_used = f"{grouping.method_used} (recovered via {strategy.name})"
            logger.warning(
                json.dumps(
                    {
                        "event": "recovered",
                        "strategy": strategy.name,
                        "failed_method": request.failed_method,
                        "error_code": request.error.code.value,
                        "delta": grouping.delta,
                    }
                )
            )
            return grouping
        return None


def graceful_degradation(
    items: Sequence[Item], groups: int, group_size: int, reason: str | None = None
) -> Grouping:
    """Capacity-sorted cyclic assignment; always valid for validated input."""
    logger.warning(json.dumps({"event": "graceful_degradation", "reason": reason}))
    return build_grouping(
        items,
        cyclic_groups(items, groups),
        DEGRADED_METHOD,
        metadata={"degraded": True, "reason": reason},
    )
