"""Solver registry: a closed set of solver kinds and explicit solve outcomes."""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..evaluate import validate_grouping
from ..options import PartitionOptions
from ..types import AlgorithmError, Grouping, Item, PartitionError, algorithm_error
from .backtracking import backtracking_partition
from .dp import dp_partition
from .kk import kk_partition
from .lpt import lpt
from .metaheuristic import MetaheuristicParams, metaheuristic
from .placeholders import flow_partition, ilp_partition
from .roundrobin import round_robin


@dataclass(frozen=True)
class SolveContext:
    """Per-invocation knobs derived from the request, not from the caller's options."""

    time_limit_ms: float
    is_large: bool = False
    # True when run as one candidate of the auto strategy
    in_auto: bool = False


@dataclass
class SolverSuccess:
    grouping: Grouping
    elapsed_ms: float

    ok = True


@dataclass
class SolverFailure:
    kind: SolverKind
    error: PartitionError
    elapsed_ms: float

    ok = False


SolveOutcome = Union[SolverSuccess, SolverFailure]


class SolverKind(str, Enum):
    ROUNDROBIN = "roundrobin"
    LPT = "lpt"
    KK = "kk"
    DP = "dp"
    BACKTRACKING = "backtracking"
    FLOW = "flow"
    ILP = "ilp"
    METAHEURISTIC = "metaheuristic"

    @property
    def is_placeholder(self) -> bool:
        return self in (SolverKind.FLOW, SolverKind.ILP)

    def solve(
        self,
        items: Sequence[Item],
        groups: int,
        group_size: int,
        options: PartitionOptions,
        ctx: SolveContext,
    ) -> Grouping:
        return _DISPATCH[self](items, groups, group_size, options, ctx)


def _solve_roundrobin(items, groups, group_size, options, ctx):
    return round_robin(items, groups, group_size)


def _solve_lpt(items, groups, group_size, options, ctx):
    cfg = options.algorithm_config.lpt
    if ctx.in_auto:
        use_refinement = True
        iters = max(10, options.max_iters // 5)
    else:
        use_refinement = not ctx.is_large
        iters = options.max_iters // 10
    if cfg.use_refinement is not None:
        use_refinement = cfg.use_refinement
    if cfg.max_refinement_iters is not None:
        iters = cfg.max_refinement_iters
    return lpt(
        items,
        groups,
        group_size,
        use_refinement=use_refinement,
        max_refinement_iters=iters,
        use_advanced=cfg.use_advanced,
        time_limit_ms=ctx.time_limit_ms,
    )


def _solve_kk(items, groups, group_size, options, ctx):
    return kk_partition(items, groups, group_size, time_limit_ms=ctx.time_limit_ms)


def _solve_dp(items, groups, group_size, options, ctx):
    cfg = options.algorithm_config.dp
    return dp_partition(
        items,
        groups,
        group_size,
        max_items=cfg.max_items,
        max_total_sum=cfg.max_total_sum,
        max_iters=max(options.max_iters, len(items)),
        time_limit_ms=ctx.time_limit_ms,
    )


def _solve_backtracking(items, groups, group_size, options, ctx):
    cfg = options.algorithm_config.backtracking
    depth = cfg.max_recursion_depth or (20 if ctx.is_large else 50)
    return backtracking_partition(
        items,
        groups,
        group_size,
        max_iters=cfg.max_iters,
        time_limit_ms=ctx.time_limit_ms,
        max_recursion_depth=depth,
        early_stop_threshold=options.tolerance,
    )


def _solve_flow(items, groups, group_size, options, ctx):
    return flow_partition(items, groups, group_size)


def _solve_ilp(items, groups, group_size, options, ctx):
    return ilp_partition(items, groups, group_size)


def _solve_metaheuristic(items, groups, group_size, options, ctx):
    cfg = options.algorithm_config.metaheuristic
    params = MetaheuristicParams(
        population_size=cfg.population_size,
        mutation_rate=cfg.mutation_rate,
        crossover_rate=cfg.crossover_rate,
        elite_size=cfg.elite_size,
        initial_temperature=cfg.initial_temperature,
        cooling_rate=cfg.cooling_rate,
        min_temperature=cfg.min_temperature,
        tabu_size=cfg.tabu_size,
        aspiration=cfg.aspiration,
    )
    max_iters = max(100, options.max_iters // 2) if ctx.in_auto else options.max_iters
    return metaheuristic(
        items,
        groups,
        group_size,
        kind=cfg.type,
        max_iters=max_iters,
        time_limit_ms=ctx.time_limit_ms,
        seed=options.seed,
        params=params,
    )


_DISPATCH = {
    SolverKind.ROUNDROBIN: _solve_roundrobin,
    SolverKind.LPT: _solve_lpt,
    SolverKind.KK: _solve_kk,
    SolverKind.DP: _solve_dp,
    SolverKind.BACKTRACKING: _solve_backtracking,
    SolverKind.FLOW: _solve_flow,
    SolverKind.ILP: _solve_ilp,
    SolverKind.METAHEURISTIC: _solve_metaheuristic,
}


def solver_kind(name: str) -> SolverKind | None:
    try:
        return SolverKind(name.strip().lower())
    except ValueError:
        return None


def run_solver(
    kind: SolverKind,
    items: Sequence[Item],
    groups: int,
    group_size: int,
    options: PartitionOptions,
    ctx: SolveContext,
) -> SolveOutcome:
    """Run one solver, turning any raised error into a ``SolverFailure``.

    A grouping that is not a valid N x M partition is also a failure.
    """
    start = time.perf_counter()
    try:
        grouping = kind.solve(items, groups, group_size, options, ctx)
    except PartitionError as e:
        return SolverFailure(kind, e, (time.perf_counter() - start) * 1000)
    except Exception as e:
        err = algorithm_error(kind.value, "solve", str(e) or type(e).__name__)
        err.__cause__ = e
        return SolverFailure(kind, err, (time.perf_counter() - start) * 1000)
    elapsed = (time.perf_counter() - start) * 1000
    problems = validate_grouping(grouping, items, groups, group_size)
    if problems:
        err = AlgorithmError(
            kind.value,
            f"Algorithm '{kind.value}' produced an invalid grouping: {problems[0]}",
            details={"problems": problems},
        )
        return SolverFailure(kind, err, elapsed)
    return SolverSuccess(grouping, elapsed)


__all__ = [
    "SolveContext",
    "SolveOutcome",
    "SolverFailure",
    "SolverKind",
    "SolverSuccess",
    "run_solver",
    "solver_kind",
]
