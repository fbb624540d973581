"""Balanced fixed-shape partitioning of weighted items."""

from .core import Partitioner, from_capacities, partition, problem_scale
from .evaluate import (
    CacheLimits,
    EvaluationCache,
    EvaluationResult,
    Evaluator,
    calculate_balance_score,
    compare_groupings,
    evaluate_grouping,
    evaluate_grouping_precise,
    kahan_sum,
    satisfies_balance_constraints,
    summarize_evaluation,
    validate_grouping,
)
from .history import AlgorithmRecommendation, PerformanceHistory
from .options import PartitionOptions, load_config, normalize_options
from .recovery import RecoveryManager, RecoveryStrategy, graceful_degradation
from .refine import RefinementResult, refine, refine_grouping
from .solvers import SolverFailure, SolverKind, SolverSuccess, run_solver
from .types import (
    AlgorithmError,
    ConfigurationError,
    ErrorCodes,
    Grouping,
    InfeasibleError,
    Item,
    ItemSet,
    MemoryLimitError,
    NumericalError,
    PartitionError,
    SolverTimeoutError,
    UnsupportedError,
    ValidationError,
)
from validators import is_feasible

__all__ = [
    "AlgorithmError",
    "AlgorithmRecommendation",
    "CacheLimits",
    "ConfigurationError",
    "ErrorCodes",
    "EvaluationCache",
    "EvaluationResult",
    "Evaluator",
    "Grouping",
    "InfeasibleError",
    "Item",
    "ItemSet",
    "MemoryLimitError",
    "NumericalError",
    "PartitionError",
    "PartitionOptions",
    "Partitioner",
    "PerformanceHistory",
    "RecoveryManager",
    "RecoveryStrategy",
    "RefinementResult",
    "SolverFailure",
    "SolverKind",
    "SolverSuccess",
    "SolverTimeoutError",
    "UnsupportedError",
    "ValidationError",
    "calculate_balance_score",
    "compare_groupings",
    "evaluate_grouping",
    "evaluate_grouping_precise",
    "from_capacities",
    "graceful_degradation",
    "is_feasible",
    "kahan_sum",
    "load_config",
    "normalize_options",
    "partition",
    "problem_scale",
    "refine",
    "refine_grouping",
    "run_solver",
    "satisfies_balance_constraints",
    "summarize_evaluation",
    "validate_grouping",
]
