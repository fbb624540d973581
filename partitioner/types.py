from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Union

ItemId = Union[str, int]


class ErrorCodes(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALGORITHM_ERROR = "ALGORITHM_ERROR"
    SOLVER_TIMEOUT = "SOLVER_TIMEOUT"
    MEMORY_LIMIT = "MEMORY_LIMIT"
    NUMERICAL_ERROR = "NUMERICAL_ERROR"
    INFEASIBLE = "INFEASIBLE"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNSUPPORTED = "UNSUPPORTED"


class PartitionError(Exception):
    def __init__(
        self,
        code: ErrorCodes,
        message: str,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_message = user_message or message
        self.details = details or {}


class ValidationError(PartitionError):
    def __init__(
        self,
        message: str,
        reasons: Sequence[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(ErrorCodes.VALIDATION_ERROR, message, details=details)
        self.reasons = list(reasons or [])


class AlgorithmError(PartitionError):
    def __init__(
        self, algorithm: str, message: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            ErrorCodes.ALGORITHM_ERROR,
            message,
            details={"algorithm": algorithm, **(details or {})},
        )
        self.algorithm = algorithm


class SolverTimeoutError(PartitionError):
    def __init__(
        self, timeout_ms: float, message: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            ErrorCodes.SOLVER_TIMEOUT,
            message,
            details={"timeout_ms": timeout_ms, **(details or {})},
        )
        self.timeout_ms = timeout_ms


class MemoryLimitError(PartitionError):
    def __init__(
        self,
        message: str,
        memory_usage_bytes: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            ErrorCodes.MEMORY_LIMIT,
            message,
            details={"memory_usage_bytes": memory_usage_bytes, **(details or {})},
        )
        self.memory_usage_bytes = memory_usage_bytes


class NumericalError(PartitionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCodes.NUMERICAL_ERROR, message, details=details)


class InfeasibleError(PartitionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCodes.INFEASIBLE, message, details=details)


class ConfigurationError(PartitionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCodes.CONFIG_ERROR, message, details=details)


class UnsupportedError(PartitionError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCodes.UNSUPPORTED, message, details=details)


def algorithm_error(
    algorithm: str, operation: str, reason: str, details: dict[str, Any] | None = None
) -> AlgorithmError:
    return AlgorithmError(
        algorithm,
        f"Algorithm '{algorithm}' failed during {operation}: {reason}",
        details={"operation": operation, **(details or {})},
    )


@dataclass(frozen=True)
class Item:
    id: ItemId
    capacity: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "capacity": self.capacity}


@dataclass(frozen=True, eq=False)
class ItemSet(Sequence[Item]):
    """Immutable private copy of the caller's items.

    Instances hash by identity so the evaluation cache can key its buckets on
    them weakly.
    """

    items: tuple[Item, ...]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self.items)

    def __getitem__(self, idx):  # type: ignore[override]
        return self.items[idx]


@dataclass
class Grouping:
    """Solver output: N groups of M item indices plus their balance stats."""

    groups_by_index: list[list[int]]
    groups_by_id: list[list[ItemId]]
    group_sums: list[float]
    delta: float
    stdev: float
    method_used: str
    iterations: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def id_sort_key(item_id: ItemId) -> str:
    # Mixed str/int ids compare as strings.
    return str(item_id)


def capacity_order(items: Sequence[Item]) -> list[int]:
    """Indices of ``items`` sorted by capacity descending, ties by stringified id."""
    return sorted(
        range(len(items)),
        key=lambda i: (-items[i].capacity, id_sort_key(items[i].id)),
    )
