"""Partition request validation module."""

from .partition_rules import is_feasible, validate_partition_inputs
from .types import InvalidReason, Rules, ValidationResult

__all__ = [
    "validate_partition_inputs",
    "is_feasible",
    "Rules",
    "ValidationResult",
    "InvalidReason",
]
