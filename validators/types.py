"""Types and models for partition input validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InvalidReason(Enum):
    """Enumerated error codes for partition input failures."""

    EMPTY_ITEMS = "empty_items"
    INVALID_ITEM = "invalid_item"
    DUPLICATE_ID = "duplicate_id"
    NON_FINITE_CAPACITY = "non_finite_capacity"
    NON_POSITIVE_CAPACITY = "non_positive_capacity"
    GROUP_COUNT_INVALID = "group_count_invalid"
    GROUP_SIZE_INVALID = "group_size_invalid"
    ITEM_COUNT_MISMATCH = "item_count_mismatch"
    CAPACITY_RANGE_TOO_LARGE = "capacity_range_too_large"
    TOTAL_CAPACITY_OVERFLOW = "total_capacity_overflow"
    ZERO_TOTAL_CAPACITY = "zero_total_capacity"


@dataclass
class Rules:
    """Bounds applied to partition requests."""

    max_groups: int = 1000
    max_group_size: int = 1000
    # Spread beyond this loses integer precision once scaled for the DP solver
    max_capacity_range: float = 2**53 / 1000


@dataclass
class ValidationResult:
    """Result of input validation with per-reason diagnostics."""

    valid: bool
    reasons: list[InvalidReason] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
