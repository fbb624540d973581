"""Core validation rules for partition requests."""

from __future__ import annotations

import math
import numbers
from collections.abc import Mapping, Sequence
from typing import Any

from .types import InvalidReason, Rules, ValidationResult

_MISSING = object()


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, _MISSING)
    return getattr(item, name, _MISSING)


def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_partition_inputs(
    items: Sequence[Any],
    groups: Any,
    group_size: Any,
    rules: Rules | None = None,
) -> ValidationResult:
    """Validate items and shape for a partition request.

    Pure function with no I/O dependencies. Items may be mappings or objects
    exposing ``id`` and ``capacity``.

    Args:
        items: Candidate items
        groups: Requested group count N
        group_size: Requested items per group M
        rules: Bounds; defaults to ``Rules()``

    Returns:
        ValidationResult listing every failed rule
    """
    rules = rules or Rules()
    reasons: list[InvalidReason] = []
    messages: list[str] = []

    def fail(reason: InvalidReason, message: str) -> None:
        if reason not in reasons:
            reasons.append(reason)
        messages.append(message)

    if not _is_int(groups) or not 1 <= groups <= rules.max_groups:
        fail(
            InvalidReason.GROUP_COUNT_INVALID,
            f"groups must be an integer in [1, {rules.max_groups}], got {groups!r}",
        )
    if not _is_int(group_size) or not 1 <= group_size <= rules.max_group_size:
        fail(
            InvalidReason.GROUP_SIZE_INVALID,
            f"group_size must be an integer in [1, {rules.max_group_size}], got {group_size!r}",
        )

    if items is None or len(items) == 0:
        fail(InvalidReason.EMPTY_ITEMS, "items must not be empty")
        return ValidationResult(valid=False, reasons=reasons, messages=messages)

    seen: set[tuple[type, Any]] = set()
    capacities: list[float] = []
    for pos, item in enumerate(items):
        item_id = _field(item, "id")
        capacity = _field(item, "capacity")
        if item_id is _MISSING or capacity is _MISSING:
            fail(InvalidReason.INVALID_ITEM, f"item {pos} needs both id and capacity")
            continue
        if not (isinstance(item_id, str) or _is_int(item_id)):
            fail(InvalidReason.INVALID_ITEM, f"item {pos} id must be str or int")
            continue
        # integral ids compare by value; "1" and 1 stay distinct
        key = (str, item_id) if isinstance(item_id, str) else (int, int(item_id))
        if key in seen:
            fail(InvalidReason.DUPLICATE_ID, f"duplicate item id {item_id!r}")
        seen.add(key)
        if not _is_real(capacity):
            fail(InvalidReason.INVALID_ITEM, f"item {item_id!r} capacity must be a number")
            continue
        if not math.isfinite(capacity):
            fail(InvalidReason.NON_FINITE_CAPACITY, f"item {item_id!r} capacity is not finite")
            continue
        if capacity <= 0:
            fail(InvalidReason.NON_POSITIVE_CAPACITY, f"item {item_id!r} capacity must be > 0")
            continue
        capacities.append(float(capacity))

    if _is_int(groups) and _is_int(group_size) and len(items) != groups * group_size:
        fail(
            InvalidReason.ITEM_COUNT_MISMATCH,
            f"expected {groups * group_size} items ({groups} x {group_size}), got {len(items)}",
        )

    try:
        total = math.fsum(capacities)
    except OverflowError:
        total = math.inf
    if capacities and max(capacities) - min(capacities) > rules.max_capacity_range:
        fail(
            InvalidReason.CAPACITY_RANGE_TOO_LARGE,
            f"capacity range exceeds {rules.max_capacity_range}",
        )
    if not math.isfinite(total):
        fail(InvalidReason.TOTAL_CAPACITY_OVERFLOW, "total capacity overflows")
    elif not reasons and total <= 0:
        fail(InvalidReason.ZERO_TOTAL_CAPACITY, "total capacity must be positive")

    return ValidationResult(
        valid=not reasons,
        reasons=reasons,
        messages=messages,
        details={"item_count": len(items), "total_capacity": total},
    )


def is_feasible(items: Sequence[Any], groups: Any, group_size: Any) -> bool:
    return validate_partition_inputs(items, groups, group_size).valid
