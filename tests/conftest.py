from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for package imports like `partitioner.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from partitioner import Item, from_capacities  # noqa: E402


@pytest.fixture
def six_items() -> list[Item]:
    """Capacities 10, 8, 6, 4, 2, 1 with ids item0..item5."""
    return from_capacities([10, 8, 6, 4, 2, 1])


@pytest.fixture
def equal_items() -> list[Item]:
    """Four items of capacity 5; any 2x2 split is perfectly balanced."""
    return from_capacities([5, 5, 5, 5])


def assert_valid_partition(groups_by_index, n_items: int, groups: int, group_size: int) -> None:
    assert len(groups_by_index) == groups
    assert all(len(g) == group_size for g in groups_by_index)
    flat = sorted(i for g in groups_by_index for i in g)
    assert flat == list(range(n_items))


@pytest.fixture
def check_partition():
    return assert_valid_partition
