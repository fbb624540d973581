"""Tests for the contiguous-range DP and the backtracking search."""

import pytest

from partitioner import MemoryLimitError, from_capacities
from partitioner.solvers.backtracking import backtracking_partition
from partitioner.solvers.dp import dp_partition, estimate_memory_bytes


class TestDp:
    def test_contiguous_runs_of_sorted_items(self):
        items = from_capacities([1, 9, 2, 8])
        g = dp_partition(items, 2, 2)
        assert g.method_used == "dp-integer-scaled"
        # sorted order is 9, 8, 2, 1; only contiguous runs are considered
        assert g.groups_by_index == [[1, 3], [2, 0]]
        assert g.group_sums == [17.0, 3.0]
        assert g.metadata["scale_factor"] == 111

    def test_perfect_split(self, equal_items):
        g = dp_partition(equal_items, 2, 2)
        assert g.delta == 0.0
        assert g.metadata["max_scaled_deviation"] == 0.0

    def test_item_limit(self):
        items = from_capacities([1.0] * 24)
        with pytest.raises(MemoryLimitError):
            dp_partition(items, 4, 6)

    def test_total_limit(self):
        items = from_capacities([6000, 6000])
        with pytest.raises(MemoryLimitError):
            dp_partition(items, 2, 1)

    def test_memory_estimate_limit(self):
        # 20 items of 0.5 scale by 2000 for a scaled total of 20000
        assert estimate_memory_bytes(20, 20, 20000) == 70_563_528
        items = from_capacities([0.5] * 20)
        with pytest.raises(MemoryLimitError) as exc:
            dp_partition(items, 20, 1)
        assert exc.value.memory_usage_bytes == 70_563_528

    def test_iteration_cap_falls_back_to_cyclic(self):
        items = from_capacities([1, 9, 2, 8])
        g = dp_partition(items, 2, 2, max_iters=1)
        assert g.method_used == "dp-fallback"
        assert g.groups_by_index == [[1, 2], [3, 0]]


class TestBacktracking:
    def test_finds_optimum(self, six_items, check_partition):
        g = backtracking_partition(six_items, 2, 3)
        assert g.method_used == "backtracking"
        check_partition(g.groups_by_index, 6, 2, 3)
        assert g.delta == 1.0
        assert g.metadata["max_deviation"] == pytest.approx(0.5)
        assert g.metadata["truncated"] is False

    def test_early_stop_on_perfect_balance(self, equal_items):
        g = backtracking_partition(equal_items, 2, 2)
        assert g.delta == 0.0
        assert g.method_used == "backtracking"

    def test_iteration_guard_uses_greedy(self, six_items):
        g = backtracking_partition(six_items, 2, 3, max_iters=1)
        assert g.method_used == "backtracking-fallback"
        assert g.metadata["truncated"] is True
        assert g.groups_by_index == [[0, 3, 4], [1, 2, 5]]

    def test_depth_guard(self, check_partition):
        items = from_capacities([8, 7, 6, 5, 4, 3, 2, 1])
        g = backtracking_partition(items, 2, 4, max_recursion_depth=3)
        assert g.method_used == "backtracking-fallback"
        assert g.metadata["truncated"] is True
        check_partition(g.groups_by_index, 8, 2, 4)

    def test_three_groups(self, check_partition):
        items = from_capacities([3, 3, 3, 2, 2, 2, 1, 1, 1])
        g = backtracking_partition(items, 3, 3)
        check_partition(g.groups_by_index, 9, 3, 3)
        assert g.delta == 0.0
