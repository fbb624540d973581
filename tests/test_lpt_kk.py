"""Tests for the LPT and KK heuristics."""

import time

from partitioner import from_capacities
from partitioner.solvers.kk import _repair_sizes, kk_partition
from partitioner.solvers.lpt import lpt, lpt_groups


class TestLpt:
    def test_greedy_phase(self, six_items):
        assert lpt_groups(six_items, 2, 3) == [[0, 3, 4], [1, 2, 5]]

    def test_without_refinement(self, six_items):
        g = lpt(six_items, 2, 3, use_refinement=False)
        assert g.method_used == "lpt"
        assert g.delta == 1.0
        assert g.iterations == 1

    def test_refined(self, six_items):
        g = lpt(six_items, 2, 3)
        assert g.method_used == "lpt-refined"
        # total is odd, so 1 is optimal
        assert g.delta == 1.0
        assert g.iterations >= 1

    def test_refinement_improves_greedy(self, check_partition):
        items = from_capacities([9, 8, 7, 6, 5, 4, 3, 2, 1, 1, 1, 1])
        greedy = lpt(items, 3, 4, use_refinement=False)
        refined = lpt(items, 3, 4)
        check_partition(refined.groups_by_index, 12, 3, 4)
        assert refined.delta <= greedy.delta

    def test_advanced(self, six_items):
        g = lpt(six_items, 2, 3, use_advanced=True, max_refinement_iters=120)
        assert g.method_used == "lpt-advanced"
        assert g.metadata["rounds"] == 3
        assert g.delta == 1.0

    def test_refinement_size_gate(self, check_partition):
        items = from_capacities([float(i % 7 + 1) for i in range(120)])
        g = lpt(items, 2, 60)
        assert g.method_used == "lpt"
        check_partition(g.groups_by_index, 120, 2, 60)

    def test_deterministic(self, six_items):
        a = lpt(six_items, 2, 3)
        b = lpt(six_items, 2, 3)
        assert a.groups_by_index == b.groups_by_index
        assert a.delta == b.delta


class TestKk:
    def test_valid_partition(self, six_items, check_partition):
        g = kk_partition(six_items, 2, 3)
        assert g.method_used == "kk"
        check_partition(g.groups_by_index, 6, 2, 3)
        assert g.delta == 1.0

    def test_repair_moves_items_to_fix_sizes(self, check_partition):
        items = from_capacities([100, 1, 1, 1, 1, 1, 1, 1])
        g = kk_partition(items, 2, 4)
        check_partition(g.groups_by_index, 8, 2, 4)
        assert g.metadata["repair_moves"] == 3

    def test_odd_group_count(self, check_partition):
        items = from_capacities([3, 3, 3, 2, 2, 2, 1, 1, 1])
        g = kk_partition(items, 3, 3)
        check_partition(g.groups_by_index, 9, 3, 3)
        assert g.delta == 0.0

    def test_single_group(self, six_items):
        g = kk_partition(six_items, 1, 6)
        assert g.delta == 0.0
        assert sorted(g.groups_by_index[0]) == list(range(6))

    def test_deterministic(self):
        items = from_capacities([float((i * 37) % 23 + 1) for i in range(24)])
        a = kk_partition(items, 4, 6)
        b = kk_partition(items, 4, 6)
        assert a.groups_by_index == b.groups_by_index

    def test_time_limit_bounds_local_search(self, check_partition):
        items = from_capacities([float((i * 37) % 101 + 1) for i in range(600)])
        t0 = time.perf_counter()
        g = kk_partition(items, 20, 30, time_limit_ms=50)
        assert (time.perf_counter() - t0) * 1000 < 1500
        check_partition(g.groups_by_index, 600, 20, 30)

    def test_expired_budget_skips_local_search(self):
        items = from_capacities([float((i * 37) % 23 + 1) for i in range(24)])
        g = kk_partition(items, 4, 6, time_limit_ms=0)
        assert g.iterations == 1

    def test_repair_is_capped(self):
        caps = [4.0, 3.0, 2.0, 1.0]
        parts = [[0, 1, 2], [3]]
        assert _repair_sizes(caps, parts, 2, max_moves=0) == 0
        assert parts == [[0, 1, 2], [3]]
        assert _repair_sizes(caps, parts, 2) == 1
        assert parts == [[1, 2], [3, 0]]
