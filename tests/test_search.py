"""Seeded metaheuristics, the RNG behind them, and swap refinement."""

import time

import pytest

from partitioner import from_capacities
from partitioner.evaluate import build_grouping
from partitioner.refine import refine, refine_grouping
from partitioner.rng import DEFAULT_SEED, Randomizer
from partitioner.solvers.metaheuristic import (
    SEARCHES,
    MetaheuristicParams,
    fitness_of,
    metaheuristic,
)

REFINE_CAPS = [15, 14, 10, 8, 4, 3]
REFINE_START = [[0, 3, 5], [1, 2, 4]]


class TestRandomizer:
    def test_first_value(self):
        assert Randomizer(1).random() == 1015568748 / 0xFFFFFFFF

    def test_default_seed(self):
        assert Randomizer().state == DEFAULT_SEED
        assert Randomizer(None).random() == Randomizer(DEFAULT_SEED).random()

    def test_below_in_range(self):
        rng = Randomizer(7)
        values = [rng.below(5) for _ in range(500)]
        assert set(values) <= set(range(5))
        assert len(set(values)) == 5

    def test_shuffle_is_permutation_and_repeatable(self):
        a, b = list(range(20)), list(range(20))
        Randomizer(42).shuffle(a)
        Randomizer(42).shuffle(b)
        assert a == b
        assert sorted(a) == list(range(20))


@pytest.mark.parametrize("kind", sorted(SEARCHES))
def test_metaheuristic_valid_and_seeded(kind, check_partition):
    items = from_capacities([float((i * 17) % 13 + 1) for i in range(12)])
    params = MetaheuristicParams(population_size=10, elite_size=2)
    a = metaheuristic(items, 3, 4, kind=kind, max_iters=50, seed=3, params=params)
    b = metaheuristic(items, 3, 4, kind=kind, max_iters=50, seed=3, params=params)
    check_partition(a.groups_by_index, 12, 3, 4)
    assert a.method_used == f"metaheuristic-{kind}"
    assert a.groups_by_index == b.groups_by_index
    assert a.metadata["fitness"] == pytest.approx(fitness_of(a.delta))


def test_tabu_reaches_perfect_balance(equal_items):
    g = metaheuristic(equal_items, 2, 2, kind="tabu-search", seed=1)
    assert g.delta == 0.0
    assert g.iterations == 1


def test_fitness_of():
    assert fitness_of(0.0) == 1.0
    assert fitness_of(1.0) == 0.5


class TestRefine:
    def test_best_improvement_reaches_zero(self):
        items = from_capacities(REFINE_CAPS)
        res = refine(items, REFINE_START)
        assert res.delta == 0.0
        assert res.groups_by_index == [[0, 3, 4], [1, 2, 5]]
        assert res.improvements == 1

    def test_input_not_mutated(self):
        items = from_capacities(REFINE_CAPS)
        start = [list(g) for g in REFINE_START]
        refine(items, start)
        assert start == REFINE_START

    def test_stochastic_never_worse_and_seeded(self):
        items = from_capacities([float(i) for i in range(1, 17)])
        start = [list(range(0, 4)), list(range(4, 8)), list(range(8, 12)), list(range(12, 16))]
        before = build_grouping(items, start, "start").delta
        a = refine(items, start, strategy="stochastic", seed=5)
        b = refine(items, start, strategy="stochastic", seed=5)
        assert a.delta <= before
        assert a.groups_by_index == b.groups_by_index

    def test_escalates_to_two_two(self):
        # no single swap helps; a pair swap does
        items = from_capacities([6, 6, 1, 1, 4, 4, 4, 4])
        start = [[0, 1, 2, 3], [4, 5, 6, 7]]
        assert refine(items, start, enable_22=False).delta == 2.0
        res = refine(items, start, escalate=True)
        assert res.delta == 0.0

    def test_disabled_moves_are_a_no_op(self):
        items = from_capacities(REFINE_CAPS)
        res = refine(items, REFINE_START, enable_11=False, enable_22=False)
        assert res.iterations == 0
        assert res.delta == 2.0

    def test_passed_deadline_stops_before_scanning(self):
        items = from_capacities(REFINE_CAPS)
        res = refine(items, REFINE_START, deadline=time.perf_counter() - 1.0)
        assert res.iterations == 0
        assert res.groups_by_index == REFINE_START

    def test_refine_grouping_updates_in_place(self):
        items = from_capacities(REFINE_CAPS)
        grouping = build_grouping(items, [list(g) for g in REFINE_START], "lpt")
        refine_grouping(items, grouping)
        assert grouping.delta == 0.0
        assert grouping.group_sums == [27.0, 27.0]
        assert grouping.groups_by_id[0] == ["item0", "item3", "item4"]
        assert grouping.method_used == "lpt"
