"""End-to-end tests for the partition entry point."""

import copy
import math

import numpy as np

import pytest

import partitioner.core as core
from partitioner import (
    ConfigurationError,
    InfeasibleError,
    Item,
    PartitionOptions,
    Partitioner,
    PerformanceHistory,
    UnsupportedError,
    ValidationError,
    from_capacities,
    is_feasible,
    partition,
)
from validators import InvalidReason, ValidationResult

ALL_METHODS = [
    "roundrobin",
    "lpt",
    "kk",
    "dp",
    "backtracking",
    "flow",
    "ilp",
    "metaheuristic",
    "auto",
]


def test_roundrobin_example(six_items):
    g = partition(six_items, 2, 3, {"method": "roundrobin"})
    assert g.group_sums == [18.0, 13.0]
    assert g.delta == 5.0
    assert g.groups_by_id == [["item0", "item2", "item4"], ["item1", "item3", "item5"]]


@pytest.mark.parametrize("method", ALL_METHODS)
def test_perfect_balance_for_every_method(method, equal_items, check_partition):
    g = partition(equal_items, 2, 2, {"method": method, "seed": 1})
    check_partition(g.groups_by_index, 4, 2, 2)
    assert g.delta == 0.0
    assert g.stdev == 0.0


@pytest.mark.parametrize("method", ALL_METHODS)
def test_single_group_identity(method, six_items):
    g = partition(six_items, 1, 6, {"method": method, "seed": 1})
    assert g.delta == 0.0
    assert g.stdev == 0.0
    assert sorted(g.groups_by_index[0]) == list(range(6))


@pytest.mark.parametrize(
    "method", ["roundrobin", "lpt", "kk", "metaheuristic", "auto"]
)
def test_deterministic(method):
    items = from_capacities([float((i * 31) % 17 + 1) for i in range(16)])
    opts = {"method": method, "seed": 11, "maxIters": 60}
    a = partition(items, 4, 4, opts)
    b = partition(items, 4, 4, opts)
    assert a.groups_by_index == b.groups_by_index
    assert a.delta == b.delta


@pytest.mark.parametrize("kind", ["genetic", "simulated-annealing", "tabu-search"])
def test_metaheuristic_kind_from_options(kind, six_items):
    g = partition(
        six_items,
        2,
        3,
        {
            "method": "metaheuristic",
            "seed": 4,
            "maxIters": 40,
            "algorithmConfig": {"metaheuristic": {"type": kind, "populationSize": 8}},
        },
    )
    assert g.method_used == f"metaheuristic-{kind}"


def test_mapping_items_and_mixed_ids(check_partition):
    items = [
        {"id": 10, "capacity": 5},
        {"id": "2", "capacity": 5},
        {"id": "a", "capacity": 5},
        {"id": 1, "capacity": 5},
    ]
    before = copy.deepcopy(items)
    g = partition(items, 2, 2, {"method": "roundrobin"})
    assert g.groups_by_id == [[1, "2"], [10, "a"]]
    assert items == before


def test_int_and_str_ids_do_not_collide():
    items = [Item(1, 2.0), Item("1", 3.0)]
    g = partition(items, 2, 1, {"method": "lpt"})
    assert sorted(map(str, (i for grp in g.groups_by_id for i in grp))) == ["1", "1"]


def test_numpy_and_python_int_ids_collide():
    items = [{"id": np.int64(1), "capacity": 2.0}, {"id": 1, "capacity": 3.0}]
    with pytest.raises(ValidationError) as exc:
        partition(items, 2, 1)
    assert exc.value.reasons == ["duplicate_id"]


def test_options_instance_and_aliases(six_items):
    opts = PartitionOptions.model_validate({"method": "lpt", "timeLimitMs": 100})
    assert opts.time_limit_ms == 100
    assert partition(six_items, 2, 3, opts).delta == 1.0
    assert partition(six_items, 2, 3, {"method": "lpt", "time_limit_ms": 100}).delta == 1.0


class TestRejections:
    def test_unknown_option(self, six_items):
        with pytest.raises(ConfigurationError) as exc:
            partition(six_items, 2, 3, {"bogus": 1})
        assert exc.value.code.value == "CONFIG_ERROR"

    def test_bad_method(self, six_items):
        with pytest.raises(ConfigurationError):
            partition(six_items, 2, 3, {"method": "simplex"})

    def test_negative_time(self, six_items):
        with pytest.raises(ConfigurationError) as exc:
            partition(six_items, 2, 3, {"timeLimitMs": -1})
        assert exc.value.details["errors"][0]["loc"] in ("timeLimitMs", "time_limit_ms")

    def test_options_not_a_mapping(self, six_items):
        with pytest.raises(UnsupportedError):
            partition(six_items, 2, 3, ["method", "lpt"])

    @pytest.mark.parametrize(
        "items, groups, group_size, reason",
        [
            ([], 1, 1, "empty_items"),
            (from_capacities([1, 2, 3]), 2, 2, "item_count_mismatch"),
            ([Item("a", 1.0), Item("a", 2.0)], 2, 1, "duplicate_id"),
            (from_capacities([1, 0]), 2, 1, "non_positive_capacity"),
            (from_capacities([1, -3]), 2, 1, "non_positive_capacity"),
            (from_capacities([1, math.nan]), 2, 1, "non_finite_capacity"),
            (from_capacities([1, math.inf]), 2, 1, "non_finite_capacity"),
            (from_capacities([1, 2]), 0, 2, "group_count_invalid"),
            (from_capacities([1, 2]), True, 2, "group_count_invalid"),
            (from_capacities([1, 2]), 2, 1.0, "group_size_invalid"),
            ([{"id": 1.5, "capacity": 1}], 1, 1, "invalid_item"),
            ([{"id": "x"}], 1, 1, "invalid_item"),
        ],
    )
    def test_validation_errors(self, items, groups, group_size, reason):
        with pytest.raises(ValidationError) as exc:
            partition(items, groups, group_size)
        assert reason in exc.value.reasons

    def test_zero_total_is_infeasible(self, six_items, monkeypatch):
        def zero_total(items, groups, group_size, rules=None):
            return ValidationResult(
                valid=False,
                reasons=[InvalidReason.ZERO_TOTAL_CAPACITY],
                messages=["total capacity must be positive"],
            )

        monkeypatch.setattr(core, "validate_partition_inputs", zero_total)
        with pytest.raises(InfeasibleError):
            partition(six_items, 2, 3)


def test_is_feasible(six_items):
    assert is_feasible(six_items, 2, 3)
    assert not is_feasible(six_items, 4, 2)


def test_zero_budget_returns_valid_grouping(six_items, check_partition):
    for method in ALL_METHODS:
        g = partition(six_items, 2, 3, {"method": method, "timeLimitMs": 0})
        check_partition(g.groups_by_index, 6, 2, 3)


def test_degraded_auto_keeps_every_id(six_items):
    g = partition(
        six_items,
        2,
        3,
        {"disallowedAlgorithms": ["roundrobin", "lpt", "kk", "dp", "backtracking"]},
    )
    assert g.metadata["degraded"] is True
    ids = sorted(i for grp in g.groups_by_id for i in grp)
    assert ids == sorted(it.id for it in six_items)


class TestHistory:
    def test_auto_attempts_recorded(self, six_items):
        history = PerformanceHistory(clock=lambda: 1000.0)
        Partitioner(history=history).partition(six_items, 2, 3)
        frame = history.to_frame()
        assert list(frame["algorithm"]) == ["roundrobin", "dp", "backtracking", "lpt", "kk"]
        assert frame["success"].all()

    def test_direct_recovered_run_recorded_as_failure(self):
        history = PerformanceHistory()
        items = from_capacities([float(i + 1) for i in range(24)])
        partition(items, 4, 6, {"method": "dp"}, history=history)
        frame = history.to_frame()
        assert list(frame["algorithm"]) == ["dp"]
        assert not frame["success"].iloc[0]

    def test_shared_history_steers_next_run(self, six_items):
        history = PerformanceHistory()
        service = Partitioner(history=history)
        service.partition(six_items, 2, 3)
        recs = history.get_recommendations(6, 2, 3, 30000)
        assert {r.algorithm for r in recs} == {"roundrobin", "dp", "backtracking", "lpt", "kk"}
        g = service.partition(six_items, 2, 3)
        assert g.delta == 1.0

    def test_no_history_records_nothing(self, six_items):
        service = Partitioner()
        g = service.partition(six_items, 2, 3)
        assert service.history is None
        assert g.delta == 1.0
