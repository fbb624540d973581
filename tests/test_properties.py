import pytest

from partitioner import from_capacities, partition
from partitioner.evaluate import build_grouping
from partitioner.refine import refine

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import HealthCheck, given, settings  # noqa: E402
from hypothesis import strategies as st  # noqa: E402

METHODS = ["roundrobin", "lpt", "kk", "dp", "backtracking", "metaheuristic", "auto"]


@st.composite
def problems(draw):
    groups = draw(st.integers(min_value=1, max_value=4))
    group_size = draw(st.integers(min_value=1, max_value=4))
    capacities = draw(
        st.lists(
            st.floats(min_value=0.5, max_value=100.0, allow_nan=False, allow_infinity=False),
            min_size=groups * group_size,
            max_size=groups * group_size,
        )
    )
    return capacities, groups, group_size


@pytest.mark.parametrize("method", METHODS)
@settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(problem=problems())
def test_every_method_returns_a_partition(method, problem):
    capacities, groups, group_size = problem
    items = from_capacities(capacities)
    g = partition(items, groups, group_size, {"method": method, "seed": 3, "maxIters": 50})

    flat = sorted(i for grp in g.groups_by_index for i in grp)
    assert flat == list(range(len(items)))
    assert [len(grp) for grp in g.groups_by_index] == [group_size] * groups
    assert g.delta >= 0
    assert g.stdev >= 0
    if groups == 1:
        assert g.delta == 0
        assert g.stdev == 0


@settings(max_examples=50, deadline=None)
@given(problem=problems(), data=st.data())
def test_refinement_never_worsens(problem, data):
    capacities, groups, group_size = problem
    items = from_capacities(capacities)
    order = data.draw(st.permutations(list(range(len(items)))))
    start = [order[k * group_size : (k + 1) * group_size] for k in range(groups)]
    before = build_grouping(items, [list(g) for g in start], "start").delta

    after = refine(items, start)
    stochastic = refine(items, start, strategy="stochastic", seed=1)

    assert after.delta <= before
    assert stochastic.delta <= before
    assert sorted(i for g in after.groups_by_index for i in g) == sorted(order)
