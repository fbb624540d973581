"""Seeded stochastic search over fixed-shape partitions.

All three searches score a solution by ``1 / (1 + delta)`` and draw every
random decision from :class:`partitioner.rng.Randomizer`, so a fixed seed gives
identical output on every run.
"""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from ..evaluate import build_grouping
from ..rng import Randomizer
from ..types import Grouping, Item

MetaheuristicType = Literal["genetic", "simulated-annealing", "tabu-search"]

Solution = list[list[int]]


@dataclass
class MetaheuristicParams:
    population_size: int = 50
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elite_size: int = 5
    initial_temperature: float = 1000.0
    cooling_rate: float = 0.95
    min_temperature: float = 0.1
    tabu_size: int = 20
    aspiration: bool = True


def fitness_of(delta: float) -> float:
    return 1.0 / (1.0 + delta)


class _Scorer:
    def __init__(self, items: Sequence[Item]) -> None:
        self.caps = [float(it.capacity) for it in items]

    def sums(self, sol: Solution) -> list[float]:
        return [sum(self.caps[i] for i in g) for g in sol]

    def delta(self, sol: Solution) -> float:
        s = self.sums(sol)
        return max(s) - min(s) if len(s) > 1 else 0.0

    def fitness(self, sol: Solution) -> float:
        return fitness_of(self.delta(sol))


def _random_solution(rng: Randomizer, n_items: int, groups: int, group_size: int) -> Solution:
    idx = list(range(n_items))
    rng.shuffle(idx)
    return [idx[g * group_size : (g + 1) * group_size] for g in range(groups)]


def _random_swap(rng: Randomizer, sol: Solution) -> Solution:
    """Copy of ``sol`` with one item exchanged between two distinct groups."""
    out = [list(g) for g in sol]
    if len(out) < 2:
        return out
    a = rng.below(len(out))
    b = rng.below(len(out) - 1)
    if b >= a:
        b += 1
    pa = rng.below(len(out[a]))
    pb = rng.below(len(out[b]))
    out[a][pa], out[b][pb] = out[b][pb], out[a][pa]
    return out


def _crossover(rng: Randomizer, p1: Solution, p2: Solution, group_size: int) -> Solution:
    """Uniform crossover on the item->group map, back-filling dropped items."""
    n_items = sum(len(g) for g in p1)
    owner1 = [0] * n_items
    owner2 = [0] * n_items
    for g, members in enumerate(p1):
        for i in members:
            owner1[i] = g
    for g, members in enumerate(p2):
        for i in members:
            owner2[i] = g
    child: Solution = [[] for _ in p1]
    leftover: list[int] = []
    for i in range(n_items):
        g = owner1[i] if rng.random() < 0.5 else owner2[i]
        if len(child[g]) < group_size:
            child[g].append(i)
        else:
            leftover.append(i)
    for i in leftover:
        for g in range(len(child)):
            if len(child[g]) < group_size:
                child[g].append(i)
                break
    return child


def _deadline(time_limit_ms: float) -> float:
    return time.perf_counter() + time_limit_ms / 1000.0


def genetic(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_iters: int = 1000,
    time_limit_ms: float = 30000,
    seed: int | None = None,
    params: MetaheuristicParams | None = None,
) -> Grouping:
    p = params or MetaheuristicParams()
    rng = Randomizer(seed)
    scorer = _Scorer(items)
    deadline = _deadline(time_limit_ms)
    pop_size = max(2, p.population_size)
    elite = max(1, min(p.elite_size, pop_size))

    population = [_random_solution(rng, len(items), groups, group_size) for _ in range(pop_size)]
    best = population[0]
    best_fit = scorer.fitness(best)
    generation = 0
    while generation < max_iters and time.perf_counter() <= deadline:
        generation += 1
        scored = sorted(
            ((scorer.fitness(sol), k, sol) for k, sol in enumerate(population)),
            key=lambda t: (-t[0], t[1]),
        )
        if scored[0][0] > best_fit:
            best_fit = scored[0][0]
            best = [list(g) for g in scored[0][2]]
        if best_fit >= 1.0:
            break
        parents = [sol for _, _, sol in scored[:elite]]
        nxt: list[Solution] = [[list(g) for g in sol] for sol in parents]
        while len(nxt) < pop_size:
            p1 = parents[rng.below(len(parents))]
            p2 = parents[rng.below(len(parents))]
            if rng.random() < p.crossover_rate:
                child = _crossover(rng, p1, p2, group_size)
            else:
                child = [list(g) for g in p1]
            if rng.random() < p.mutation_rate:
                child = _random_swap(rng, child)
            nxt.append(child)
        population = nxt
    for sol in population:
        f = scorer.fitness(sol)
        if f > best_fit:
            best_fit, best = f, sol
    return build_grouping(
        items, best, "metaheuristic-genetic", max(1, generation), {"fitness": best_fit}
    )


def simulated_annealing(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_iters: int = 1000,
    time_limit_ms: float = 30000,
    seed: int | None = None,
    params: MetaheuristicParams | None = None,
) -> Grouping:
    p = params or MetaheuristicParams()
    rng = Randomizer(seed)
    scorer = _Scorer(items)
    deadline = _deadline(time_limit_ms)

    current = _random_solution(rng, len(items), groups, group_size)
    current_fit = scorer.fitness(current)
    best, best_fit = current, current_fit
    temperature = p.initial_temperature
    step = 0
    while step < max_iters and time.perf_counter() <= deadline:
        step += 1
        cand = _random_swap(rng, current)
        cand_fit = scorer.fitness(cand)
        gain = cand_fit - current_fit
        if gain > 0 or rng.random() < math.exp(gain / temperature):
            current, current_fit = cand, cand_fit
            if current_fit > best_fit:
                best, best_fit = current, current_fit
        temperature = max(p.min_temperature, temperature * p.cooling_rate)
        if best_fit >= 1.0:
            break
    return build_grouping(
        items,
        best,
        "metaheuristic-simulated-annealing",
        max(1, step),
        {"fitness": best_fit, "final_temperature": temperature},
    )


def tabu_search(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    max_iters: int = 1000,
    time_limit_ms: float = 30000,
    seed: int | None = None,
    params: MetaheuristicParams | None = None,
) -> Grouping:
    p = params or MetaheuristicParams()
    rng = Randomizer(seed)
    caps = [float(it.capacity) for it in items]
    deadline = _deadline(time_limit_ms)

    current = _random_solution(rng, len(items), groups, group_size)
    sums = [sum(caps[i] for i in g) for g in current]
    best = [list(g) for g in current]
    best_delta = max(sums) - min(sums) if groups > 1 else 0.0
    tabu: deque[tuple[int, int]] = deque(maxlen=p.tabu_size or None)
    tabu_set: set[tuple[int, int]] = set()
    step = 0
    while step < max_iters and time.perf_counter() <= deadline and groups > 1:
        step += 1
        pick: tuple[float, int, int, int, int] | None = None
        for a in range(groups):
            for b in range(a + 1, groups):
                others = [sums[g] for g in range(groups) if g != a and g != b]
                hi_o = max(others) if others else -math.inf
                lo_o = min(others) if others else math.inf
                for pa, ia in enumerate(current[a]):
                    for pb, ib in enumerate(current[b]):
                        diff = caps[ia] - caps[ib]
                        na, nb = sums[a] - diff, sums[b] + diff
                        d = max(hi_o, na, nb) - min(lo_o, na, nb)
                        move = (min(ia, ib), max(ia, ib))
                        if move in tabu_set and not (p.aspiration and d < best_delta):
                            continue
                        if pick is None or d < pick[0]:
                            pick = (d, a, b, pa, pb)
        if pick is None:
            break
        d, a, b, pa, pb = pick
        ia, ib = current[a][pa], current[b][pb]
        current[a][pa], current[b][pb] = ib, ia
        sums[a] = sum(caps[i] for i in current[a])
        sums[b] = sum(caps[i] for i in current[b])
        move = (min(ia, ib), max(ia, ib))
        if p.tabu_size > 0 and move not in tabu_set:
            if len(tabu) == tabu.maxlen:
                tabu_set.discard(tabu[0])
            tabu.append(move)
            tabu_set.add(move)
        cur_delta = max(sums) - min(sums)
        if cur_delta < best_delta:
            best_delta = cur_delta
            best = [list(g) for g in current]
        if best_delta <= 0:
            break
    return build_grouping(
        items,
        best,
        "metaheuristic-tabu-search",
        max(1, step),
        {"fitness": fitness_of(best_delta)},
    )


SEARCHES = {
    "genetic": genetic,
    "simulated-annealing": simulated_annealing,
    "tabu-search": tabu_search,
}


def metaheuristic(
    items: Sequence[Item],
    groups: int,
    group_size: int,
    *,
    kind: MetaheuristicType = "genetic",
    **kwargs,
) -> Grouping:
    return SEARCHES[kind](items, groups, group_size, **kwargs)
