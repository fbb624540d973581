"""In-memory record of past solver runs and the recommendations derived from it."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

import pandas as pd

MAX_ENTRIES = 10_000
MIN_SUCCESS_RATE = 0.3
BUDGET_SLACK = 1.5

_COLUMNS = [
    "algorithm",
    "problem_size",
    "groups",
    "group_size",
    "delta",
    "stdev",
    "execution_time_ms",
    "success",
    "time_budget_ms",
    "timestamp",
]


@dataclass(frozen=True)
class HistoryEntry:
    algorithm: str
    problem_size: int
    groups: int
    group_size: int
    delta: float
    stdev: float
    execution_time_ms: float
    success: bool
    time_budget_ms: float
    timestamp: float


@dataclass(frozen=True)
class AlgorithmRecommendation:
    algorithm: str
    confidence: float
    expected_delta: float
    expected_time_ms: float
    success_rate: float
    sample_count: int


class PerformanceHistory:
    def __init__(
        self, max_entries: int = MAX_ENTRIES, clock: Callable[[], float] = time.time
    ) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: list[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add_entry(
        self,
        algorithm: str,
        problem_size: int,
        groups: int,
        group_size: int,
        delta: float,
        stdev: float,
        execution_time_ms: float,
        success: bool,
        time_budget_ms: float,
        timestamp: float | None = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            algorithm=algorithm.lower(),
            problem_size=int(problem_size),
            groups=int(groups),
            group_size=int(group_size),
            delta=float(delta),
            stdev=float(stdev),
            execution_time_ms=float(execution_time_ms),
            success=bool(success),
            time_budget_ms=float(time_budget_ms),
            timestamp=self._clock() if timestamp is None else float(timestamp),
        )
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        return entry

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(e) for e in self._entries], columns=_COLUMNS)

    def clear(self) -> None:
        self._entries.clear()

    def get_recommendations(
        self, problem_size: int, groups: int, group_size: int, time_budget_ms: float
    ) -> list[AlgorithmRecommendation]:
        """Rank algorithms by how they fared on similarly shaped problems.

        Entries count as similar when problem size, group count and group size
        are each within a tolerance of the query. Algorithms that mostly fail or
        overrun the budget are dropped.
        """
        df = self.to_frame()
        if df.empty:
            return []
        similar = df[
            ((df["problem_size"] - problem_size).abs() <= max(5, 0.1 * problem_size))
            & ((df["groups"] - groups).abs() <= max(1, 0.2 * groups))
            & ((df["group_size"] - group_size).abs() <= max(1, 0.2 * group_size))
        ]
        if similar.empty:
            return []

        now = self._clock()
        stats = similar.groupby("algorithm", sort=True).agg(
            count=("success", "size"),
            success_rate=("success", "mean"),
            avg_time=("execution_time_ms", "mean"),
            last_seen=("timestamp", "max"),
        )
        deltas = similar[similar["success"]].groupby("algorithm")["delta"].mean()

        recs: list[AlgorithmRecommendation] = []
        for algorithm, row in stats.iterrows():
            if row["success_rate"] < MIN_SUCCESS_RATE:
                continue
            if row["avg_time"] > BUDGET_SLACK * time_budget_ms:
                continue
            age_hours = max(0.0, (now - float(row["last_seen"])) / 3600.0)
            recency = math.exp(-age_hours / 24.0)
            confidence = (min(0.8, row["count"] / 10.0) + min(0.6, recency)) / 2.0
            recs.append(
                AlgorithmRecommendation(
                    algorithm=str(algorithm),
                    confidence=float(confidence),
                    expected_delta=float(deltas.get(algorithm, math.inf)),
                    expected_time_ms=float(row["avg_time"]),
                    success_rate=float(row["success_rate"]),
                    sample_count=int(row["count"]),
                )
            )
        recs.sort(key=lambda r: (-r.confidence, r.expected_delta))
        return recs
