from __future__ import annotations

from typing import Any

DEFAULT_SEED = 123456789

_MULTIPLIER = 1664525
_INCREMENT = 1013904223
_MASK = 0xFFFFFFFF


class Randomizer:
    """Linear congruential RNG with seed for reproducibility.

    The same seed always yields the same stream on every platform, which the
    stochastic solvers rely on for bit-for-bit repeatable output.
    """

    def __init__(self, seed: int | None = None) -> None:
        self.state = (DEFAULT_SEED if seed is None else int(seed)) & _MASK

    def random(self) -> float:
        """Next value in [0, 1]."""
        self.state = (_MULTIPLIER * self.state + _INCREMENT) & _MASK
        return self.state / _MASK

    def below(self, n: int) -> int:
        """Uniform index in [0, n)."""
        return min(int(self.random() * n), n - 1)

    def choice(self, items: list[Any]) -> Any:
        return items[self.below(len(items))]

    def shuffle(self, items: list[Any]) -> None:
        """Fisher-Yates shuffle in place."""
        for i in range(len(items) - 1, 0, -1):
            j = self.below(i + 1)
            items[i], items[j] = items[j], items[i]
