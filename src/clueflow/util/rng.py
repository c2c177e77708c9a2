"""Deterministic RNG wrapper for reproducible clue runs."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import random
from typing import Sequence, TypeVar

T = TypeVar("T")


@dataclass
class Rng:
    seed: int

    def __post_init__(self) -> None:
        self._random = random.Random(self.seed)

    def fork(self, salt: str) -> "Rng":
        digest = hashlib.sha256(f"{self.seed}:{salt}".encode("utf-8")).hexdigest()
        return Rng(int(digest[:16], 16))

    def random(self) -> float:
        return self._random.random()

    def chance(self, probability: float) -> bool:
        """True with the given probability; 1.0 always passes, 0.0 never does."""
        return self._random.random() < probability

    def choice(self, seq: Sequence[T]) -> T:
        return self._random.choice(seq)

    def shuffle(self, seq: list[T]) -> None:
        self._random.shuffle(seq)
