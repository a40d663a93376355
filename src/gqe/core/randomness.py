from __future__ import annotations

import hashlib
import random
from typing import Any, Sequence

from gqe.contracts import RandomSource


class PythonRandomSource(RandomSource):
    """Injected randomness source for quest resolution and replay determinism."""

    def __init__(self, seed: int | None = None) -> None:
        self._seed = seed
        self._rng = random.Random(seed)

    @property
    def seed(self) -> int | None:
        return self._seed

    def rand(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, items: Sequence[Any]) -> Any:
        if not items:
            raise ValueError("choice items must not be empty")
        return self._rng.choice(items)

    def shuffle(self, items: list[Any]) -> None:
        self._rng.shuffle(items)

    def spawn(self, substream_id: str) -> RandomSource:
        seed = self._seed
        if seed is None:
            return PythonRandomSource(seed=None)
        digest = hashlib.sha256(f"{seed}:{substream_id}".encode("ascii", "ignore")).hexdigest()
        return PythonRandomSource(seed=int(digest[:16], 16))


class RecordingRandomSource(RandomSource):
    """Wraps another source and keeps every uniform roll it hands out."""

    def __init__(self, inner: RandomSource) -> None:
        self._inner = inner
        self.rolls: list[float] = []

    def rand(self) -> float:
        value = self._inner.rand()
        self.rolls.append(value)
        return value

    def randint(self, a: int, b: int) -> int:
        return self._inner.randint(a, b)

    def choice(self, items: Sequence[Any]) -> Any:
        return self._inner.choice(items)

    def shuffle(self, items: list[Any]) -> None:
        self._inner.shuffle(items)

    def spawn(self, substream_id: str) -> RandomSource:
        return self


class ReplayRandomSource(RandomSource):
    """Replays a recorded roll sequence; optionally repeats the final roll once exhausted."""

    def __init__(self, rolls: Sequence[float], *, repeat_last: bool = False) -> None:
        if repeat_last and not rolls:
            raise ValueError("repeat_last replay requires at least one roll")
        self._rolls = [float(r) for r in rolls]
        self._index = 0
        self._repeat_last = repeat_last

    @property
    def consumed(self) -> int:
        return self._index

    def rand(self) -> float:
        if self._index >= len(self._rolls):
            if not self._repeat_last:
                raise ValueError(f"replay exhausted after {len(self._rolls)} rolls")
            return self._rolls[-1]
        value = self._rolls[self._index]
        self._index += 1
        return value

    def randint(self, a: int, b: int) -> int:
        return a + int(self.rand() * (b - a + 1)) if b > a else a

    def choice(self, items: Sequence[Any]) -> Any:
        if not items:
            raise ValueError("choice items must not be empty")
        return items[min(len(items) - 1, int(self.rand() * len(items)))]

    def shuffle(self, items: list[Any]) -> None:
        return None

    def spawn(self, substream_id: str) -> RandomSource:
        return self


def gameplay_random() -> PythonRandomSource:
    return PythonRandomSource(seed=None)


def seeded_random(seed: int) -> PythonRandomSource:
    return PythonRandomSource(seed=seed)


def fixed_random(value: float) -> ReplayRandomSource:
    return ReplayRandomSource([value], repeat_last=True)
