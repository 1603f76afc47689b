"""Seeded pseudo-random helpers used for reproducible feed shuffles.

The generator is a plain 64-bit linear congruential generator. It is not a
security primitive; it only needs to produce the same stream for the same
seed on every platform.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

T = TypeVar("T")

MASK_64 = (1 << 64) - 1
LCG_MULTIPLIER = 6364136223846793005
LCG_INCREMENT = 1
ZERO_STATE_REPLACEMENT = 0xDEADBEEF

PAGE_SELECTION_OFFSET = 0
SHUFFLE_OFFSET = 10_000
TRIM_OFFSET = 20_000


class SeededGenerator:
    """Reproducible 64-bit LCG keyed by an integer seed."""

    __slots__ = ("_state",)

    def __init__(self, seed: int):
        # Negative seeds keep their two's-complement bit pattern.
        state = seed & MASK_64
        if state == 0:
            state = ZERO_STATE_REPLACEMENT
        self._state = state

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> int:
        """Advance the generator and return the new 64-bit state."""

        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) & MASK_64
        return self._state

    def below(self, upper_bound: int) -> int:
        """Return an unbiased integer in ``[0, upper_bound)``.

        Uses multiply-shift with rejection so the result only depends on the
        raw 64-bit draws.
        """

        if upper_bound <= 0:
            raise ValueError("upper_bound must be positive")
        if upper_bound > MASK_64:
            raise ValueError("upper_bound must fit in 64 bits")
        product = self.next() * upper_bound
        low = product & MASK_64
        if low < upper_bound:
            threshold = ((-upper_bound) & MASK_64) % upper_bound
            while low < threshold:
                product = self.next() * upper_bound
                low = product & MASK_64
        return product >> 64

    def randint(self, lower: int, upper: int) -> int:
        """Return an integer uniformly drawn from the inclusive range."""

        if upper < lower:
            raise ValueError("upper must be greater than or equal to lower")
        span = upper - lower
        if span == MASK_64:
            return lower + self.next()
        return lower + self.below(span + 1)

    def shuffle(self, values: Sequence[T]) -> list[T]:
        """Return a shuffled copy of ``values`` (forward Fisher-Yates)."""

        result = list(values)
        remaining = len(result)
        index = 0
        while remaining > 1:
            offset = self.below(remaining)
            remaining -= 1
            target = index + offset
            result[index], result[target] = result[target], result[index]
            index += 1
        return result

    def choice(self, values: Sequence[T]) -> T:
        if not values:
            raise IndexError("cannot choose from an empty sequence")
        return values[self.below(len(values))]


@dataclass
class SessionSeed:
    """Base seed for an engine lifetime plus a per-reload counter.

    Every randomized step derives its stream from ``base + reloads + offset``
    so page selection, the final shuffle and cache trimming never share a
    stream within the same reload.
    """

    base: int = field(default_factory=lambda: secrets.randbelow(1_000_000))
    reloads: int = 0

    @property
    def current(self) -> int:
        return self.base + self.reloads

    def advance(self) -> int:
        """Bump the reload counter and return the new effective seed."""

        self.reloads += 1
        return self.current

    def generator(self, offset: int = 0, *, seed: int | None = None) -> SeededGenerator:
        effective = self.current if seed is None else seed
        return SeededGenerator(effective + offset)
