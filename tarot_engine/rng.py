"""
TAROT ENGINE: Seeded Xorshift32 RNG

Deterministic generator shared by every part of the simulation.
The same seed always yields the same draw sequence, so a run is fully
reproducible from (spins, seed).

Usage:
    from tarot_engine.rng import XorShift32
    rng = XorShift32(12345)
    rng.next_float()          # float in [0, 1]
    rng.next_int(1, 3)        # 1, 2 or 3
    rng.weighted_choice(items, weights)
    rng.shuffle(columns)      # in place
"""

from __future__ import annotations

import hashlib
from typing import Sequence, TypeVar

T = TypeVar("T")

MASK32 = 0xFFFFFFFF


class XorShift32:
    """32-bit xorshift PRNG (13, 17, 5).

    The right shift works on the signed 32-bit view of the state, matching
    the reference simulator bit for bit. Every draw goes through
    next_float(), so call order is the only thing that decides a sequence.
    """

    def __init__(self, seed: int = 1):
        self.state = (seed & MASK32) or 1

    def set_state(self, seed: int) -> None:
        self.state = (seed & MASK32) or 1

    def _next(self) -> int:
        x = self.state
        x = (x ^ (x << 13)) & MASK32
        signed = x - 0x100000000 if x & 0x80000000 else x
        x = (x ^ (signed >> 17)) & MASK32
        x = (x ^ (x << 5)) & MASK32
        self.state = x
        return x

    def next_float(self) -> float:
        """Float in [0, 1]; reaches 1.0 only when the state is 0xFFFFFFFF."""
        return self._next() / MASK32

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi] inclusive."""
        return int(self.next_float() * (hi - lo + 1)) + lo

    def choice(self, items: Sequence[T]) -> T:
        return items[self.next_int(0, len(items) - 1)]

    def weighted_choice(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick one item with probability proportional to its weight.

        A zero total weight returns the last item without consuming a draw.
        Float rounding that leaves r > 0 after the loop also lands on the
        last item.
        """
        total = sum(weights)
        if total == 0:
            return items[-1]
        r = self.next_float() * total
        for item, weight in zip(items, weights):
            r -= weight
            if r <= 0:
                return item
        return items[-1]

    def shuffle(self, items: list) -> list:
        """Fisher-Yates from the end; shuffles in place and returns items."""
        for i in range(len(items) - 1, 0, -1):
            j = self.next_int(0, i)
            items[i], items[j] = items[j], items[i]
        return items


def derive_shard_seed(seed: int, shard_index: int) -> int:
    """Deterministic 32-bit seed for one shard of a sharded run."""
    h = int(hashlib.md5(f"{seed}:{shard_index}".encode()).hexdigest()[:8], 16)
    return h or 1
