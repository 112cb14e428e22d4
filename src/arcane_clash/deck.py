"""Shuffle and deal helpers over ordered card sequences."""
from __future__ import annotations

import random
from typing import Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def shuffle(cards: Sequence[T], rng: Optional[random.Random] = None) -> Tuple[T, ...]:
    """Return a uniformly random permutation of ``cards``.

    ``random.Random.shuffle`` is a Fisher-Yates shuffle; it runs on a copy so
    the input is never mutated. Passing a seeded ``rng`` reproduces the same
    permutation.
    """

    shuffled = list(cards)
    (rng or random.Random()).shuffle(shuffled)
    return tuple(shuffled)


def deal(cards: Sequence[T], count: int) -> Tuple[Tuple[T, ...], Tuple[T, ...]]:
    """Split ``cards`` into the first ``count`` cards and the remainder.

    Asking for more cards than remain is not an error: the deal is capped at
    the deck size and the remainder comes back empty. An exhausted deck simply
    leaves hands short.
    """

    take = max(0, min(count, len(cards)))
    return tuple(cards[:take]), tuple(cards[take:])


__all__ = ["shuffle", "deal"]
