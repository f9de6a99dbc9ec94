"""Target word pool and random selection of round words."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

ROUNDS_PER_GAME = 10

WORD_POOL: tuple[str, ...] = (
    "love",
    "heart",
    "night",
    "fire",
    "rain",
    "dance",
    "baby",
    "dream",
    "home",
    "money",
    "summer",
    "girl",
    "boy",
    "road",
    "river",
    "moon",
    "sun",
    "star",
    "sky",
    "blue",
    "red",
    "gold",
    "party",
    "friend",
    "kiss",
    "time",
    "world",
    "car",
    "city",
    "light",
    "music",
    "radio",
    "sweet",
    "tears",
    "crazy",
    "angel",
    "devil",
    "heaven",
    "ocean",
    "fly",
    "run",
    "shake",
    "phone",
    "california",
    "christmas",
    "morning",
    "whiskey",
    "eyes",
    "hands",
    "wild",
    "young",
    "forever",
    "goodbye",
    "hello",
    "wine",
    "rock",
    "rose",
    "highway",
    "diamond",
    "thunder",
    "window",
    "train",
    "lonely",
    "happy",
    "shadow",
    "wolf",
    "king",
    "queen",
)


def pick_words(
    count: int = ROUNDS_PER_GAME,
    pool: Sequence[str] = WORD_POOL,
    rng: random.Random | None = None,
) -> list[str]:
    """Pick `count` distinct words from the pool, uniformly at random."""
    candidates = list(dict.fromkeys(pool))
    if count > len(candidates):
        raise ValueError(f"Word pool has {len(candidates)} unique words, need {count}")
    # random.shuffle is an in-place Fisher-Yates shuffle
    (rng or random).shuffle(candidates)
    return candidates[:count]


def pick_replacement(
    exclude: Collection[str],
    pool: Sequence[str] = WORD_POOL,
    rng: random.Random | None = None,
) -> str | None:
    """Pick one pool word not in `exclude`, or None when the pool is exhausted."""
    excluded = {w.lower() for w in exclude}
    candidates = [w for w in dict.fromkeys(pool) if w.lower() not in excluded]
    if not candidates:
        return None
    return (rng or random).choice(candidates)
