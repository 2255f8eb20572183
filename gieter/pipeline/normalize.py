"""
Normalization helpers shared by the score components.

Population scaling makes a raw value meaningful relative to the listings it
is ranked against; damping shrinks scores built on few observations toward a
neutral value; tiering restricts the population to peers of the same class.
"""
from collections import defaultdict
from typing import Callable, Hashable, Iterable, Sequence, TypeVar

import numpy as np


T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

NEUTRAL_SCORE = 5.0

# Score for a tier too small to rank within: mildly above neutral, never extreme
SMALL_TIER_SCORE = 7.0

# Observations -> weight of the raw score; 3 or more use FULL_CONFIDENCE
CONFIDENCE_STEPS = {0: 0.0, 1: 0.7, 2: 0.85}
FULL_CONFIDENCE = 0.95


def scale_to_range(
    value: float,
    population: Sequence[float],
    lo: float = 1.0,
    hi: float = 10.0,
    higher_is_better: bool = False,
) -> float:
    """
    Map ``value`` linearly onto [lo, hi] relative to ``population``.

    By default the population minimum maps to ``hi`` (best) and the maximum
    to ``lo`` (worst); ``higher_is_better`` reverses that. A population with
    a single distinct value yields the midpoint of the range.

    Args:
        value: The raw value to scale (normally a member of the population)
        population: All raw values being compared
        lo: Worst end of the target range
        hi: Best end of the target range
        higher_is_better: Whether larger raw values are better

    Returns:
        Scaled value, not clamped
    """
    values = np.asarray(population, dtype=float)
    if values.size == 0:
        raise ValueError("Cannot scale against an empty population")

    low = float(np.min(values))
    high = float(np.max(values))
    if high == low:
        return (lo + hi) / 2

    position = (value - low) / (high - low)
    if higher_is_better:
        return lo + position * (hi - lo)
    return hi - position * (hi - lo)


def confidence_weight(n: int) -> float:
    """Weight given to a raw score backed by ``n`` observations."""
    if n < 0:
        raise ValueError(f"Observation count must be >= 0, got {n}")
    return CONFIDENCE_STEPS.get(n, FULL_CONFIDENCE)


def damp(raw: float, n: int, neutral: float = NEUTRAL_SCORE) -> float:
    """Blend ``raw`` toward ``neutral`` by the confidence of ``n`` observations."""
    weight = confidence_weight(n)
    return weight * raw + (1 - weight) * neutral


def group_by_tier(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """Partition items by a categorical attribute, keeping input order within tiers."""
    groups: dict[K, list[T]] = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)
    return dict(groups)


def tiered_scale(
    value: float,
    tier_population: Sequence[float],
    lo: float = 1.0,
    hi: float = 10.0,
    min_tier_size: int = 3,
    higher_is_better: bool = False,
) -> float:
    """
    Scale ``value`` against its tier only.

    Tiers with fewer than ``min_tier_size`` members (and always single-member
    tiers) are not ranked and get SMALL_TIER_SCORE instead.
    """
    if len(tier_population) < max(min_tier_size, 2):
        return SMALL_TIER_SCORE
    return scale_to_range(value, tier_population, lo, hi, higher_is_better)
