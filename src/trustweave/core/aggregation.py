"""Aggregation utilities shared by the credit and escalation engines.

Robust means and diversity measures:
- Trimmed mean drops both tails to blunt brigading at either extreme
- Probabilistic OR combines independent connection strengths
- Stance diversity by variance or binned Shannon entropy
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Literal

from .defaults import STANCE_ENTROPY_BINS, VOTE_TRIM_PERCENT

DiversityMethod = Literal["variance", "entropy"]


def clamp(value: float, low: float, high: float) -> float:
    """Clamp into [low, high]; NaN clamps to ``low``."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]."""
    return clamp(value, 0.0, 1.0)


def sigmoid(x: float) -> float:
    """Logistic sigmoid, stable for large |x|."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Population variance (0.0 for fewer than two values)."""
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)


def trimmed_mean(values: Sequence[float], trim_percent: float = VOTE_TRIM_PERCENT) -> float:
    """Mean after dropping ``floor(n * trim_percent)`` values from each end.

    Falls back to the median element when trimming would leave nothing.

    Args:
        values: Votes or scores.
        trim_percent: Fraction to drop from each tail (default 0.1).

    Returns:
        Trimmed mean, 0.0 for no values.
    """
    if not values:
        return 0.0
    if len(values) == 1:
        return float(values[0])

    ordered = sorted(values)
    trim_count = math.floor(len(ordered) * trim_percent)
    kept = ordered[trim_count : len(ordered) - trim_count]
    if not kept:
        return float(ordered[len(ordered) // 2])
    return sum(kept) / len(kept)


def probabilistic_union(scores: Iterable[float]) -> float:
    """Combine independent strengths as ``1 - prod(1 - s)``.

    Each score is clamped to [0, 1]; no scores gives 0.0.
    """
    product = 1.0
    seen = False
    for score in scores:
        seen = True
        product *= 1.0 - clamp_unit(score)
    if not seen:
        return 0.0
    return clamp_unit(1.0 - product)


def branch_diversity(
    stances: Sequence[float],
    method: DiversityMethod = "variance",
    bins: int = STANCE_ENTROPY_BINS,
) -> float:
    """Stance diversity of a branch in [0, 1].

    Stances live in [-1, 1] (out-of-range values are clamped).

    - ``variance``: population variance, normalised by the maximum of 1.0
    - ``entropy``: Shannon entropy over ``bins`` equal-width bins,
      normalised by ``log2(bins)``

    A branch with zero or one recorded stance counts as fully diverse since
    there is nothing to disagree with.
    """
    if len(stances) <= 1:
        return 1.0

    clamped = [clamp(s, -1.0, 1.0) for s in stances]

    if method == "variance":
        return min(1.0, variance(clamped) / 1.0)

    if method == "entropy":
        counts = [0] * bins
        for stance in clamped:
            normalized = (stance + 1.0) / 2.0
            index = min(bins - 1, math.floor(normalized * bins))
            counts[index] += 1

        entropy = 0.0
        for count in counts:
            if count > 0:
                p = count / len(clamped)
                entropy -= p * math.log2(p)
        return entropy / math.log2(bins)

    raise ValueError(f"Unknown diversity method: {method!r}")
