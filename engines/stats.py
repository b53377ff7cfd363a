"""Pure numeric helpers used by scoring and answer evaluation."""

from __future__ import annotations

import statistics
from typing import Hashable, Iterable, Optional, Sequence


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, value))


def gini_index(values: Sequence[float]) -> float:
    """Gini-style dispersion of ``values``.

    ``sum((2(i+1) - n - 1) * v_i) / (n^2 * mean)`` over the ascending
    values. Returns 0 for an empty sequence or a zero mean.
    """
    n = len(values)
    if n == 0:
        return 0.0
    ordered = sorted(float(v) for v in values)
    mean = sum(ordered) / n
    if mean == 0:
        return 0.0
    weighted = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return weighted / (n * n * mean)


def median(values: Sequence[float]) -> float:
    if not values:
        raise ValueError("median() of an empty sequence")
    return float(statistics.median(values))


def trend_slope(ys: Sequence[float], xs: Optional[Sequence[float]] = None) -> float:
    """Least-squares slope of ``ys`` against ``xs`` (defaults to 0..n-1).

    Degenerate inputs (fewer than two points, constant x) yield 0.
    """
    n = len(ys)
    if xs is None:
        xs = range(n)
    elif len(xs) != n:
        raise ValueError("xs and ys must have the same length")
    if n < 2:
        return 0.0

    sum_x = sum_y = sum_xy = sum_xx = 0.0
    for x, y in zip(xs, ys):
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_xx += x * x

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def jaccard_similarity(left: Iterable[Hashable], right: Iterable[Hashable]) -> float:
    """|A ∩ B| / |A ∪ B|, with an empty union defined as 0."""
    a, b = set(left), set(right)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)
