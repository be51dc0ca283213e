from __future__ import annotations

from collections.abc import Iterable, Sequence
import math
from typing import Any


def finite_values(values: Iterable[Any]) -> list[float]:
    finite: list[float] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isfinite(float(value)):
            finite.append(float(value))
    return finite


def percentile(values: Iterable[Any], p: float) -> float | None:
    """Nearest-rank percentile; ``None`` when there are no finite values."""
    sorted_values = sorted(finite_values(values))
    if not sorted_values:
        return None

    index = math.ceil((p / 100.0) * len(sorted_values)) - 1
    index = min(max(index, 0), len(sorted_values) - 1)
    return sorted_values[index]


def jaccard(a: Sequence[str], b: Sequence[str], k: int | None = None) -> float | None:
    left = set(a[:k] if k is not None else a)
    right = set(b[:k] if k is not None else b)
    union = left | right
    if not union:
        return None
    return len(left & right) / len(union)


def ratio(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or denominator is None or denominator <= 0:
        return None
    return numerator / denominator


def delta(lhs: float | None, rhs: float | None) -> float | None:
    if lhs is None or rhs is None:
        return None
    return lhs - rhs


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def distribution(values: Iterable[Any]) -> dict[str, float | None]:
    finite = finite_values(values)
    if not finite:
        return {
            "min": None,
            "max": None,
            "avg": None,
            "p50": None,
            "p90": None,
            "p95": None,
            "p99": None,
        }

    return {
        "min": min(finite),
        "max": max(finite),
        "avg": sum(finite) / len(finite),
        "p50": percentile(finite, 50.0),
        "p90": percentile(finite, 90.0),
        "p95": percentile(finite, 95.0),
        "p99": percentile(finite, 99.0),
    }
