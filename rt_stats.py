"""Small statistical and calendar helpers shared by the engine stages."""

from __future__ import annotations

import math
import statistics
from datetime import datetime, tzinfo


def median(values: list[float]) -> float:
    """Return the median of *values*, or 0.0 for an empty list."""
    return float(statistics.median(values)) if values else 0.0


def percentile(sorted_values: list[float], p: float) -> float:
    """Linearly interpolated percentile of an already-sorted list.

    Args:
        sorted_values: Values in ascending order.  Not sorted here so that
            callers asking for several percentiles sort only once.
        p: Percentile in the range 0-100.

    Returns:
        The interpolated value, or 0.0 for an empty list.
    """
    if not sorted_values:
        return 0.0
    idx = (p / 100) * (len(sorted_values) - 1)
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(sorted_values[lo])
    return sorted_values[lo] + (sorted_values[hi] - sorted_values[lo]) * (idx - lo)


def mean(values: list[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def ratio_of_extremes(values: list[float]) -> float:
    """Return max/min of *values*; 1.0 when fewer than two or min is zero."""
    if len(values) < 2:
        return 1.0
    low = min(values)
    return max(values) / low if low > 0 else 1.0


def ewma(values: list[float], half_life: float) -> float:
    """Exponentially weighted moving average, latest values weighted most.

    The smoothing factor is chosen so that a value's weight halves after
    *half_life* newer values have been seen.

    Args:
        values: Series in chronological order.
        half_life: Number of observations after which weight halves.

    Returns:
        The final smoothed value, or 0.0 for an empty series.
    """
    if not values:
        return 0.0
    alpha = 1 - 0.5 ** (1 / half_life)
    smoothed = float(values[0])
    for v in values[1:]:
        smoothed = alpha * v + (1 - alpha) * smoothed
    return smoothed


def local_datetime(timestamp_ms: int, tz: tzinfo | None = None) -> datetime:
    """Convert epoch milliseconds to a datetime in *tz* (system local if None)."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz)


def month_key(timestamp_ms: int, tz: tzinfo | None = None) -> str:
    return local_datetime(timestamp_ms, tz).strftime("%Y-%m")
