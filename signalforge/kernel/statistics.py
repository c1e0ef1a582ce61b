"""Vectorised statistics — regression slope, Pearson correlation, σ."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation; 0 on empty input."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def regression_slope_pct(values: Sequence[float], period: int = 10) -> float:
    """Least-squares slope of the last *period* values as % of their mean.

    Returns 0 when fewer than *period* values exist or the mean is 0.
    """
    if len(values) < period or period < 2:
        return 0.0
    y = np.asarray(values[-period:], dtype=float)
    x = np.arange(period, dtype=float)
    slope = np.polyfit(x, y, 1)[0]
    mean = float(y.mean())
    if mean == 0:
        return 0.0
    return float(slope / mean * 100)


def pearson_correlation(series_a: Sequence[float], series_b: Sequence[float]) -> float:
    """Pearson correlation over the overlapping tail of two series.

    Returns 0 when fewer than 5 paired samples exist or either side has zero
    variance.
    """
    n = min(len(series_a), len(series_b))
    if n < 5:
        return 0.0
    a = np.asarray(series_a[-n:], dtype=float)
    b = np.asarray(series_b[-n:], dtype=float)
    a = a - a.mean()
    b = b - b.mean()
    denom = float(np.sqrt((a * a).sum() * (b * b).sum()))
    if denom == 0:
        return 0.0
    return float((a * b).sum() / denom)
