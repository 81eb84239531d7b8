"""
Metric primitives shared by the scorers and the revenue forecaster.

Every function is total: empty input yields 0 rather than raising, so callers
can pass raw history without guarding each call.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=float)


def moving_average(values: Sequence[float]) -> float:
    """Arithmetic mean of the values."""
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    return float(data.mean())


def variance(values: Sequence[float]) -> float:
    """Population variance (mean squared deviation from the mean)."""
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    mean = moving_average(data)
    return float(np.mean((data - mean) ** 2))


def std_dev(values: Sequence[float]) -> float:
    return math.sqrt(variance(values))


def _regression_sums(data: np.ndarray):
    n = data.size
    x = np.arange(n, dtype=float)
    return n, float(x.sum()), float(data.sum()), float((x * data).sum()), float((x * x).sum())


def linear_regression_slope(values: Sequence[float]) -> float:
    """OLS slope of the values against positions 0..n-1; 0 for fewer than 2 points."""
    data = _as_array(values)
    if data.size < 2:
        return 0.0
    n, sum_x, sum_y, sum_xy, sum_xx = _regression_sums(data)
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def linear_regression_intercept(values: Sequence[float]) -> float:
    """OLS intercept matching :func:`linear_regression_slope`."""
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    if data.size < 2:
        return float(data[0])
    n, sum_x, sum_y, _, _ = _regression_sums(data)
    slope = linear_regression_slope(data)
    return (sum_y - slope * sum_x) / n


def linear_regression_forecast(values: Sequence[float]) -> float:
    """One-step-ahead value of the fitted line (position n)."""
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    if data.size < 2:
        return float(data[0])
    return linear_regression_slope(data) * data.size + linear_regression_intercept(data)


def exponential_smoothing(values: Sequence[float], alpha: float = 0.3) -> float:
    """Simple exponential smoothing seeded by the first value; alpha in (0, 1)."""
    data = _as_array(values)
    if data.size == 0:
        return 0.0
    smoothed = float(data[0])
    for value in data[1:]:
        smoothed = alpha * float(value) + (1 - alpha) * smoothed
    return smoothed


def percentile_value(sorted_descending: Sequence[float], fraction: float) -> float:
    """Value at index floor(n * fraction) of a descending list; 0 when out of range."""
    values = list(sorted_descending)
    index = int(math.floor(len(values) * fraction))
    if index >= len(values) or index < 0:
        return 0.0
    return float(values[index])
