"""
Statistical Calculations

Handles the small statistical helpers used across the analytics engine:
- Column moments for z-score normalization
- Low percentiles (comfort zone)
- Plain medians (parking durations)
"""

import statistics as stats_module
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .constants import NORMALIZATION_EPSILON


def calculate_moments(features: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Column-wise mean and population variance of a 2D feature matrix.

    Args:
        features: Array of shape (samples, features)

    Returns:
        (mean, variance) arrays of shape (features,)
    """
    return features.mean(axis=0), features.var(axis=0)


def normalize(values: np.ndarray, mean: np.ndarray, variance: np.ndarray) -> np.ndarray:
    """
    Z-score normalize values with a floor-clamped standard deviation.

    The denominator is sqrt(variance) + 1e-6 so a constant column (zero
    variance) never divides by zero.
    """
    return (values - mean) / (np.sqrt(variance) + NORMALIZATION_EPSILON)


def calculate_low_percentile(values: Sequence[float], fraction: float) -> Optional[float]:
    """
    Lower percentile by index, without interpolation.

    Returns the element at floor(n * fraction) of the sorted values, which
    skips the single worst outlier once there are ten or more values.

    Examples:
        >>> calculate_low_percentile([50, 10, 40, 20, 30], 0.1)
        10
        >>> calculate_low_percentile(list(range(1, 21)), 0.1)
        3
    """
    if not values:
        return None
    ordered = sorted(values)
    index = int(len(ordered) * fraction)
    return ordered[min(index, len(ordered) - 1)]


def calculate_median(values: List[float]) -> Optional[float]:
    """
    Median of a list, or None when empty.

    Examples:
        >>> calculate_median([3.0, 1.0, 2.0])
        2.0
    """
    if not values:
        return None
    return float(stats_module.median(values))


def calculate_mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return float(stats_module.fmean(values))
