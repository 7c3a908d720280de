"""
Battery-related Calculations

Handles battery capacity and health calculations:
- Implied capacity from a single charging session
- Capacity sanity window
- Weighted median capacity baseline
- Median/regression blending
- Capacity <-> SoH percentage conversions
"""

from typing import List, Optional, Sequence, Tuple

from .constants import (
    MAX_IMPLIED_CAPACITY_RATIO,
    MIN_IMPLIED_CAPACITY_RATIO,
    MIN_PERCENT_ADDED_DECIMAL,
    SOH_DEVIATION_THRESHOLD,
    SOH_HIGH_DEVIATION_MEDIAN_WEIGHT,
    SOH_STABLE_MEDIAN_WEIGHT,
)


def calculate_implied_capacity(
    kwh_charged: float,
    initial_percentage: float,
    final_percentage: float,
) -> Optional[float]:
    """
    Infer total battery capacity from one charging session.

    implied = kWh delivered / fraction of battery gained

    Args:
        kwh_charged: Energy delivered during the session in kWh
        initial_percentage: SoC before charging (0-100)
        final_percentage: SoC after charging (0-100)

    Returns:
        Implied capacity in kWh, or None if the SoC gain is too small to
        divide by safely

    Examples:
        >>> calculate_implied_capacity(30.0, 30, 80)
        60.0
        >>> calculate_implied_capacity(1.0, 50, 50.5) is None
        True
    """
    percent_added = (final_percentage - initial_percentage) / 100.0
    if percent_added < MIN_PERCENT_ADDED_DECIMAL:
        return None
    return kwh_charged / percent_added


def is_capacity_plausible(capacity_kwh: float, nominal_capacity_kwh: float) -> bool:
    """
    Check an implied capacity lies within [0.5x, 1.5x] of nominal.

    Examples:
        >>> is_capacity_plausible(60.0, 60.48)
        True
        >>> is_capacity_plausible(181.44, 60.48)
        False
    """
    lower = nominal_capacity_kwh * MIN_IMPLIED_CAPACITY_RATIO
    upper = nominal_capacity_kwh * MAX_IMPLIED_CAPACITY_RATIO
    return lower <= capacity_kwh <= upper


def weighted_median(samples: Sequence[Tuple[float, float]], default: float) -> float:
    """
    Weighted median of (value, weight) pairs.

    Walks the values in ascending order and returns the first one at which
    the cumulative weight reaches half of the total.

    Args:
        samples: (value, weight) pairs, weights non-negative
        default: Returned when there are no samples

    Returns:
        The weighted median value

    Examples:
        >>> weighted_median([(58.0, 0.5), (60.0, 0.6), (90.0, 0.1)], 60.48)
        60.0
        >>> weighted_median([], 60.48)
        60.48
    """
    if not samples:
        return default

    ordered = sorted(samples, key=lambda item: item[0])
    total_weight = sum(weight for _, weight in ordered)
    cumulative = 0.0
    for value, weight in ordered:
        cumulative += weight
        if cumulative >= total_weight / 2:
            return value
    return default


def blend_capacity_estimates(regression_kwh: float, median_kwh: float) -> float:
    """
    Blend the regression prediction with the robust median baseline.

    When the regression deviates more than 5% from the median it is most
    likely reacting to a transient or seasonal dip, so the median gets 90%
    of the weight. Otherwise the median keeps 70% and the trend contributes
    the rest.

    Examples:
        >>> round(blend_capacity_estimates(60.0, 60.0), 6)
        60.0
        >>> round(blend_capacity_estimates(50.0, 60.0), 6)
        59.0
    """
    if median_kwh == 0:
        return regression_kwh

    deviation = abs(regression_kwh - median_kwh) / median_kwh
    if deviation > SOH_DEVIATION_THRESHOLD:
        median_weight = SOH_HIGH_DEVIATION_MEDIAN_WEIGHT
    else:
        median_weight = SOH_STABLE_MEDIAN_WEIGHT
    return regression_kwh * (1 - median_weight) + median_kwh * median_weight


def capacity_kwh_to_soh(capacity_kwh: float, nominal_capacity_kwh: float) -> float:
    """
    Convert a capacity in kWh to percent of nominal capacity.

    Examples:
        >>> round(capacity_kwh_to_soh(54.432, 60.48), 2)
        90.0
    """
    if nominal_capacity_kwh == 0:
        return 0.0
    return (capacity_kwh / nominal_capacity_kwh) * 100.0


def estimate_initial_soc(final_percentage: float, kwh_charged: float, battery_capacity_kwh: float) -> float:
    """
    Back-fill a missing initial SoC from the energy delivered.

    Examples:
        >>> estimate_initial_soc(80, 30.24, 60.48)
        30
        >>> estimate_initial_soc(20, 30.24, 60.48)
        0
    """
    if battery_capacity_kwh <= 0:
        return 0
    estimated = final_percentage - (kwh_charged / battery_capacity_kwh) * 100.0
    return max(0, round(estimated))


def split_capacity_samples(samples: List[Tuple[float, float, float]]) -> Tuple[List[float], List[float], List[Tuple[float, float]]]:
    """
    Unzip (day_offset, capacity, weight) triples into regression inputs.

    Returns:
        (day offsets, capacities, (capacity, weight) pairs for the median)
    """
    days = [day for day, _, _ in samples]
    capacities = [capacity for _, capacity, _ in samples]
    weighted = [(capacity, weight) for _, capacity, weight in samples]
    return days, capacities, weighted
