"""
Efficiency-related Calculations

Handles driving efficiency and range conversions:
- Average speed from distance and duration
- kWh/100km consumption
- Range from usable capacity and consumption
- Training-row plausibility checks
"""

from typing import Optional

from .constants import (
    MAX_EFFICIENCY_PREDICTION,
    MAX_TRAINING_EFFICIENCY,
    MAX_TRAINING_SPEED_KMH,
    MIN_EFFICIENCY_PREDICTION,
    MIN_TRAINING_EFFICIENCY,
    MIN_TRAINING_SPEED_KMH,
)


def calculate_average_speed(distance_km: float, duration_seconds: float) -> Optional[float]:
    """
    Calculate average speed in km/h.

    Args:
        distance_km: Distance driven in km
        duration_seconds: Trip duration in seconds

    Returns:
        Average speed in km/h, or None if duration is not positive

    Examples:
        >>> calculate_average_speed(30.0, 3600)
        30.0
        >>> calculate_average_speed(10.0, 0) is None
        True
    """
    if not duration_seconds or duration_seconds <= 0:
        return None
    return distance_km / (duration_seconds / 3600.0)


def calculate_kwh_per_100km(kwh_used: float, distance_km: float) -> Optional[float]:
    """
    Calculate energy consumption in kWh/100km.

    Args:
        kwh_used: Energy consumed in kWh
        distance_km: Distance driven in km

    Returns:
        Consumption in kWh/100km, or None if distance is not positive

    Examples:
        >>> calculate_kwh_per_100km(3.0, 20.0)
        15.0
    """
    if not distance_km or distance_km <= 0:
        return None
    return (kwh_used * 100.0) / distance_km


def calculate_usable_capacity(battery_capacity_kwh: float, soh_percent: float) -> float:
    """
    Usable capacity after degradation.

    Examples:
        >>> round(calculate_usable_capacity(60.48, 90.0), 3)
        54.432
    """
    return battery_capacity_kwh * (soh_percent / 100.0)


def calculate_range_km(usable_capacity_kwh: float, kwh_per_100km: float) -> Optional[float]:
    """
    Calculate driving range from usable capacity and consumption.

    Args:
        usable_capacity_kwh: Usable battery energy in kWh
        kwh_per_100km: Consumption in kWh/100km

    Returns:
        Range in km, or None if consumption is not positive

    Examples:
        >>> round(calculate_range_km(54.432, 14.5))
        375
        >>> round(calculate_range_km(54.432, 23.5))
        232
    """
    if not kwh_per_100km or kwh_per_100km <= 0:
        return None
    return (usable_capacity_kwh / kwh_per_100km) * 100.0


def is_plausible_training_trip(speed_kmh: float, kwh_per_100km: float) -> bool:
    """
    Check a trip describes moving traffic with believable consumption.

    Rows below 15 km/h are mostly idling noise and are rejected, as are
    efficiencies outside 5-40 kWh/100km.
    """
    if speed_kmh < MIN_TRAINING_SPEED_KMH or speed_kmh > MAX_TRAINING_SPEED_KMH:
        return False
    if kwh_per_100km < MIN_TRAINING_EFFICIENCY or kwh_per_100km > MAX_TRAINING_EFFICIENCY:
        return False
    return True


def clamp_efficiency(kwh_per_100km: float) -> float:
    """Clamp a model prediction to the physically reasonable 10-40 kWh/100km band."""
    return max(MIN_EFFICIENCY_PREDICTION, min(MAX_EFFICIENCY_PREDICTION, kwh_per_100km))
