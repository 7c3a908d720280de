"""
EVStats Calculation Module

Consolidated calculation utilities for efficiency, battery, statistical and
regression calculations.

This module provides a single source of truth for the mathematical
operations behind the predictors, the charging scheduler and the health
detector.

Usage:
    from evstats.calculations import calculate_kwh_per_100km, weighted_median
    from evstats.calculations.constants import PHYSICS_ANCHORS
"""

# Efficiency calculations
from .efficiency import (
    calculate_average_speed,
    calculate_kwh_per_100km,
    calculate_range_km,
    calculate_usable_capacity,
    clamp_efficiency,
    is_plausible_training_trip,
)

# Battery calculations
from .battery import (
    blend_capacity_estimates,
    calculate_implied_capacity,
    capacity_kwh_to_soh,
    estimate_initial_soc,
    is_capacity_plausible,
    split_capacity_samples,
    weighted_median,
)

# Statistical calculations
from .statistics import (
    calculate_low_percentile,
    calculate_mean,
    calculate_median,
    calculate_moments,
    normalize,
)

# Regression
from .regression import LinearFit, fit_linear_regression

__all__ = [
    # Efficiency
    "calculate_average_speed",
    "calculate_kwh_per_100km",
    "calculate_range_km",
    "calculate_usable_capacity",
    "clamp_efficiency",
    "is_plausible_training_trip",
    # Battery
    "blend_capacity_estimates",
    "calculate_implied_capacity",
    "capacity_kwh_to_soh",
    "estimate_initial_soc",
    "is_capacity_plausible",
    "split_capacity_samples",
    "weighted_median",
    # Statistics
    "calculate_low_percentile",
    "calculate_mean",
    "calculate_median",
    "calculate_moments",
    "normalize",
    # Regression
    "LinearFit",
    "fit_linear_regression",
]
