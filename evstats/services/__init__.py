"""
Services module for EVStats analytics.

Each service is a set of pure functions (plus the parking oracle class)
over validated records; Flask route handlers stay thin.
"""

from evstats.services.anomaly_service import check_system_health
from evstats.services.battery_health_service import fit_soh_model, get_soh_data_points, train_soh
from evstats.services.charging_advice_service import (
    build_charging_insights,
    calculate_comfort_zone,
    calculate_cost_savings,
    calculate_optimal_charge_day,
    calculate_seasonal_factor,
    get_charging_recommendation,
)
from evstats.services.charging_schedule_service import find_smart_charging_windows
from evstats.services.parking_service import ParkingOracle
from evstats.services.range_prediction_service import fit_range_model, get_scenarios, predict, train
from evstats.services.summary_service import process_data

__all__ = [
    # Range
    'fit_range_model',
    'train',
    'predict',
    'get_scenarios',
    # Battery health
    'fit_soh_model',
    'train_soh',
    'get_soh_data_points',
    # Charging
    'find_smart_charging_windows',
    'ParkingOracle',
    'build_charging_insights',
    'calculate_cost_savings',
    'get_charging_recommendation',
    'calculate_comfort_zone',
    'calculate_seasonal_factor',
    'calculate_optimal_charge_day',
    # Health
    'check_system_health',
    # Aggregation
    'process_data',
]
