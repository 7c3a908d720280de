"""
Calculation Constants for EVStats

Centralized location for the domain-tuned constants used by the predictors,
the charging scheduler and the health detector. These values were tuned
empirically against real trip/charge logs; they are not derivable from first
principles, so keep them here rather than inlining them.
"""

from ..config import Config

# Battery Constants
DEFAULT_BATTERY_CAPACITY_KWH = Config.DEFAULT_BATTERY_CAPACITY_KWH
FALLBACK_BATTERY_CAPACITY_KWH = 60.0  # Used by health checks when settings carry no size
MIN_IMPLIED_CAPACITY_RATIO = 0.5  # Implied capacity below 50% of nominal is physically implausible
MAX_IMPLIED_CAPACITY_RATIO = 1.5  # ...and above 150% as well
MIN_PERCENT_ADDED_DECIMAL = 0.01  # Guards the implied-capacity denominator

# Range / Efficiency Model
FALLBACK_EFFICIENCY_KWH_100KM = 16.0  # Returned when no model is available
MIN_EFFICIENCY_PREDICTION = 10.0  # Clamp for model output (kWh/100km)
MAX_EFFICIENCY_PREDICTION = 40.0
MIN_TRAINING_SPEED_KMH = 15.0  # Below this is idling noise; only "moving traffic" is kept
MAX_TRAINING_SPEED_KMH = 160.0
MIN_TRAINING_EFFICIENCY = 5.0  # kWh/100km outlier bounds for training rows
MAX_TRAINING_EFFICIENCY = 40.0
MIN_RANGE_TRAINING_SAMPLES = 5
RANGE_EPOCHS = 500
RANGE_BATCH_SIZE = 64
LEARNING_RATE = 0.1
NORMALIZATION_EPSILON = 1e-6
DEFAULT_SCENARIO_DISTANCE_KM = 50.0

# Physics anchors: synthetic samples replicated ANCHOR_REPLICAS times so that
# sparse, noisy telemetry cannot bend the curve away from known behaviour.
# (speed km/h, distance km, efficiency kWh/100km)
PHYSICS_ANCHORS = (
    ("City", 30.0, 15.0, 14.5),  # Conservative efficient urban driving
    ("Mixed", 80.0, 35.0, 17.5),
    ("Highway", 100.0, 100.0, 23.5),  # Average 100 km/h ~= 120 km/h cruise
)
ANCHOR_REPLICAS = 500

# Canonical range scenarios (name, speed km/h, distance km)
RANGE_SCENARIOS = (
    ("City", 30.0, 15.0),
    ("Mixed", 70.0, 35.0),
    ("Highway", 100.0, 100.0),
)

# SoH Model
MIN_SOH_DELTA_PERCENT = 5.0  # "Deep" charges only; relaxed from 10% to collect more samples
MIN_SOH_CHART_DELTA_PERCENT = 10.0  # Stricter filter for chart points
MIN_SOH_SAMPLES = 3
SOH_EPOCHS = 300
SOH_BATCH_SIZE = 32
SOH_DEVIATION_THRESHOLD = 0.05  # Regression vs median deviation that triggers distrust
SOH_HIGH_DEVIATION_MEDIAN_WEIGHT = 0.9  # Regression is likely chasing seasonal noise
SOH_STABLE_MEDIAN_WEIGHT = 0.7  # Trend contributes, median keeps the majority
UNKNOWN_SOH = 100.0
SOH_CACHE_VERSION = "v8"

# Charging Scheduler
MIN_TRIPS_FOR_SCHEDULE = 3
RECENT_TRIPS_DAYS = 30
MIN_RECENT_TRIPS = 5  # Fall back to the full history below this
WEEKLY_KWH_BUFFER = 1.10
PROBE_INTERVAL_HOURS = 3
PROBE_HORIZON_DAYS = 7
MIN_PREDICTED_STAY_HOURS = 1.5
MIN_WINDOW_MINUTES = 60  # Triple intersection (stay, availability, tariff) must exceed this
MIN_OFF_PEAK_OVERLAP_MINUTES = 30
MIN_AVAILABILITY_OBSERVATIONS = 2
MIN_DRIVING_SPAN_MINUTES = 60
WEEKEND_SCORE_WEIGHT = 2.0  # Cheap, long weekend charging is preferred
WEEKDAY_SCORE_WEIGHT = 0.5
DEDUP_START_TOLERANCE_MINUTES = 60
USER_PREFERENCE_SCORE = 9999.0
CONTIGUITY_BONUS = 50.0  # Rewards one long continuous charge over many short ones
CONTIGUITY_TOLERANCE_MINUTES = 5
MIDNIGHT_BRIDGE_MAX_MINUTES = 120
MINUTES_PER_DAY = 1440
DEFAULT_OFF_PEAK_START = "00:00"
DEFAULT_OFF_PEAK_END = "08:00"
DEFAULT_OFF_PEAK_WEEKEND_START = "00:00"
DEFAULT_OFF_PEAK_WEEKEND_END = "00:00"  # 00:00-00:00 means all day

# Charging Advice
CALIBRATION_MAX_AGE_MONTHS = 1
MIN_MONTHLY_SAVINGS = 1.0  # Below this an off-peak shift is not worth recommending
COST_SAVINGS_DEFAULT_CHARGER_AMPS = 8  # Portable cable, when no home charger rating is set
MIN_COMFORT_ZONE_CHARGES = 5
COMFORT_ZONE_PERCENTILE = 0.1
COMFORT_ZONE_EXTEND_SOC = 30.0
SEASONAL_DEVIATION_RATIO = 1.05
WINTER_MONTHS = (12, 1, 2)  # Northern hemisphere
SUMMER_MONTHS = (6, 7, 8)

# Health Detector
SOH_CRITICAL_PERCENT = 75.0
SOH_WARNING_PERCENT = 85.0
DRAIN_MIN_GAP_HOURS = 12.0
DRAIN_INFO_PCT_PER_DAY = 2.0  # ~1%/day is normal BMS/telematics draw
DRAIN_WARNING_PCT_PER_DAY = 4.0
RECENT_CHARGES_CHECKED = 5
SLOW_CHARGE_POWER_KW = 4.0  # 230V/16A or lower plus margin
VALLEY_END_HOUR = 8
OVERNIGHT_FALLBACK_HOURS = 8.0
OVERNIGHT_END_HOURS = (7, 9)  # Charges logged 07:00-09:00 are assumed overnight
SLOW_CHARGE_EFFICIENCY_THRESHOLD = 0.70  # Standby losses dominate at low power
FAST_CHARGE_EFFICIENCY_THRESHOLD = 0.80
CHARGE_EFFICIENCY_WARNING_MARGIN = 0.10
MIN_PLAUSIBLE_CHARGE_EFFICIENCY = 0.45  # Outside these bounds the log is corrupt
MAX_PLAUSIBLE_CHARGE_EFFICIENCY = 1.1
RECENT_TRIPS_CHECKED = 5
HIGH_CONSUMPTION_RATIO = 1.25
HIGH_CONSUMPTION_MIN_TRIPS = 3
