"""
Range Prediction Service

Physics-anchored linear regression of driving efficiency:

    kWh/100km ~ w1 * speed^2 + w2 * distance + b

Real trips are noisy and sparse, so three synthetic anchor points (city,
mixed, highway) are injected 500 times each to pin the curve to known
behaviour. The trained model is an immutable RangeModel value that callers
pass back into predict() and get_scenarios().
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from evstats.calculations import (
    calculate_average_speed,
    calculate_kwh_per_100km,
    calculate_moments,
    calculate_range_km,
    calculate_usable_capacity,
    clamp_efficiency,
    fit_linear_regression,
    is_plausible_training_trip,
    normalize,
)
from evstats.calculations.constants import (
    ANCHOR_REPLICAS,
    DEFAULT_SCENARIO_DISTANCE_KM,
    FALLBACK_EFFICIENCY_KWH_100KM,
    LEARNING_RATE,
    MIN_RANGE_TRAINING_SAMPLES,
    PHYSICS_ANCHORS,
    RANGE_BATCH_SIZE,
    RANGE_EPOCHS,
    RANGE_SCENARIOS,
)
from evstats.config import Config
from evstats.exceptions import ModelTrainingError
from evstats.models import RangeModel, Trip
from evstats.utils.wide_events import track_operation

logger = logging.getLogger(__name__)

RANGE_FEATURE_COUNT = 2
DRAG_WEIGHT_INDEX = 0

UNTRAINED_RESULT = {"loss": 0.0, "samples": 0}


def build_training_set(trips: Sequence[Trip]) -> Tuple[List[List[float]], List[float], int]:
    """
    Extract [speed^2, distance] -> kWh/100km rows and append the anchors.

    Returns:
        (features, labels, number of real trips that survived filtering)
    """
    features: List[List[float]] = []
    labels: List[float] = []

    for trip in trips:
        if trip.distance_km <= 0 or trip.electricity_kwh <= 0 or trip.duration_seconds <= 0:
            continue

        speed = calculate_average_speed(trip.distance_km, trip.duration_seconds)
        efficiency = calculate_kwh_per_100km(trip.electricity_kwh, trip.distance_km)
        if speed is None or efficiency is None:
            continue
        if not is_plausible_training_trip(speed, efficiency):
            continue

        features.append([speed ** 2, trip.distance_km])
        labels.append(efficiency)

    real_rows = len(features)

    for _, speed, distance, efficiency in PHYSICS_ANCHORS:
        features.extend([[speed ** 2, distance]] * ANCHOR_REPLICAS)
        labels.extend([efficiency] * ANCHOR_REPLICAS)

    return features, labels, real_rows


def fit_range_model(trips: Sequence[Trip], seed: Optional[int] = None) -> Tuple[Optional[RangeModel], Dict]:
    """
    Fit a fresh efficiency model. Never reuses a previous model.

    Args:
        trips: Validated trips
        seed: Shuffle/init seed (default: Config.MODEL_RANDOM_SEED)

    Returns:
        (model or None, {"loss", "samples"}). Fewer than 5 trips yields
        (None, {"loss": 0, "samples": 0}).

    Raises:
        ModelTrainingError: If the optimizer diverged to non-finite weights
    """
    with track_operation("range_model_training", trip_count=len(trips)) as event:
        if len(trips) < MIN_RANGE_TRAINING_SAMPLES:
            event.add_outcome("model_untrained")
            return None, dict(UNTRAINED_RESULT)

        features, labels, real_rows = build_training_set(trips)
        logger.debug(f"Range training: used {real_rows}/{len(trips)} trips, {len(features)} rows with anchors")
        event.add_business_metric("real_trips_used", real_rows)

        if len(features) < MIN_RANGE_TRAINING_SAMPLES:
            event.add_outcome("model_untrained")
            return None, dict(UNTRAINED_RESULT)

        x = np.asarray(features, dtype=np.float64)
        y = np.asarray(labels, dtype=np.float64)
        mean, variance = calculate_moments(x)

        with event.timer("fit"):
            fit = fit_linear_regression(
                normalize(x, mean, variance),
                y,
                epochs=RANGE_EPOCHS,
                batch_size=RANGE_BATCH_SIZE,
                learning_rate=LEARNING_RATE,
                seed=Config.MODEL_RANDOM_SEED if seed is None else seed,
                non_negative=(DRAG_WEIGHT_INDEX,),
            )

        if not fit.is_finite:
            raise ModelTrainingError("Range regression diverged", model="range", samples=len(features))

        model = RangeModel(
            weights=fit.weights,
            bias=fit.bias,
            feature_mean=tuple(float(m) for m in mean),
            feature_variance=tuple(float(v) for v in variance),
            loss=fit.loss,
            samples=len(features),
        )
        logger.debug(f"Range weights: drag={fit.weights[0]:.4f} distance={fit.weights[1]:.4f} base={fit.bias:.3f}")

        event.add_business_metric("samples", model.samples)
        event.add_technical_metric("loss", round(model.loss, 6))
        return model, {"loss": model.loss, "samples": model.samples}


async def train(trips: Sequence[Trip], seed: Optional[int] = None) -> Tuple[Optional[RangeModel], Dict]:
    """Fit the efficiency model off the event loop. See fit_range_model."""
    return await asyncio.to_thread(fit_range_model, list(trips), seed)


def predict(model: Optional[RangeModel], speed: float, distance: float = DEFAULT_SCENARIO_DISTANCE_KM) -> float:
    """
    Predict efficiency in kWh/100km for a scenario.

    Falls back to 16.0 without a model, or when the model was fitted on a
    different feature layout. Output is clamped to [10, 40].

    Args:
        model: Trained model or None
        speed: Average speed in km/h
        distance: Trip distance in km (0/None means 50)
    """
    if model is None:
        return FALLBACK_EFFICIENCY_KWH_100KM

    if model.input_width != RANGE_FEATURE_COUNT or len(model.feature_mean) != RANGE_FEATURE_COUNT:
        logger.warning(
            f"Range model mismatch: expected {RANGE_FEATURE_COUNT} inputs, got {model.input_width}. "
            "Using fallback efficiency."
        )
        return FALLBACK_EFFICIENCY_KWH_100KM

    safe_distance = distance or DEFAULT_SCENARIO_DISTANCE_KM
    raw = np.asarray([speed ** 2, safe_distance], dtype=np.float64)
    normalized = normalize(raw, np.asarray(model.feature_mean), np.asarray(model.feature_variance))
    prediction = float(np.dot(np.asarray(model.weights), normalized) + model.bias)
    return clamp_efficiency(prediction)


def get_scenarios(
    model: Optional[RangeModel],
    battery_capacity: float = 60.0,
    soh: float = 100.0,
) -> List[Dict]:
    """
    Evaluate the City, Mixed and Highway scenarios.

    Returns:
        [{"name", "speed", "efficiency", "range"}] with range in whole km
    """
    usable_capacity = calculate_usable_capacity(battery_capacity, soh)

    scenarios = []
    for name, speed, distance in RANGE_SCENARIOS:
        efficiency = predict(model, speed, distance)
        range_km = calculate_range_km(usable_capacity, efficiency)
        scenarios.append({
            "name": name,
            "speed": speed,
            "efficiency": efficiency,
            "range": round(range_km),
        })
    return scenarios
