"""
Battery Health (SoH) Service

Estimates state of health from charging sessions:

1. Each deep session implies a capacity: kWh delivered / fraction gained.
2. Physically implausible capacities (outside 0.5x-1.5x nominal) are dropped.
3. A weighted median of the survivors is the robust baseline.
4. A 1-feature regression (days since first session -> capacity) gives
   the trend, evaluated at the most recent session.
5. The two are blended, trusting the median more when they disagree.

Insufficient data is never an error: it returns 100% ("unknown").
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from evstats.calculations import (
    blend_capacity_estimates,
    calculate_implied_capacity,
    calculate_moments,
    capacity_kwh_to_soh,
    fit_linear_regression,
    is_capacity_plausible,
    normalize,
    split_capacity_samples,
    weighted_median,
)
from evstats.calculations.constants import (
    LEARNING_RATE,
    MIN_SOH_CHART_DELTA_PERCENT,
    MIN_SOH_DELTA_PERCENT,
    MIN_SOH_SAMPLES,
    SOH_BATCH_SIZE,
    SOH_DEVIATION_THRESHOLD,
    SOH_EPOCHS,
    UNKNOWN_SOH,
)
from evstats.config import Config
from evstats.exceptions import ModelTrainingError
from evstats.models import Charge, SoHModel
from evstats.utils.time_utils import days_between, parse_date
from evstats.utils.wide_events import track_operation

logger = logging.getLogger(__name__)


def _untrained() -> Dict:
    return {"loss": 0.0, "samples": 0, "predicted_soh": UNKNOWN_SOH}


def select_deep_charges(charges: Sequence[Charge], min_delta: float) -> List[Tuple[Charge, object]]:
    """
    Keep sessions with energy, a SoC gain of at least min_delta and a
    parseable date, sorted chronologically.

    Returns:
        [(charge, date)] pairs
    """
    selected = []
    for charge in charges:
        if charge.kwh_charged <= 0:
            continue
        if charge.initial_percentage is None or charge.final_percentage is None:
            continue
        if charge.initial_percentage < 0 or charge.final_percentage <= charge.initial_percentage:
            continue
        if charge.final_percentage - charge.initial_percentage < min_delta:
            continue
        charge_date = parse_date(charge.date)
        if charge_date is None:
            continue
        selected.append((charge, charge_date))

    selected.sort(key=lambda pair: pair[1])
    return selected


def predict_capacity(model: SoHModel, day_offset: float) -> float:
    """Capacity in kWh predicted by the trend at a day offset from model.origin."""
    normalized = normalize(
        np.asarray([day_offset], dtype=np.float64),
        np.asarray([model.feature_mean]),
        np.asarray([model.feature_variance]),
    )
    return float(model.weight * normalized[0] + model.bias)


def fit_soh_model(
    charges: Sequence[Charge],
    nominal_capacity: float,
    seed: Optional[int] = None,
) -> Tuple[Optional[SoHModel], Dict]:
    """
    Fit the capacity trend and compute the blended SoH.

    Args:
        charges: Validated charges
        nominal_capacity: Nominal battery capacity in kWh
        seed: Shuffle/init seed (default: Config.MODEL_RANDOM_SEED)

    Returns:
        (model or None, {"loss", "samples", "predicted_soh"})

    Raises:
        ModelTrainingError: If the optimizer diverged to non-finite weights
    """
    with track_operation("soh_model_training", charge_count=len(charges)) as event:
        if not nominal_capacity or nominal_capacity <= 0:
            logger.warning(f"Invalid nominal capacity for SoH training: {nominal_capacity}")
            event.add_outcome("model_untrained")
            return None, _untrained()

        deep = select_deep_charges(charges, MIN_SOH_DELTA_PERCENT)
        logger.debug(f"SoH training: {len(deep)}/{len(charges)} deep charges")
        if len(deep) < MIN_SOH_SAMPLES:
            event.add_outcome("model_untrained")
            return None, _untrained()

        origin = deep[0][1]
        samples = []
        for charge, charge_date in deep:
            capacity = calculate_implied_capacity(
                charge.kwh_charged, charge.initial_percentage, charge.final_percentage
            )
            if capacity is None or not is_capacity_plausible(capacity, nominal_capacity):
                continue
            weight = (charge.final_percentage - charge.initial_percentage) / 100.0
            samples.append((days_between(origin, charge_date), capacity, weight))

        if len(samples) < MIN_SOH_SAMPLES:
            event.add_outcome("model_untrained")
            return None, _untrained()

        days, capacities, weighted = split_capacity_samples(samples)
        median_capacity = weighted_median(weighted, nominal_capacity)
        logger.debug(f"SoH median capacity: {median_capacity:.2f} kWh from {len(samples)} samples")

        x = np.asarray(days, dtype=np.float64).reshape(-1, 1)
        y = np.asarray(capacities, dtype=np.float64)
        mean, variance = calculate_moments(x)

        with event.timer("fit"):
            fit = fit_linear_regression(
                normalize(x, mean, variance),
                y,
                epochs=SOH_EPOCHS,
                batch_size=SOH_BATCH_SIZE,
                learning_rate=LEARNING_RATE,
                seed=Config.MODEL_RANDOM_SEED if seed is None else seed,
            )

        if not fit.is_finite:
            raise ModelTrainingError("SoH regression diverged", model="soh", samples=len(samples))

        model = SoHModel(
            weight=fit.weights[0],
            bias=fit.bias,
            feature_mean=float(mean[0]),
            feature_variance=float(variance[0]),
            origin=origin.isoformat(),
            last_day=days[-1],
            median_capacity=median_capacity,
            loss=fit.loss,
            samples=len(samples),
        )

        regression_capacity = predict_capacity(model, model.last_day)
        final_capacity = blend_capacity_estimates(regression_capacity, median_capacity)
        if abs(regression_capacity - median_capacity) / median_capacity > SOH_DEVIATION_THRESHOLD:
            logger.warning(
                f"SoH regression deviates from median (regression {regression_capacity:.2f}, "
                f"median {median_capacity:.2f}); trusting the median"
            )
        predicted_soh = round(capacity_kwh_to_soh(final_capacity, nominal_capacity), 2)

        event.add_business_metric("samples", model.samples)
        event.add_business_metric("predicted_soh", predicted_soh)
        event.add_technical_metric("loss", round(model.loss, 6))
        return model, {"loss": model.loss, "samples": model.samples, "predicted_soh": predicted_soh}


async def train_soh(
    charges: Sequence[Charge],
    nominal_capacity: float,
    seed: Optional[int] = None,
) -> Tuple[Optional[SoHModel], Dict]:
    """Fit the SoH model off the event loop. See fit_soh_model."""
    return await asyncio.to_thread(fit_soh_model, list(charges), nominal_capacity, seed)


def get_soh_data_points(
    charges: Sequence[Charge],
    nominal_capacity: float,
    model: Optional[SoHModel],
) -> Dict[str, List[Dict]]:
    """
    Chart data: per-session SoH points plus the model's trend line.

    Points use a stricter 10% SoC gain filter. Trend values are evaluated
    at each point's day offset from the model's own origin.

    Returns:
        {"points": [{"x", "y", "cap"}], "trend": [{"x", "y"}]}
    """
    if model is None or not nominal_capacity or nominal_capacity <= 0:
        return {"points": [], "trend": []}

    origin = parse_date(model.origin)
    points = []
    trend = []
    for charge, charge_date in select_deep_charges(charges, MIN_SOH_CHART_DELTA_PERCENT):
        capacity = calculate_implied_capacity(
            charge.kwh_charged, charge.initial_percentage, charge.final_percentage
        )
        if capacity is None or not is_capacity_plausible(capacity, nominal_capacity):
            continue

        points.append({
            "x": charge.date,
            "y": capacity_kwh_to_soh(capacity, nominal_capacity),
            "cap": capacity,
        })
        day_offset = days_between(origin, charge_date)
        trend.append({
            "x": charge.date,
            "y": capacity_kwh_to_soh(predict_capacity(model, day_offset), nominal_capacity),
        })

    return {"points": points, "trend": trend}
