"""
Range routes for EVStats.

Trains (or reuses) the efficiency model and answers scenario and
single-speed predictions.
"""

import asyncio
import logging

from flask import Blueprint, jsonify

from evstats.exceptions import RecordValidationError
from evstats.models import RangeModel
from evstats.routes.payloads import get_json_body, load_dataset
from evstats.services import range_prediction_service
from evstats.utils.cache_utils import get_cached_model, range_dataset_key, store_model

logger = logging.getLogger(__name__)

range_bp = Blueprint("range", __name__)


def _trained_model(dataset):
    """Return (model, info, cached) for the dataset, training on a cache miss."""
    settings = dataset.settings
    key = range_dataset_key(dataset.trips, settings.battery_size, settings.soh)

    hit = get_cached_model(key, RangeModel)
    if hit is not None:
        model, info = hit
        return model, info, True

    model, info = asyncio.run(range_prediction_service.train(dataset.trips))
    store_model(key, model, info)
    return model, info, False


@range_bp.route("/range/scenarios", methods=["POST"])
def range_scenarios():
    """
    City, Mixed and Highway range scenarios.

    Returns:
        {"scenarios", "loss", "samples", "cached", "errors"}
    """
    dataset = load_dataset(get_json_body())
    model, info, cached = _trained_model(dataset)

    scenarios = range_prediction_service.get_scenarios(
        model, dataset.settings.battery_size, dataset.settings.soh
    )
    return jsonify({
        "scenarios": scenarios,
        "loss": info["loss"],
        "samples": info["samples"],
        "cached": cached,
        "errors": dataset.errors,
    })


@range_bp.route("/range/predict", methods=["POST"])
def range_predict():
    """
    Predicted efficiency for one speed and distance.

    Body adds "speed" (km/h, required) and "distance" (km, optional).
    """
    data = get_json_body()
    try:
        speed = float(data["speed"])
        distance = float(data.get("distance") or 0)
    except KeyError:
        raise RecordValidationError("speed is required", field="speed")
    except (TypeError, ValueError):
        raise RecordValidationError("speed and distance must be numbers", field="speed", value=data.get("speed"))

    dataset = load_dataset(data)
    model, info, cached = _trained_model(dataset)
    return jsonify({
        "efficiency": range_prediction_service.predict(model, speed, distance),
        "samples": info["samples"],
        "cached": cached,
    })
