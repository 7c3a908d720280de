"""
Battery routes for EVStats.

State-of-health prediction and chart data from charging sessions.
"""

import asyncio
import logging

from flask import Blueprint, jsonify

from evstats.models import SoHModel
from evstats.routes.payloads import get_json_body, load_dataset
from evstats.services import battery_health_service
from evstats.utils.cache_utils import get_cached_model, soh_dataset_key, store_model

logger = logging.getLogger(__name__)

battery_bp = Blueprint("battery", __name__)


@battery_bp.route("/battery/soh", methods=["POST"])
def battery_soh():
    """
    Predicted SoH with per-session points and the trend line.

    Returns:
        {"predicted_soh", "loss", "samples", "points", "trend", "cached"}
    """
    dataset = load_dataset(get_json_body())
    nominal = dataset.settings.battery_size
    key = soh_dataset_key(dataset.charges, nominal)

    hit = get_cached_model(key, SoHModel)
    cached = hit is not None
    if cached:
        model, info = hit
    else:
        model, info = asyncio.run(battery_health_service.train_soh(dataset.charges, nominal))
        store_model(key, model, info)

    chart = battery_health_service.get_soh_data_points(dataset.charges, nominal, model)
    return jsonify({
        "predicted_soh": info["predicted_soh"],
        "loss": info["loss"],
        "samples": info["samples"],
        "points": chart["points"],
        "trend": chart["trend"],
        "cached": cached,
    })
