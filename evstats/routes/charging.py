"""
Charging routes for EVStats.

Weekly charging plan and charging advice.
"""

import asyncio
import logging

from flask import Blueprint, jsonify

from evstats.routes.payloads import get_json_body, load_dataset
from evstats.services import (
    ParkingOracle,
    build_charging_insights,
    find_smart_charging_windows,
    process_data,
)

logger = logging.getLogger(__name__)

charging_bp = Blueprint("charging", __name__)


@charging_bp.route("/charging/plan", methods=["POST"])
def charging_plan():
    """
    Weekly charging windows inside off-peak tariff time.

    The departure oracle is learned from the posted trips. Responds with
    {"plan": null} when there are fewer than 3 timestamped trips.
    """
    dataset = load_dataset(get_json_body())
    oracle = ParkingOracle(dataset.trips)

    plan = asyncio.run(
        find_smart_charging_windows(dataset.trips, dataset.settings, oracle.predict_departure)
    )
    return jsonify({"plan": plan, "errors": dataset.errors})


@charging_bp.route("/charging/insights", methods=["POST"])
def charging_insights():
    """Recommendation, cost analysis, comfort zone, seasonal factor and optimal day."""
    dataset = load_dataset(get_json_body())
    processed = process_data(dataset.trips, dataset.settings, dataset.charges)

    insights = build_charging_insights(dataset.trips, dataset.charges, dataset.settings, processed)
    return jsonify(insights)
