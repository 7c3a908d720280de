"""
Health routes for EVStats.

Anomaly detection and the aggregated dataset summary.
"""

import logging

from flask import Blueprint, jsonify

from evstats.routes.payloads import get_json_body, load_dataset
from evstats.services import check_system_health, process_data

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health/anomalies", methods=["POST"])
def health_anomalies():
    """Rule-based battery, drain, charging and tire anomalies."""
    dataset = load_dataset(get_json_body())
    processed = process_data(dataset.trips, dataset.settings, dataset.charges)

    anomalies = check_system_health(processed, dataset.settings, dataset.charges, dataset.trips)
    return jsonify({
        "anomalies": [a.to_dict() for a in anomalies],
        "count": len(anomalies),
    })


@health_bp.route("/summary", methods=["POST"])
def summary():
    """Summary totals plus monthly and weekday breakdowns."""
    dataset = load_dataset(get_json_body())
    return jsonify(process_data(dataset.trips, dataset.settings, dataset.charges).to_dict())
