"""
Background jobs for model training.

These run on an RQ worker so that an API request can return immediately
with a job id. Payloads are the raw JSON bodies the API received; results
are plain dicts so RQ can serialize them.
"""

import logging
from typing import Any, Dict

from evstats.exceptions import EVStatsError
from evstats.services.battery_health_service import fit_soh_model
from evstats.services.range_prediction_service import fit_range_model, get_scenarios
from evstats.utils.record_validation import parse_charges, parse_trips, validate_settings
from evstats.utils.wide_events import log_training_event

logger = logging.getLogger(__name__)


def train_range_job(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Train the range model for a dataset in the background.

    Args:
        payload: {"trips": [...], "settings": {...}}

    Returns:
        Dict with status, the serialized model and its scenarios
    """
    try:
        settings = validate_settings(payload.get("settings"))
        trips, errors = parse_trips(payload.get("trips"))
        model, info = fit_range_model(trips)

        log_training_event("range", info["samples"], info["loss"], True, skipped_rows=len(errors))
        return {
            "status": "success",
            "model": model.to_dict() if model else None,
            "loss": info["loss"],
            "samples": info["samples"],
            "scenarios": get_scenarios(model, settings.battery_size, settings.soh),
            "skipped_rows": len(errors),
        }

    except EVStatsError as e:
        logger.error(f"Range training job failed: {e}")
        log_training_event("range", 0, 0.0, False, error=str(e))
        return {"status": "failed", "error": e.message, "details": e.details}


def train_soh_job(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Train the SoH model for a dataset in the background.

    Args:
        payload: {"charges": [...], "settings": {...}}

    Returns:
        Dict with status, the serialized model and the predicted SoH
    """
    try:
        settings = validate_settings(payload.get("settings"))
        charges, errors = parse_charges(payload.get("charges"), settings.battery_size)
        model, info = fit_soh_model(charges, settings.battery_size)

        log_training_event("soh", info["samples"], info["loss"], True, skipped_rows=len(errors))
        return {
            "status": "success",
            "model": model.to_dict() if model else None,
            "loss": info["loss"],
            "samples": info["samples"],
            "predicted_soh": info["predicted_soh"],
            "skipped_rows": len(errors),
        }

    except EVStatsError as e:
        logger.error(f"SoH training job failed: {e}")
        log_training_event("soh", 0, 0.0, False, error=str(e))
        return {"status": "failed", "error": e.message, "details": e.details}
