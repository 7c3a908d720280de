"""
Request payload helpers shared by the API blueprints.

Every analytics endpoint receives its dataset in the JSON body:
{"trips": [...], "charges": [...], "settings": {...}}. Settings are
validated strictly; trip and charge rows that fail validation are skipped
and counted, the way the importer treats bad rows.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from flask import request

from evstats.exceptions import RecordValidationError
from evstats.models import Charge, Settings, Trip
from evstats.utils.record_validation import parse_charges, parse_trips, validate_settings

logger = logging.getLogger(__name__)


@dataclass
class Dataset:
    """Validated records from one request body."""

    settings: Settings
    trips: List[Trip] = field(default_factory=list)
    charges: List[Charge] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)


def get_json_body() -> Dict[str, Any]:
    """Return the request's JSON object, or raise RecordValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RecordValidationError("Request body must be a JSON object")
    return data


def load_dataset(data: Dict[str, Any]) -> Dataset:
    """Validate settings, trips and charges from a request body."""
    for key in ("trips", "charges"):
        if data.get(key) is not None and not isinstance(data[key], list):
            raise RecordValidationError(f"'{key}' must be a list", field=key, value=data[key])

    settings = validate_settings(data.get("settings"))
    trips, trip_errors = parse_trips(data.get("trips") or [])
    charges, charge_errors = parse_charges(data.get("charges") or [], settings.battery_size)

    errors = trip_errors + charge_errors
    if errors:
        logger.info(f"Request dataset: {len(errors)} row error(s) reported back to the client")
    return Dataset(settings=settings, trips=trips, charges=charges, errors=errors)
