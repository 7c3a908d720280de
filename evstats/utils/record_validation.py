"""
Record validation at the ingestion boundary.

Turns raw dict payloads (JSON bodies, importer rows) into typed Trip,
Charge and Settings records. Anything malformed raises
RecordValidationError; the analytics engine only ever sees validated
records.

parse_trips/parse_charges follow the importer behaviour: bad rows are
skipped and reported, good rows are kept.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from evstats.calculations.battery import estimate_initial_soc
from evstats.config import Config
from evstats.exceptions import RecordValidationError
from evstats.models import Charge, Settings, Trip
from evstats.utils.time_utils import from_timestamp, parse_date, parse_hhmm

logger = logging.getLogger(__name__)

# Physical bounds for numeric fields
VALIDATION_RANGES = {
    'distance_km': (0, 2000),
    'electricity_kwh': (0, 500),
    'duration_seconds': (0, 7 * 24 * 3600),
    'start_soc': (0, 100),
    'end_soc': (0, 100),
    'odometer': (0, 10_000_000),
    'kwh_charged': (0, 500),
    'total_cost': (0, 10_000),
    'price_per_kwh': (0, 100),
    'initial_percentage': (0, 100),
    'final_percentage': (0, 100),
    'battery_size': (0, 1000),
    'soh': (0, 150),
    'home_charger_rating': (0, 100),
    'off_peak_price': (0, 100),
    'electric_price': (0, 100),
}

CHARGE_TYPES = ('electric', 'fuel')
MAX_REPORTED_ERRORS = 10


def _coerce_number(
    data: Dict[str, Any],
    field: str,
    row_number: Optional[int] = None,
    required: bool = True,
) -> Optional[float]:
    """Read a numeric field and check it against VALIDATION_RANGES."""
    value = data.get(field)
    if value is None or value == "":
        if required:
            raise RecordValidationError(f"Missing required field '{field}'", field=field, row_number=row_number)
        return None

    if isinstance(value, bool):
        raise RecordValidationError(f"Field '{field}' must be numeric", field=field, value=value, row_number=row_number)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RecordValidationError(
            f"Field '{field}' must be numeric", field=field, value=value, row_number=row_number
        )
    if number != number:  # NaN
        raise RecordValidationError(f"Field '{field}' must be numeric", field=field, value=value, row_number=row_number)

    bounds = VALIDATION_RANGES.get(field)
    if bounds and not (bounds[0] <= number <= bounds[1]):
        raise RecordValidationError(
            f"Field '{field}' outside valid range",
            field=field,
            value=value,
            expected_range=bounds,
            row_number=row_number,
        )
    return number


def _validate_time_of_day(value: Any, field: str, row_number: Optional[int] = None) -> str:
    try:
        parse_hhmm(value)
    except ValueError:
        raise RecordValidationError(
            f"Field '{field}' must be HH:MM", field=field, value=value, row_number=row_number
        )
    return value.strip()


def validate_trip(data: Dict[str, Any], row_number: Optional[int] = None) -> Trip:
    """
    Validate a raw trip payload.

    date and month are derived from start_timestamp when the payload does
    not carry them.

    Raises:
        RecordValidationError: On missing, non-numeric or out-of-range fields
    """
    if not isinstance(data, dict):
        raise RecordValidationError("Trip must be an object", value=data, row_number=row_number)

    distance = _coerce_number(data, 'distance_km', row_number)
    electricity = _coerce_number(data, 'electricity_kwh', row_number)
    duration = _coerce_number(data, 'duration_seconds', row_number)
    start_soc = _coerce_number(data, 'start_soc', row_number, required=False)
    end_soc = _coerce_number(data, 'end_soc', row_number, required=False)

    start_ts = _coerce_number(data, 'start_timestamp', row_number, required=False)
    end_ts = _coerce_number(data, 'end_timestamp', row_number, required=False)
    if start_ts is not None and end_ts is not None and end_ts < start_ts:
        raise RecordValidationError(
            "Trip ends before it starts", field='end_timestamp', value=end_ts, row_number=row_number
        )

    trip_date = data.get('date') or ""
    if trip_date:
        parsed = parse_date(trip_date)
        if parsed is None:
            raise RecordValidationError("Invalid trip date", field='date', value=trip_date, row_number=row_number)
        trip_date = parsed.isoformat()
    elif start_ts:
        trip_date = from_timestamp(start_ts).date().isoformat()

    month = data.get('month') or (trip_date[:7] if trip_date else "")

    return Trip(
        distance_km=distance,
        electricity_kwh=electricity,
        duration_seconds=duration,
        start_timestamp=start_ts,
        end_timestamp=end_ts,
        start_soc=start_soc,
        end_soc=end_soc,
        date=trip_date,
        month=month,
    )


def validate_charge(
    data: Dict[str, Any],
    battery_capacity: float = Config.DEFAULT_BATTERY_CAPACITY_KWH,
    row_number: Optional[int] = None,
) -> Charge:
    """
    Validate a raw charge payload.

    A missing initial SoC is estimated from the energy delivered and the
    battery capacity, and the charge is flagged is_soc_estimated.

    Raises:
        RecordValidationError: On missing, non-numeric or out-of-range fields
    """
    if not isinstance(data, dict):
        raise RecordValidationError("Charge must be an object", value=data, row_number=row_number)

    parsed_date = parse_date(data.get('date'))
    if parsed_date is None:
        raise RecordValidationError(
            "Invalid date format (YYYY-MM-DD)", field='date', value=data.get('date'), row_number=row_number
        )

    time = data.get('time')
    if time:
        time = _validate_time_of_day(time, 'time', row_number)

    kwh = _coerce_number(data, 'kwh_charged', row_number)
    final_pct = _coerce_number(data, 'final_percentage', row_number, required=False)
    initial_pct = _coerce_number(data, 'initial_percentage', row_number, required=False)

    charge_type = data.get('type') or 'electric'
    if charge_type not in CHARGE_TYPES:
        raise RecordValidationError(
            "Unknown charge type", field='type', value=charge_type, expected_range=CHARGE_TYPES, row_number=row_number
        )

    is_estimated = bool(data.get('is_soc_estimated', False))
    if initial_pct is None and final_pct is not None:
        initial_pct = float(estimate_initial_soc(final_pct, kwh, battery_capacity))
        is_estimated = True

    odometer = _coerce_number(data, 'odometer', row_number, required=False)
    total_cost = _coerce_number(data, 'total_cost', row_number, required=False)
    price = _coerce_number(data, 'price_per_kwh', row_number, required=False)
    timestamp = _coerce_number(data, 'timestamp', row_number, required=False)

    return Charge(
        id=str(data.get('id') or ''),
        charger_type_id=data.get('charger_type_id'),
        timestamp=timestamp,
        date=parsed_date.isoformat(),
        time=time or None,
        odometer=odometer or 0.0,
        kwh_charged=kwh,
        total_cost=total_cost or 0.0,
        price_per_kwh=price or 0.0,
        initial_percentage=initial_pct,
        final_percentage=final_pct,
        is_soc_estimated=is_estimated,
        type=charge_type,
    )


def validate_settings(data: Optional[Dict[str, Any]]) -> Settings:
    """
    Validate a raw settings payload; missing keys take their defaults.

    Raises:
        RecordValidationError: On malformed numbers, times or preferences
    """
    data = data or {}
    if not isinstance(data, dict):
        raise RecordValidationError("Settings must be an object", value=data)

    for field in ('battery_size', 'soh', 'home_charger_rating', 'off_peak_price', 'electric_price'):
        _coerce_number(data, field, required=False)

    for field in ('off_peak_start', 'off_peak_end', 'off_peak_start_weekend', 'off_peak_end_weekend'):
        if data.get(field):
            _validate_time_of_day(data[field], field)

    for index, pref in enumerate(data.get('smart_charging_preferences') or []):
        if not isinstance(pref, dict) or 'day' not in pref:
            raise RecordValidationError(
                "Smart charging preference needs day, start and end",
                field='smart_charging_preferences',
                value=pref,
                row_number=index,
            )
        _validate_time_of_day(pref.get('start'), 'smart_charging_preferences.start', index)
        _validate_time_of_day(pref.get('end'), 'smart_charging_preferences.end', index)

    try:
        return Settings.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise RecordValidationError(f"Invalid settings: {e}")


def _collect(rows: Iterable[Dict[str, Any]], validate) -> Tuple[list, List[dict]]:
    records = []
    errors: List[dict] = []
    skipped = 0
    for row_number, row in enumerate(rows or [], start=1):
        try:
            records.append(validate(row, row_number))
        except RecordValidationError as e:
            skipped += 1
            if len(errors) < MAX_REPORTED_ERRORS:
                errors.append({'message': e.message, **e.details})
    if skipped:
        logger.warning(f"Skipped {skipped} invalid row(s) during validation")
    return records, errors


def parse_trips(rows: Iterable[Dict[str, Any]]) -> Tuple[List[Trip], List[dict]]:
    """
    Validate a batch of trip rows, skipping bad ones.

    Returns:
        (valid trips, error dicts for at most the first 10 rejected rows)
    """
    return _collect(rows, lambda row, n: validate_trip(row, n))


def parse_charges(
    rows: Iterable[Dict[str, Any]],
    battery_capacity: float = Config.DEFAULT_BATTERY_CAPACITY_KWH,
) -> Tuple[List[Charge], List[dict]]:
    """
    Validate a batch of charge rows, skipping bad ones.

    Returns:
        (valid charges, error dicts for at most the first 10 rejected rows)
    """
    return _collect(rows, lambda row, n: validate_charge(row, battery_capacity, n))
