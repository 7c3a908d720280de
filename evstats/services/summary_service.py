"""
Statistics aggregation service.

Rolls validated trips up into the headline summary plus monthly and
weekday breakdowns consumed by the advice and health services.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from evstats.calculations import calculate_kwh_per_100km
from evstats.models import Charge, ProcessedData, Settings, Summary, Trip
from evstats.utils.time_utils import WEEKDAY_NAMES, parse_date

logger = logging.getLogger(__name__)


def _empty_bucket() -> Dict:
    return {"km": 0.0, "kwh": 0.0, "trips": 0}


def summarize_monthly(trips: Sequence[Trip]) -> List[Dict]:
    """
    Per-month totals, oldest month first.

    Returns:
        [{"month": "YYYY-MM", "km", "kwh", "efficiency", "trips"}]
    """
    buckets: Dict[str, Dict] = defaultdict(_empty_bucket)
    for trip in trips:
        if not trip.month:
            continue
        bucket = buckets[trip.month]
        bucket["km"] += trip.distance_km
        bucket["kwh"] += trip.electricity_kwh
        bucket["trips"] += 1

    monthly = []
    for month in sorted(buckets):
        bucket = buckets[month]
        monthly.append({
            "month": month,
            "km": round(bucket["km"], 2),
            "kwh": round(bucket["kwh"], 2),
            "efficiency": calculate_kwh_per_100km(bucket["kwh"], bucket["km"]) or 0.0,
            "trips": bucket["trips"],
        })
    return monthly


def summarize_weekdays(trips: Sequence[Trip]) -> List[Dict]:
    """
    Per-weekday totals, Monday first. Every weekday is present.

    Returns:
        [{"day": name, "day_index", "km", "kwh", "trips"}]
    """
    buckets = [_empty_bucket() for _ in WEEKDAY_NAMES]
    for trip in trips:
        trip_date = parse_date(trip.date)
        if trip_date is None:
            continue
        bucket = buckets[trip_date.weekday()]
        bucket["km"] += trip.distance_km
        bucket["kwh"] += trip.electricity_kwh
        bucket["trips"] += 1

    return [
        {
            "day": WEEKDAY_NAMES[index],
            "day_index": index,
            "km": round(bucket["km"], 2),
            "kwh": round(bucket["kwh"], 2),
            "trips": bucket["trips"],
        }
        for index, bucket in enumerate(buckets)
    ]


def process_data(
    trips: Sequence[Trip],
    settings: Settings,
    charges: Optional[Sequence[Charge]] = None,
) -> ProcessedData:
    """
    Aggregate trips into a ProcessedData value.

    Charges are accepted for interface symmetry with the other services;
    driving energy comes from trips only.
    """
    total_km = sum(t.distance_km for t in trips)
    driving_kwh = sum(t.electricity_kwh for t in trips)
    days_active = len({t.date for t in trips if t.date})

    summary = Summary(
        total_km=round(total_km, 2),
        driving_kwh=round(driving_kwh, 2),
        avg_efficiency=calculate_kwh_per_100km(driving_kwh, total_km) or 0.0,
        days_active=days_active,
        soh=settings.soh,
        trip_count=len(trips),
        avg_daily_kwh=round(driving_kwh / days_active, 2) if days_active else 0.0,
    )
    logger.debug(
        f"Processed {len(trips)} trips and {len(charges or [])} charges over {days_active} active days"
    )
    return ProcessedData(
        summary=summary,
        monthly=summarize_monthly(trips),
        weekday=summarize_weekdays(trips),
    )
