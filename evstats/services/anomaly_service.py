"""
Anomaly Detection Service

Independent rule-based health checks over the processed summary, the
charge history and the trip history:

- Battery: SoH below 85% (warning) or 75% (critical)
- Phantom drain: SoC lost while parked for more than 12 hours
- Charging efficiency: battery energy gained vs energy metered, judged
  against a threshold that depends on charging power and time of day
- Tire/efficiency drift: recent trips consistently above the average

Pure functions: nothing is persisted, dismissal is the caller's concern.
"""

import logging
from datetime import date, datetime, time
from typing import List, Optional, Sequence

from evstats.calculations.constants import (
    CHARGE_EFFICIENCY_WARNING_MARGIN,
    DRAIN_INFO_PCT_PER_DAY,
    DRAIN_MIN_GAP_HOURS,
    DRAIN_WARNING_PCT_PER_DAY,
    FALLBACK_BATTERY_CAPACITY_KWH,
    FAST_CHARGE_EFFICIENCY_THRESHOLD,
    HIGH_CONSUMPTION_MIN_TRIPS,
    HIGH_CONSUMPTION_RATIO,
    MAX_PLAUSIBLE_CHARGE_EFFICIENCY,
    MIN_PLAUSIBLE_CHARGE_EFFICIENCY,
    OVERNIGHT_END_HOURS,
    OVERNIGHT_FALLBACK_HOURS,
    RECENT_CHARGES_CHECKED,
    RECENT_TRIPS_CHECKED,
    SLOW_CHARGE_EFFICIENCY_THRESHOLD,
    SLOW_CHARGE_POWER_KW,
    SOH_CRITICAL_PERCENT,
    SOH_WARNING_PERCENT,
    VALLEY_END_HOUR,
)
from evstats.models import Anomaly, Charge, ProcessedData, Settings, Summary, Trip
from evstats.utils.time_utils import get_local_timezone, parse_date, parse_hhmm
from evstats.utils.wide_events import track_operation

logger = logging.getLogger(__name__)


def _battery_capacity(settings: Settings) -> float:
    return settings.battery_size or FALLBACK_BATTERY_CAPACITY_KWH


def check_battery_health(summary: Summary) -> List[Anomaly]:
    """Flag SoH below the warning or critical thresholds."""
    soh = summary.soh
    if soh < SOH_CRITICAL_PERCENT:
        return [Anomaly(
            id="soh_critical",
            type="battery",
            severity="critical",
            title="Critical Battery Health",
            description="Battery state of health has dropped below 75%.",
            value=f"{soh:.1f}%",
        )]
    if soh < SOH_WARNING_PERCENT:
        return [Anomaly(
            id="soh_warning",
            type="battery",
            severity="warning",
            title="Battery Degradation",
            description="State of health is below 85%. Keep an eye on it.",
            value=f"{soh:.1f}%",
        )]
    return []


def analyze_phantom_drain(trips: Sequence[Trip], settings: Settings) -> List[Anomaly]:
    """
    Report the most recent parked period with abnormal SoC loss.

    Gaps longer than 12 hours where SoC fell are normalised to %/24h.
    About 1%/day is normal BMS and telematics draw; above 2%/day is
    reported (info), above 4%/day as a warning. The scan runs newest to
    oldest and stops at the first qualifying gap.
    """
    timed = sorted((t for t in trips if t.has_timestamps), key=lambda t: t.start_timestamp)
    capacity = _battery_capacity(settings)

    for index in range(len(timed) - 2, -1, -1):
        parked, following = timed[index], timed[index + 1]
        gap_hours = (following.start_timestamp - parked.end_timestamp) / 3600.0
        if gap_hours <= DRAIN_MIN_GAP_HOURS:
            continue

        end_soc, start_soc = parked.end_soc, following.start_soc
        if end_soc is None or start_soc is None or start_soc >= end_soc:
            continue

        drop_pct = end_soc - start_soc
        drop_kwh = drop_pct / 100.0 * capacity
        drop_per_day = drop_pct / gap_hours * 24
        if drop_per_day <= DRAIN_INFO_PCT_PER_DAY:
            continue

        return [Anomaly(
            id=f"drain_{parked.date}",
            type="drain",
            severity="warning" if drop_per_day > DRAIN_WARNING_PCT_PER_DAY else "info",
            title="Phantom Drain Detected",
            description=(
                f"Between {parked.date} and {following.date} the car lost {drop_pct:.1f}% "
                f"of battery ({drop_kwh:.1f} kWh) in {gap_hours:.0f} hours."
            ),
            value=f"-{drop_per_day:.1f}%/day",
            timestamp=following.start_timestamp,
        )]
    return []


def _charge_moment(charge: Charge) -> Optional[datetime]:
    if not charge.time:
        return None
    charge_date = parse_date(charge.date)
    if charge_date is None:
        return None
    minutes = parse_hhmm(charge.time)
    return datetime.combine(charge_date, time(minutes // 60, minutes % 60), tzinfo=get_local_timezone())


def infer_session_hours(charge_ts: float, charge_hour: int, timed_trips: Sequence[Trip]) -> float:
    """
    Hours the car was plugged in, from the parking gap around the charge.

    Falls back to an 8h overnight session for charges logged 07:00-09:00
    when no gap brackets the charge.
    """
    duration_hours = 0.0
    for index, trip in enumerate(timed_trips):
        following = timed_trips[index + 1] if index + 1 < len(timed_trips) else None
        if trip.end_timestamp < charge_ts and (following is None or following.start_timestamp > charge_ts):
            if following is not None:
                duration_hours = (following.start_timestamp - trip.end_timestamp) / 3600.0
            break

    low, high = OVERNIGHT_END_HOURS
    if duration_hours == 0 and low <= charge_hour <= high:
        duration_hours = OVERNIGHT_FALLBACK_HOURS
    return duration_hours


def _charge_order(charge: Charge):
    """Chronological sort key; unparseable dates sort oldest."""
    try:
        minutes = parse_hhmm(charge.time) if charge.time else 0
    except ValueError:
        minutes = 0
    return parse_date(charge.date) or date.min, minutes


def analyze_charges(charges: Sequence[Charge], settings: Settings, trips: Sequence[Trip]) -> List[Anomaly]:
    """
    Check charging efficiency on the 5 most recent sessions.

    Slow (<4 kW inferred) or valley (00:00-08:00) charging is held to a
    70% threshold because standby losses dominate at low power; anything
    else to 80%. Ratios outside (0.45, 1.1) are treated as corrupt logs
    and never flagged.
    """
    capacity = _battery_capacity(settings)
    recent = sorted(charges, key=_charge_order, reverse=True)[:RECENT_CHARGES_CHECKED]
    timed_trips = sorted((t for t in trips if t.has_timestamps), key=lambda t: t.start_timestamp)

    anomalies = []
    for charge in recent:
        if charge.kwh_charged <= 0 or charge.initial_percentage is None or charge.final_percentage is None:
            continue

        added_kwh = (charge.final_percentage - charge.initial_percentage) / 100.0 * capacity
        efficiency = added_kwh / charge.kwh_charged

        moment = _charge_moment(charge)
        inferred_power = 0.0
        is_valley = False
        if moment is not None:
            hours = infer_session_hours(moment.timestamp(), moment.hour, timed_trips)
            if hours > 0:
                inferred_power = charge.kwh_charged / hours
            is_valley = 0 <= moment.hour < VALLEY_END_HOUR

        is_slow = 0 < inferred_power < SLOW_CHARGE_POWER_KW
        low_power = is_slow or is_valley
        threshold = SLOW_CHARGE_EFFICIENCY_THRESHOLD if low_power else FAST_CHARGE_EFFICIENCY_THRESHOLD

        if not (MIN_PLAUSIBLE_CHARGE_EFFICIENCY < efficiency < MAX_PLAUSIBLE_CHARGE_EFFICIENCY):
            continue
        if efficiency >= threshold:
            continue

        if low_power:
            power_label = f"~{inferred_power:.1f}kW" if inferred_power else "slow"
            detail = f"Charging at low power ({power_label}) normally has lower efficiency."
        else:
            detail = "This may indicate resistive or climate losses during fast charging."

        anomalies.append(Anomaly(
            id=f"eff_{charge.id or charge.date}",
            type="charging",
            severity="warning" if efficiency < threshold - CHARGE_EFFICIENCY_WARNING_MARGIN else "info",
            title="Efficiency (Slow/Valley Charging)" if low_power else "Low Charging Efficiency",
            description=f"Charge on {charge.date}: efficiency {round(efficiency * 100)}%. {detail}",
            value=f"{efficiency * 100:.0f}%",
            timestamp=moment.timestamp() if moment is not None else charge.timestamp,
        ))
    return anomalies


def analyze_tire_health(trips: Sequence[Trip], summary: Summary) -> List[Anomaly]:
    """Suggest a tire pressure check when 3 of the last 5 trips use >25% more than average."""
    average = summary.avg_efficiency
    if not average:
        return []

    recent = sorted(trips, key=lambda t: t.start_timestamp or 0, reverse=True)[:RECENT_TRIPS_CHECKED]
    high = sum(
        1 for t in recent
        if t.kwh_per_100km is not None and t.kwh_per_100km > average * HIGH_CONSUMPTION_RATIO
    )
    if high < HIGH_CONSUMPTION_MIN_TRIPS:
        return []

    return [Anomaly(
        id="tire_pressure",
        type="efficiency",
        severity="info",
        title="Check Tire Pressure",
        description=(
            "Your latest trips use 25% more energy than your historical average. "
            "Low tire pressure could be the cause."
        ),
        value="High consumption",
    )]


def check_system_health(
    data: ProcessedData,
    settings: Settings,
    charges: Sequence[Charge],
    trips: Sequence[Trip],
) -> List[Anomaly]:
    """Run every health check and return the combined anomalies."""
    with track_operation("health_check", trip_count=len(trips), charge_count=len(charges)) as event:
        anomalies: List[Anomaly] = []
        anomalies.extend(check_battery_health(data.summary))
        anomalies.extend(analyze_phantom_drain(trips, settings))
        anomalies.extend(analyze_charges(charges, settings, trips))
        anomalies.extend(analyze_tire_health(trips, data.summary))

        if any(a.severity == "critical" for a in anomalies):
            event.add_outcome("critical_anomaly")
        event.add_business_metric("anomalies", len(anomalies))
        return anomalies
