"""
Charging Advice Service

Rule-based charging guidance that complements the weekly plan:
- which kind of charging to favour (slow, mixed, off-peak)
- how much an off-peak tariff would save, and whether it is feasible
- the comfort zone (how low the user typically lets the battery go)
- seasonal consumption factor
- least busy day to charge
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence

from evstats.calculations import calculate_low_percentile, calculate_mean, calculate_usable_capacity
from evstats.calculations.constants import (
    CALIBRATION_MAX_AGE_MONTHS,
    COST_SAVINGS_DEFAULT_CHARGER_AMPS,
    COMFORT_ZONE_EXTEND_SOC,
    COMFORT_ZONE_PERCENTILE,
    MIN_COMFORT_ZONE_CHARGES,
    MIN_MONTHLY_SAVINGS,
    MIN_TRIPS_FOR_SCHEDULE,
    RECENT_TRIPS_DAYS,
    SEASONAL_DEVIATION_RATIO,
    SUMMER_MONTHS,
    WINTER_MONTHS,
)
from evstats.config import Config
from evstats.models import Charge, ProcessedData, Settings, Trip
from evstats.services.charging_schedule_service import estimate_weekly_need
from evstats.utils.time_utils import months_ago, months_spanned, parse_date, parse_hhmm, utc_now

logger = logging.getLogger(__name__)

DEFAULT_OPTIMAL_DAY = "Sunday"
WEEKEND_TOKENS = ("saturday", "sunday", "sat", "sun")
SLOW_CHARGER_MAX_KW = 11.0
DEFAULT_ACTIVE_DAYS = 30


def calculate_cost_savings(
    charges: Sequence[Charge],
    settings: Settings,
    avg_daily_consumption_kwh: float,
) -> Dict:
    """
    Estimate monthly savings from moving electric charging to off-peak.

    Feasibility: charger power x off-peak window hours must cover the
    average daily consumption; otherwise the shortfall is reported.

    Args:
        charges: Charge history
        settings: Tariff settings; needs off-peak enabled, start, end and price
        avg_daily_consumption_kwh: Average daily driving energy

    Returns:
        {"potential_monthly_savings", "feasible_in_off_peak", "deficit_kwh",
        "off_peak_window_hours"}
    """
    if (
        not settings.off_peak_enabled
        or not settings.off_peak_start
        or not settings.off_peak_end
        or not settings.off_peak_price
    ):
        return {
            "potential_monthly_savings": 0,
            "feasible_in_off_peak": True,
            "deficit_kwh": 0,
            "off_peak_window_hours": 0,
        }

    start_hour = parse_hhmm(settings.off_peak_start) // 60
    end_hour = parse_hhmm(settings.off_peak_end) // 60
    if end_hour > start_hour:
        window_hours = end_hour - start_hour
    else:
        window_hours = (24 - start_hour) + end_hour

    charger_amps = settings.home_charger_rating or COST_SAVINGS_DEFAULT_CHARGER_AMPS
    charger_power_kw = charger_amps * Config.GRID_VOLTAGE / 1000.0
    max_energy_in_window = charger_power_kw * window_hours
    deficit = max(0.0, avg_daily_consumption_kwh - max_energy_in_window)

    total_savings = 0.0
    months = 0
    dates = [d for d in (parse_date(c.date) for c in charges) if d is not None]
    if dates:
        months = months_spanned(min(dates), max(dates))
        for charge in charges:
            if charge.type != "electric":
                continue
            potential_cost = (charge.kwh_charged or 0) * settings.off_peak_price
            if charge.total_cost > potential_cost:
                total_savings += charge.total_cost - potential_cost

    monthly_savings = total_savings / months if months > 0 else 0.0

    return {
        "potential_monthly_savings": round(max(0.0, monthly_savings), 2),
        "feasible_in_off_peak": deficit <= 0,
        "deficit_kwh": round(deficit, 2),
        "off_peak_window_hours": window_hours,
    }


def get_charging_recommendation(
    last_calibration_date: Optional[str],
    last_slow_charge_date: Optional[str],
    cost_analysis: Optional[Dict],
    weekly_kwh: float = 0.0,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Pick the charging-type guidance.

    Priority: weekly need above usable capacity (mixed), then a stale or
    unknown balancing charge older than a month (slow, calibrate), then a
    worthwhile and feasible off-peak saving, then "slow is sufficient".

    Returns:
        {"type", "reason", "target_kwh", "params"}
    """
    weekly_kwh = weekly_kwh or 0.0
    kwh_label = f"{weekly_kwh:.0f}"

    if settings and settings.battery_size:
        usable = calculate_usable_capacity(settings.battery_size, settings.soh)
        if weekly_kwh > usable:
            return {
                "type": "mixed",
                "reason": "recommend_mixed",
                "target_kwh": 0,
                "params": {"weekly": kwh_label, "capacity": f"{usable:.1f}"},
            }

    last_balancing = parse_date(last_calibration_date) or parse_date(last_slow_charge_date)
    cutoff = months_ago(CALIBRATION_MAX_AGE_MONTHS, now or utc_now()).date()
    if last_balancing is None or last_balancing < cutoff:
        return {"type": "slow", "reason": "recommend_calibration", "target_kwh": 0, "params": {"kwh": kwh_label}}

    if (
        cost_analysis
        and cost_analysis.get("potential_monthly_savings", 0) > MIN_MONTHLY_SAVINGS
        and cost_analysis.get("feasible_in_off_peak")
    ):
        return {"type": "slow", "reason": "recommend_offpeak", "target_kwh": 0, "params": {"kwh": kwh_label}}

    return {"type": "slow", "reason": "recommend_slow_sufficient", "target_kwh": 0, "params": {"kwh": kwh_label}}


def calculate_comfort_zone(charges: Sequence[Charge]) -> Dict:
    """
    Lowest SoC the user regularly reaches before charging.

    Uses the 10th percentile of initial SoCs so a single deep discharge does
    not dominate. Charging above 30% on that measure means there is range to
    spare and the charging interval could be extended.
    """
    neutral = {"min_soc": 0, "can_extend_interval": False}
    if len(charges) < MIN_COMFORT_ZONE_CHARGES:
        return neutral

    initial_socs = [c.initial_percentage for c in charges if c.initial_percentage is not None]
    if len(initial_socs) < MIN_COMFORT_ZONE_CHARGES:
        return neutral

    conservative_min = calculate_low_percentile(initial_socs, COMFORT_ZONE_PERCENTILE)
    return {
        "min_soc": conservative_min,
        "can_extend_interval": conservative_min > COMFORT_ZONE_EXTEND_SOC,
    }


def calculate_seasonal_factor(monthly_stats: Sequence[Dict], now: Optional[datetime] = None) -> Dict:
    """
    Compare the latest month's consumption with the average month.

    A ratio above 1.05 in winter (Dec-Feb) or summer (Jun-Aug) is reported
    as a seasonal multiplier; anything else is neutral.

    Returns:
        {"factor", "season"}
    """
    neutral = {"factor": 1.0, "season": "neutral"}
    if not monthly_stats or len(monthly_stats) < 2:
        return neutral

    month = (now or utc_now()).month
    efficiencies = [m.get("efficiency") or 0 for m in monthly_stats]
    year_avg = calculate_mean(efficiencies)
    recent = efficiencies[-1] or year_avg
    if recent == 0 or year_avg == 0:
        return neutral

    ratio = recent / year_avg
    if month in WINTER_MONTHS and ratio > SEASONAL_DEVIATION_RATIO:
        return {"factor": ratio, "season": "winter"}
    if month in SUMMER_MONTHS and ratio > SEASONAL_DEVIATION_RATIO:
        return {"factor": ratio, "season": "summer"}
    return neutral


def calculate_optimal_charge_day(weekday_stats: Sequence[Dict], settings: Optional[Settings] = None) -> str:
    """
    Least-used weekday, preferring the weekend when off-peak is enabled.

    Args:
        weekday_stats: [{"day": name, "km": distance}] per weekday

    Examples:
        >>> calculate_optimal_charge_day([{"day": "Monday", "km": 5}, {"day": "Sunday", "km": 40}])
        'Monday'
        >>> calculate_optimal_charge_day([])
        'Sunday'
    """
    if not weekday_stats:
        return DEFAULT_OPTIMAL_DAY

    def is_weekend_name(name: str) -> bool:
        return any(token in name.lower() for token in WEEKEND_TOKENS)

    if settings and settings.off_peak_enabled:
        weekend = [d for d in weekday_stats if is_weekend_name(d["day"])]
        if weekend:
            return min(weekend, key=lambda d: d.get("km", 0))["day"]

    return min(weekday_stats, key=lambda d: d.get("km", 0))["day"] or DEFAULT_OPTIMAL_DAY


def find_last_slow_full_charge(charges: Sequence[Charge], settings: Settings) -> Optional[Charge]:
    """First charge that reached 100% on a charger slower than 11 kW."""
    for charge in charges:
        if charge.final_percentage != 100:
            continue
        charger = settings.charger_type(charge.charger_type_id)
        speed = charger.speed_kw if charger else 0.0
        if speed < SLOW_CHARGER_MAX_KW:
            return charge
    return None


def build_charging_insights(
    trips: Sequence[Trip],
    charges: Sequence[Charge],
    settings: Settings,
    processed: ProcessedData,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Assemble every charging insight for one dataset.

    Returns:
        {"recommendation", "cost_analysis", "comfort_zone", "seasonal_factor",
        "optimal_day", "daily_goal_kwh", "weekly_kwh"}
    """
    summary = processed.summary
    days = summary.days_active or DEFAULT_ACTIVE_DAYS
    avg_daily_kwh = summary.driving_kwh / days

    cost_analysis = calculate_cost_savings(charges, settings, avg_daily_kwh)

    weekly_kwh = 0.0
    timed = [t for t in trips if t.has_timestamps]
    if len(timed) >= MIN_TRIPS_FOR_SCHEDULE:
        cutoff = ((now or utc_now()) - timedelta(days=RECENT_TRIPS_DAYS)).timestamp()
        weekly_kwh = estimate_weekly_need(timed, settings, cutoff)["weekly_kwh"]

    last_slow = find_last_slow_full_charge(charges, settings)
    recommendation = get_charging_recommendation(
        None,
        last_slow.date if last_slow else None,
        cost_analysis,
        weekly_kwh,
        settings,
        now=now,
    )

    seasonal = calculate_seasonal_factor(processed.monthly, now=now)

    return {
        "recommendation": recommendation,
        "cost_analysis": cost_analysis,
        "comfort_zone": calculate_comfort_zone(charges),
        "seasonal_factor": seasonal,
        "optimal_day": calculate_optimal_charge_day(processed.weekday, settings),
        "daily_goal_kwh": avg_daily_kwh * (seasonal["factor"] or 1),
        "weekly_kwh": weekly_kwh,
    }
