"""
Charging Window Scheduler

Turns trip history, tariff windows and a departure oracle into a weekly
charging plan:

1. Estimate the weekly energy need and the charging hours it requires.
2. Infer, per weekday, when the car is typically free (not driving).
3. Probe the next 7 days every 3 hours: "if parked now, how long?". Each
   predicted stay is intersected with availability and the off-peak
   tariff; long enough overlaps become scored candidates.
4. Drop near-duplicate candidates, then put user-pinned slots first.
5. Greedily pick candidates (with a bonus for extending an already
   chosen window) until the need is covered.
6. Bridge short gaps at midnight and emit the plan Saturday-first.

Minutes are always local minutes of day in [0, 1440].
"""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from evstats.calculations.constants import (
    CONTIGUITY_BONUS,
    CONTIGUITY_TOLERANCE_MINUTES,
    DEDUP_START_TOLERANCE_MINUTES,
    DEFAULT_OFF_PEAK_END,
    DEFAULT_OFF_PEAK_START,
    MIDNIGHT_BRIDGE_MAX_MINUTES,
    MIN_AVAILABILITY_OBSERVATIONS,
    MIN_DRIVING_SPAN_MINUTES,
    MIN_OFF_PEAK_OVERLAP_MINUTES,
    MIN_PREDICTED_STAY_HOURS,
    MIN_RECENT_TRIPS,
    MIN_TRIPS_FOR_SCHEDULE,
    MIN_WINDOW_MINUTES,
    MINUTES_PER_DAY,
    PROBE_HORIZON_DAYS,
    PROBE_INTERVAL_HOURS,
    RECENT_TRIPS_DAYS,
    USER_PREFERENCE_SCORE,
    WEEKDAY_SCORE_WEIGHT,
    WEEKEND_SCORE_WEIGHT,
    WEEKLY_KWH_BUFFER,
)
from evstats.config import Config
from evstats.models import ChargingWindow, Settings, SmartChargingPreference, Trip
from evstats.utils.time_utils import (
    format_minutes,
    from_timestamp,
    get_local_timezone,
    is_weekend,
    local_midnight,
    minute_of_day,
    parse_hhmm,
    utc_now,
)
from evstats.utils.wide_events import track_operation

logger = logging.getLogger(__name__)

Interval = Tuple[int, int]

# Saturday, Sunday, then Monday..Friday
OUTPUT_DAY_ORDER = (5, 6, 0, 1, 2, 3, 4)
FALLBACK_WEEKDAYS = (0, 1, 2, 3, 4)
FALLBACK_WINDOW = (0, 8 * 60)

NOTE_INSUFFICIENT_TIME = "insufficient_time"
NOTE_AI_MISSING = "ai_missing"


# ---------------------------------------------------------------------------
# Interval helpers
# ---------------------------------------------------------------------------

def intersect_intervals(left: Sequence[Interval], right: Sequence[Interval]) -> List[Interval]:
    """
    Pairwise intersection of two interval lists.

    Example:
        >>> intersect_intervals([(0, 480)], [(0, 300), (1200, 1440)])
        [(0, 300)]
    """
    result = []
    for a_start, a_end in left:
        for b_start, b_end in right:
            start, end = max(a_start, b_start), min(a_end, b_end)
            if start < end:
                result.append((start, end))
    return sorted(result)


def total_minutes(intervals: Sequence[Interval]) -> int:
    return sum(end - start for start, end in intervals)


def output_order(window: ChargingWindow) -> Tuple[int, int]:
    return OUTPUT_DAY_ORDER.index(window.day_index), window.start_mins


# ---------------------------------------------------------------------------
# Need estimation
# ---------------------------------------------------------------------------

def estimate_weekly_need(
    trips: Sequence[Trip],
    settings: Settings,
    cutoff_timestamp: float,
) -> Dict[str, float]:
    """
    Project weekly consumption and the charging hours it needs.

    Trips newer than the cutoff are used when there are more than 5 of
    them, otherwise the whole history. The target carries a 10% buffer.

    Returns:
        {"weekly_kwh", "target_kwh", "power_kw", "required_hours"}
    """
    recent = [t for t in trips if t.start_timestamp > cutoff_timestamp]
    data = recent if len(recent) > MIN_RECENT_TRIPS else list(trips)

    total_kwh = sum(t.electricity_kwh or 0 for t in data)
    starts = [t.start_timestamp for t in data]
    span_seconds = max(86400.0, max(starts) - min(starts))
    weekly_kwh = total_kwh / (span_seconds / 86400.0) * 7

    target_kwh = weekly_kwh * WEEKLY_KWH_BUFFER
    power_kw = settings.charger_amps * Config.GRID_VOLTAGE / 1000.0
    return {
        "weekly_kwh": weekly_kwh,
        "target_kwh": target_kwh,
        "power_kw": power_kw,
        "required_hours": target_kwh / power_kw,
    }


# ---------------------------------------------------------------------------
# Availability and tariff
# ---------------------------------------------------------------------------

def infer_availability(trips: Sequence[Trip], local_tz: tzinfo) -> Dict[int, List[Interval]]:
    """
    Typically-free intervals per weekday.

    With at least two trips on a weekday whose earliest start and latest
    end are more than an hour apart, the day is split into the blocks
    before and after driving. Otherwise the whole day is free.
    """
    starts: Dict[int, List[int]] = {day: [] for day in range(7)}
    ends: Dict[int, List[int]] = {day: [] for day in range(7)}

    for trip in trips:
        start = from_timestamp(trip.start_timestamp, local_tz)
        end = from_timestamp(trip.end_timestamp, local_tz)
        day = start.weekday()
        starts[day].append(minute_of_day(start))
        ends[day].append(minute_of_day(end) if end.date() == start.date() else MINUTES_PER_DAY)

    availability = {}
    for day in range(7):
        if len(starts[day]) >= MIN_AVAILABILITY_OBSERVATIONS:
            earliest, latest = min(starts[day]), max(ends[day])
            if latest - earliest > MIN_DRIVING_SPAN_MINUTES:
                availability[day] = [
                    block for block in ((0, earliest), (latest, MINUTES_PER_DAY)) if block[0] < block[1]
                ]
                continue
        availability[day] = [(0, MINUTES_PER_DAY)]
    return availability


def off_peak_intervals(day_index: int, settings: Settings) -> Tuple[List[Interval], Optional[str]]:
    """
    Off-peak tariff minutes for a weekday, plus the tariff limit label.

    Weekend days use the weekend window when set. "00:00-00:00" means all
    day (limit None). A window that wraps midnight, such as 23:00-07:00, is
    represented on each day as [00:00, 07:00) and [23:00, 24:00).

    Example:
        >>> off_peak_intervals(0, Settings(off_peak_start="23:00", off_peak_end="07:00"))
        ([(0, 420), (1380, 1440)], '07:00')
    """
    if is_weekend(day_index):
        start = settings.off_peak_start_weekend or settings.off_peak_start or DEFAULT_OFF_PEAK_START
        end = settings.off_peak_end_weekend or settings.off_peak_end or DEFAULT_OFF_PEAK_END
    else:
        start = settings.off_peak_start or DEFAULT_OFF_PEAK_START
        end = settings.off_peak_end or DEFAULT_OFF_PEAK_END

    start_mins, end_mins = parse_hhmm(start), parse_hhmm(end)
    if start_mins == end_mins:
        return [(0, MINUTES_PER_DAY)], None
    if start_mins < end_mins:
        return [(start_mins, end_mins)], format_minutes(end_mins)
    return [(0, end_mins), (start_mins, MINUTES_PER_DAY)], format_minutes(end_mins)


def split_stay_by_day(start: datetime, end: datetime) -> List[Tuple[int, Interval]]:
    """Cut a local [start, end) stay into (weekday, minutes) pieces."""
    pieces = []
    day_start = local_midnight(start)
    while day_start < end:
        next_day = day_start + timedelta(days=1)
        piece_start = max(start, day_start)
        piece_end = min(end, next_day)
        if piece_start < piece_end:
            start_mins = minute_of_day(piece_start)
            end_mins = MINUTES_PER_DAY if piece_end >= next_day else minute_of_day(piece_end)
            if start_mins < end_mins:
                pieces.append((day_start.weekday(), (start_mins, end_mins)))
        day_start = next_day
    return pieces


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

async def _ask_oracle(predict_departure: Callable, timestamp_ms: float) -> Optional[Dict]:
    try:
        result = predict_departure(timestamp_ms)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.warning(f"Departure oracle failed for probe {timestamp_ms}: {e}")
        return None


def build_candidates(
    probes: Sequence[datetime],
    predictions: Sequence[Optional[Dict]],
    availability: Dict[int, List[Interval]],
    settings: Settings,
) -> List[ChargingWindow]:
    """Score the triple intersection of each predicted stay, in probe order."""
    candidates = []
    for probe, prediction in zip(probes, predictions):
        if not prediction:
            continue
        duration_hours = prediction.get("duration_hours") or 0
        if duration_hours < MIN_PREDICTED_STAY_HOURS:
            continue

        stay_end = probe + timedelta(hours=duration_hours)
        for day_index, stay in split_stay_by_day(probe, stay_end):
            tariff, limit = off_peak_intervals(day_index, settings)
            off_peak_overlap = intersect_intervals([stay], tariff)
            usable = intersect_intervals(off_peak_overlap, availability[day_index])
            if not usable:
                continue

            start_mins, end_mins = max(usable, key=lambda piece: (piece[1] - piece[0], -piece[0]))
            length = end_mins - start_mins
            if length <= MIN_WINDOW_MINUTES or total_minutes(off_peak_overlap) <= MIN_OFF_PEAK_OVERLAP_MINUTES:
                continue

            weight = WEEKEND_SCORE_WEIGHT if is_weekend(day_index) else WEEKDAY_SCORE_WEIGHT
            candidates.append(ChargingWindow(
                day_index=day_index,
                start_mins=start_mins,
                end_mins=end_mins,
                limit=limit,
                source="ai",
                score=length * weight,
            ))
    return candidates


def deduplicate_candidates(candidates: Sequence[ChargingWindow]) -> List[ChargingWindow]:
    """Collapse same-weekday candidates starting within 60 minutes; first wins."""
    kept: List[ChargingWindow] = []
    for candidate in candidates:
        duplicate = any(
            other.day_index == candidate.day_index
            and abs(other.start_mins - candidate.start_mins) < DEDUP_START_TOLERANCE_MINUTES
            for other in kept
        )
        if not duplicate:
            kept.append(candidate)
    return kept


def preference_windows(
    preferences: Sequence[SmartChargingPreference],
    settings: Settings,
) -> List[ChargingWindow]:
    """
    Windows for active user preferences.

    A preference that wraps midnight is split across its day and the next.
    """
    windows = []
    for pref in preferences:
        if not pref.active:
            continue
        start, end = parse_hhmm(pref.start), parse_hhmm(pref.end)
        if start == end:
            pieces = [(pref.day, (0, MINUTES_PER_DAY))]
        elif start < end:
            pieces = [(pref.day, (start, end))]
        else:
            pieces = [(pref.day, (start, MINUTES_PER_DAY)), ((pref.day + 1) % 7, (0, end))]

        for day_index, (start_mins, end_mins) in pieces:
            _, limit = off_peak_intervals(day_index, settings)
            windows.append(ChargingWindow(
                day_index=day_index,
                start_mins=start_mins,
                end_mins=end_mins,
                limit=limit,
                source="user",
                score=USER_PREFERENCE_SCORE,
            ))
    return windows


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def abuts(window: ChargingWindow, other: ChargingWindow) -> bool:
    """True if the windows touch (within 5 minutes) on the same or adjacent days."""
    tolerance = CONTIGUITY_TOLERANCE_MINUTES
    if window.day_index == other.day_index:
        return (
            abs(window.start_mins - other.end_mins) <= tolerance
            or abs(other.start_mins - window.end_mins) <= tolerance
        )
    if window.day_index == (other.day_index + 1) % 7:
        return other.end_mins >= MINUTES_PER_DAY - tolerance and window.start_mins <= tolerance
    if other.day_index == (window.day_index + 1) % 7:
        return window.end_mins >= MINUTES_PER_DAY - tolerance and other.start_mins <= tolerance
    return False


def select_windows(
    pinned: Sequence[ChargingWindow],
    candidates: Sequence[ChargingWindow],
    required_hours: float,
) -> List[ChargingWindow]:
    """
    Pinned windows first, then greedy anchored selection.

    Each round picks the non-overlapping candidate with the highest
    score + contiguity bonus; ties go to the earliest in output order.
    Stops once the selected hours cover required_hours.
    """
    selected: List[ChargingWindow] = []
    for window in pinned:
        if not any(window.overlaps(other) for other in selected):
            selected.append(window)

    remaining = sorted(candidates, key=output_order)
    while sum(w.hours for w in selected) < required_hours:
        best = None
        best_value = None
        for candidate in remaining:
            if any(candidate.overlaps(other) for other in selected):
                continue
            bonus = CONTIGUITY_BONUS if any(abuts(candidate, other) for other in selected) else 0.0
            value = candidate.score + bonus
            if best_value is None or value > best_value:
                best, best_value = candidate, value
        if best is None:
            break
        selected.append(best)
        remaining.remove(best)

    return selected


def bridge_midnight_gaps(windows: Sequence[ChargingWindow]) -> List[ChargingWindow]:
    """
    Extend consecutive-day windows to meet at midnight.

    Applies when A (day d) and B (day d+1) leave a gap of at most two hours
    around midnight and one of them already touches midnight.
    """
    result = list(windows)
    changed = True
    while changed:
        changed = False
        for i, first in enumerate(result):
            for j, second in enumerate(result):
                if i == j or second.day_index != (first.day_index + 1) % 7:
                    continue
                gap = (MINUTES_PER_DAY - first.end_mins) + second.start_mins
                if not (0 < gap <= MIDNIGHT_BRIDGE_MAX_MINUTES):
                    continue
                if first.end_mins != MINUTES_PER_DAY and second.start_mins != 0:
                    continue

                extended_first = ChargingWindow(
                    first.day_index, first.start_mins, MINUTES_PER_DAY, first.limit, first.source, first.score
                )
                extended_second = ChargingWindow(
                    second.day_index, 0, second.end_mins, second.limit, second.source, second.score
                )
                others = [w for k, w in enumerate(result) if k not in (i, j)]
                if any(extended_first.overlaps(w) or extended_second.overlaps(w) for w in others):
                    continue

                result[i], result[j] = extended_first, extended_second
                changed = True
    return result


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _plan(windows: Sequence[ChargingWindow], need: Dict[str, float], note: Optional[str]) -> Dict:
    ordered = sorted(windows, key=output_order)
    return {
        "windows": [w.to_dict() for w in ordered],
        "weekly_kwh": need["weekly_kwh"],
        "required_hours": need["required_hours"],
        "hours_found": sum(w.hours for w in ordered),
        "note": note,
    }


def fallback_plan(need: Dict[str, float]) -> Dict:
    """Fixed Monday-Friday 00:00-08:00 plan used when no oracle is available."""
    start, end = FALLBACK_WINDOW
    windows = [
        ChargingWindow(day, start, end, limit=format_minutes(end), source="default")
        for day in FALLBACK_WEEKDAYS
    ]
    return _plan(windows, need, NOTE_AI_MISSING)


async def find_smart_charging_windows(
    trips: Sequence[Trip],
    settings: Settings,
    predict_departure: Optional[Callable] = None,
    now: Optional[datetime] = None,
    local_tz: Optional[tzinfo] = None,
) -> Optional[Dict]:
    """
    Build the weekly charging plan.

    Args:
        trips: Validated trips; only those with timestamps are used
        settings: Tariff windows, charger rating and preferences
        predict_departure: Oracle taking epoch ms and returning
            {"departure_time", "duration_hours"} or None; sync or async
        now: Reference time (default: now). Probing starts at its local
            midnight, so calls on the same day produce the same plan
        local_tz: Timezone for weekday/minute bucketing (default: Config.TIMEZONE)

    Returns:
        {"windows", "weekly_kwh", "required_hours", "hours_found", "note"},
        or None with fewer than 3 timestamped trips
    """
    local_tz = local_tz or get_local_timezone()
    timed = sorted((t for t in trips if t.has_timestamps), key=lambda t: t.start_timestamp)
    if len(timed) < MIN_TRIPS_FOR_SCHEDULE:
        return None

    with track_operation("charging_schedule", trip_count=len(timed)) as event:
        day_start = local_midnight((now or utc_now()).astimezone(local_tz))
        cutoff = (day_start - timedelta(days=RECENT_TRIPS_DAYS)).timestamp()
        need = estimate_weekly_need(timed, settings, cutoff)
        event.add_business_metric("required_hours", round(need["required_hours"], 2))

        if predict_departure is None:
            event.add_outcome("oracle_missing")
            return fallback_plan(need)

        availability = infer_availability(timed, local_tz)
        probe_count = PROBE_HORIZON_DAYS * 24 // PROBE_INTERVAL_HOURS
        probes = [day_start + timedelta(hours=PROBE_INTERVAL_HOURS * i) for i in range(probe_count)]

        with event.timer("oracle"):
            predictions = await asyncio.gather(
                *(_ask_oracle(predict_departure, probe.timestamp() * 1000) for probe in probes)
            )

        candidates = deduplicate_candidates(build_candidates(probes, predictions, availability, settings))

        active_prefs = [p for p in settings.smart_charging_preferences if p.active]
        pinned = preference_windows(active_prefs, settings)
        pinned_days = {p.day for p in active_prefs}
        candidates = [c for c in candidates if c.day_index not in pinned_days]

        selected = select_windows(pinned, candidates, need["required_hours"])
        selected = bridge_midnight_gaps(selected)

        hours_found = sum(w.hours for w in selected)
        note = NOTE_INSUFFICIENT_TIME if hours_found < need["required_hours"] else None
        if note:
            event.add_outcome(note)

        event.add_technical_metric("candidates", len(candidates))
        event.add_business_metric("windows", len(selected))
        event.add_business_metric("hours_found", round(hours_found, 2))
        return _plan(selected, need, note)
