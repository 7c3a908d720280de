"""
Time parsing and manipulation utilities for EVStats.

Provides consistent date/time handling across the engine with:
- Local timezone resolution from configuration
- Epoch-second <-> local datetime conversion
- Date string parsing (YYYY-MM-DD, YYYYMMDD, ISO)
- "HH:MM" <-> minutes-of-day conversion
- Weekday naming (Monday=0, matching datetime.weekday())
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil import tz as date_tz
from dateutil.relativedelta import relativedelta

from evstats.config import Config
from evstats.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
WEEKEND_DAYS = (5, 6)


def utc_now() -> datetime:
    """
    Get current UTC time with timezone info.

    Returns:
        datetime: Current time in UTC timezone
    """
    return datetime.now(timezone.utc)


def get_local_timezone(name: Optional[str] = None) -> tzinfo:
    """
    Resolve the timezone used for weekday/hour bucketing.

    Args:
        name: IANA timezone name (default: Config.TIMEZONE)

    Returns:
        tzinfo instance

    Raises:
        ConfigurationError: If the timezone name is unknown
    """
    tz_name = name or Config.TIMEZONE
    local_tz = date_tz.gettz(tz_name)
    if local_tz is None:
        raise ConfigurationError(f"Unknown timezone: {tz_name}", config_key="TIMEZONE")
    return local_tz


def from_timestamp(timestamp: float, local_tz: Optional[tzinfo] = None) -> datetime:
    """
    Convert epoch seconds to an aware datetime in the local timezone.

    Example:
        >>> from_timestamp(0, timezone.utc).isoformat()
        '1970-01-01T00:00:00+00:00'
    """
    return datetime.fromtimestamp(timestamp, tz=local_tz or get_local_timezone())


def local_midnight(moment: datetime) -> datetime:
    """Midnight at the start of the given aware datetime's day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_date(date_string: Union[str, date, None]) -> Optional[date]:
    """
    Parse a record date.

    Accepts "YYYY-MM-DD", "YYYYMMDD" and anything dateutil understands.

    Args:
        date_string: The date string to parse

    Returns:
        date object, or None if parsing fails

    Example:
        >>> parse_date("2024-01-15")
        datetime.date(2024, 1, 15)
        >>> parse_date("20240115")
        datetime.date(2024, 1, 15)
        >>> parse_date("not a date") is None
        True
    """
    if not date_string:
        return None
    if isinstance(date_string, datetime):
        return date_string.date()
    if isinstance(date_string, date):
        return date_string

    date_string = date_string.strip()
    compact = date_string.replace("-", "")
    if len(compact) == 8 and compact.isdigit():
        try:
            return date(int(compact[:4]), int(compact[4:6]), int(compact[6:8]))
        except ValueError:
            return None

    try:
        return date_parser.parse(date_string).date()
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Failed to parse date string: {date_string}")
        return None


def parse_hhmm(value: str) -> int:
    """
    Convert "HH:MM" to minutes after midnight.

    Raises:
        ValueError: If the value is not a valid time of day

    Example:
        >>> parse_hhmm("07:30")
        450
        >>> parse_hhmm("00:00")
        0
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day: {value!r}")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """
    Format minutes after midnight as "HH:MM".

    The end of day (1440) formats as "00:00".

    Example:
        >>> format_minutes(450)
        '07:30'
        >>> format_minutes(1440)
        '00:00'
    """
    minutes = int(minutes) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minute_of_day(moment: datetime) -> int:
    """Minutes elapsed since local midnight."""
    return moment.hour * 60 + moment.minute


def weekday_index(value: Union[int, str]) -> int:
    """
    Resolve a weekday given as 0-6 (Monday=0) or an English name.

    Raises:
        ValueError: If the value names no weekday

    Example:
        >>> weekday_index("saturday")
        5
        >>> weekday_index("Sun")
        6
        >>> weekday_index(2)
        2
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid weekday: {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f"Invalid weekday: {value!r}")

    text = str(value).strip().lower()
    if text.isdigit():
        return weekday_index(int(text))
    for index, name in enumerate(WEEKDAY_NAMES):
        if len(text) >= 3 and name.lower().startswith(text):
            return index
    raise ValueError(f"Invalid weekday: {value!r}")


def is_weekend(day_index: int) -> bool:
    return day_index in WEEKEND_DAYS


def days_between(start: date, end: date) -> float:
    """Whole days from start to end (negative if end is earlier)."""
    return float((end - start).days)


def months_spanned(start: date, end: date) -> int:
    """
    Calendar months touched by the interval, at least 1.

    Example:
        >>> months_spanned(date(2024, 1, 20), date(2024, 3, 2))
        3
    """
    months = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return max(1, months)


def months_ago(months: int, now: Optional[datetime] = None) -> datetime:
    """The same instant N calendar months earlier, clamped to month end."""
    return (now or utc_now()) - relativedelta(months=months)
