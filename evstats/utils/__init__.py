"""
Utility modules for EVStats.

Only the time helpers are re-exported here: models import them, so this
package must not pull in anything that imports models.
"""

from .time_utils import format_minutes, get_local_timezone, parse_date, parse_hhmm, utc_now, weekday_index

__all__ = [
    'utc_now',
    'get_local_timezone',
    'parse_date',
    'parse_hhmm',
    'format_minutes',
    'weekday_index',
]
