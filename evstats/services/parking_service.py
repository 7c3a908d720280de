"""
Parking Duration Service

Default departure oracle for the charging scheduler. Parked intervals are
the gaps between consecutive trips. For a probe time, the oracle looks at
every historical gap that covered the same weekday and minute of day and
returns the median time that remained until departure.
"""

import logging
from datetime import datetime, time, timedelta, tzinfo
from typing import Dict, List, Optional, Sequence, Tuple

from evstats.calculations import calculate_median
from evstats.models import Trip
from evstats.utils.time_utils import from_timestamp, get_local_timezone

logger = logging.getLogger(__name__)

MAX_GAP_DAYS = 14  # Longer gaps are holidays, not habits


class ParkingOracle:
    """
    Answers "if parked now, how long until the next departure?".

    Usage:
        oracle = ParkingOracle(trips)
        prediction = await oracle.predict_departure(timestamp_ms)
    """

    def __init__(self, trips: Sequence[Trip], local_tz: Optional[tzinfo] = None):
        self.local_tz = local_tz or get_local_timezone()
        self.gaps = self._extract_gaps(trips)
        logger.debug(f"Parking oracle built from {len(self.gaps)} parked intervals")

    def _extract_gaps(self, trips: Sequence[Trip]) -> List[Tuple[datetime, datetime]]:
        timed = sorted((t for t in trips if t.has_timestamps), key=lambda t: t.start_timestamp)
        gaps = []
        for current, following in zip(timed, timed[1:]):
            if following.start_timestamp <= current.end_timestamp:
                continue
            if following.start_timestamp - current.end_timestamp > MAX_GAP_DAYS * 86400:
                continue
            gaps.append((
                from_timestamp(current.end_timestamp, self.local_tz),
                from_timestamp(following.start_timestamp, self.local_tz),
            ))
        return gaps

    def remaining_hours(self, moment: datetime) -> Optional[float]:
        """
        Median hours until departure over gaps covering moment's weekday and time.

        Returns:
            Hours, or None when no historical gap covers that slot
        """
        moment = moment.astimezone(self.local_tz)
        slot = time(moment.hour, moment.minute)
        remaining = []

        for gap_start, gap_end in self.gaps:
            day = gap_start.date()
            while day <= gap_end.date():
                if day.weekday() == moment.weekday():
                    instant = datetime.combine(day, slot, tzinfo=self.local_tz)
                    if gap_start <= instant < gap_end:
                        remaining.append((gap_end - instant).total_seconds() / 3600.0)
                day += timedelta(days=1)

        return calculate_median(remaining)

    async def predict_departure(self, timestamp_ms: float) -> Optional[Dict]:
        """
        Oracle contract used by the charging scheduler.

        Args:
            timestamp_ms: Probe time in epoch milliseconds

        Returns:
            {"departure_time": epoch ms, "duration_hours": float} or None
        """
        hours = self.remaining_hours(from_timestamp(timestamp_ms / 1000.0, self.local_tz))
        if hours is None:
            return None
        return {
            "departure_time": timestamp_ms + hours * 3600 * 1000,
            "duration_hours": hours,
        }
