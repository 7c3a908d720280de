"""
Test Data Factories for EVStats

Provides factory classes to easily create records with sensible defaults,
reducing boilerplate in tests and making them more maintainable.

Usage:
    # Build a trip with defaults
    trip = TripFactory.build()

    # Build with overrides
    trip = TripFactory.build(distance_km=50.0, electricity_kwh=9.0)

    # Raw API payload instead of a record
    payload = TripFactory.payload(start_timestamp=1704096000)

    # Build multiple instances
    trips = TripFactory.build_batch(5)
"""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from evstats.models import Charge, Settings, Trip


class BaseFactory:
    """Base factory with common functionality."""

    model = None

    @classmethod
    def build(cls, **kwargs):
        """Build a record instance."""
        defaults = cls.get_defaults()
        defaults.update(kwargs)
        return cls.model(**defaults)

    @classmethod
    def build_batch(cls, count: int, **kwargs):
        """Build multiple instances."""
        return [cls.build(**kwargs) for _ in range(count)]

    @classmethod
    def payload(cls, **kwargs) -> Dict[str, Any]:
        """Raw dict as the API would receive it."""
        return {k: v for k, v in asdict(cls.build(**kwargs)).items() if v is not None}

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        """Override in subclasses to provide default values."""
        raise NotImplementedError


class TripFactory(BaseFactory):
    """Factory for Trip records: a 20 km, 30 minute trip at 16 kWh/100km."""

    model = Trip

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        return {
            "distance_km": 20.0,
            "electricity_kwh": 3.2,
            "duration_seconds": 1800.0,
            "date": "2024-01-01",
            "month": "2024-01",
        }

    @classmethod
    def build_at(cls, start: datetime, minutes: float = 30, **kwargs) -> Trip:
        """Build a timestamped trip starting at an aware datetime."""
        end = start + timedelta(minutes=minutes)
        defaults = {
            "start_timestamp": start.timestamp(),
            "end_timestamp": end.timestamp(),
            "duration_seconds": minutes * 60.0,
            "date": start.date().isoformat(),
            "month": start.strftime("%Y-%m"),
        }
        defaults.update(kwargs)
        return cls.build(**defaults)


class ChargeFactory(BaseFactory):
    """Factory for Charge records: a 30->80% home charge."""

    model = Charge

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        return {
            "id": "charge-1",
            "date": "2024-01-10",
            "time": "20:00",
            "kwh_charged": 30.0,
            "initial_percentage": 30.0,
            "final_percentage": 80.0,
            "total_cost": 6.0,
            "price_per_kwh": 0.2,
        }

    @classmethod
    def build_for_capacity(cls, capacity_kwh: float, initial: float, final: float, **kwargs) -> Charge:
        """Build a charge whose implied capacity is exactly capacity_kwh."""
        kwh = capacity_kwh * (final - initial) / 100.0
        return cls.build(kwh_charged=kwh, initial_percentage=initial, final_percentage=final, **kwargs)


class SettingsFactory(BaseFactory):
    """Factory for Settings with off-peak pricing enabled."""

    model = Settings

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        return {
            "battery_size": 60.0,
            "soh": 100.0,
            "off_peak_enabled": True,
            "off_peak_start": "00:00",
            "off_peak_end": "08:00",
            "off_peak_price": 0.10,
            "electric_price": 0.30,
        }


def commute_history(
    weeks: int,
    start: datetime,
    kwh: float = 3.2,
    morning: tuple = (8, 0),
    evening: tuple = (17, 30),
) -> List[Trip]:
    """
    Monday-Friday commute: out in the morning, back in the evening.

    Args:
        weeks: Number of weeks
        start: A Monday at 00:00 (aware)
        kwh: Energy per trip
    """
    trips = []
    for day in range(weeks * 7):
        day_start = start + timedelta(days=day)
        if day_start.weekday() >= 5:
            continue
        for hour, minute in (morning, evening):
            trips.append(TripFactory.build_at(
                day_start.replace(hour=hour, minute=minute),
                electricity_kwh=kwh,
                start_soc=80.0,
                end_soc=76.0,
            ))
    return trips


def parked_pair(
    gap_hours: float,
    end_soc: float,
    start_soc: float,
    start: Optional[datetime] = None,
) -> List[Trip]:
    """Two trips separated by a parked gap, for drain checks."""
    start = start or datetime(2024, 3, 1, 18, 0, tzinfo=timezone.utc)
    first = TripFactory.build_at(start, start_soc=90.0, end_soc=end_soc)
    second_start = start + timedelta(minutes=30) + timedelta(hours=gap_hours)
    second = TripFactory.build_at(second_start, start_soc=start_soc, end_soc=start_soc - 4)
    return [first, second]


def as_payloads(records) -> List[Dict[str, Any]]:
    """Records back to raw API rows, dropping unset fields."""
    return [{k: v for k, v in asdict(r).items() if v is not None} for r in records]
