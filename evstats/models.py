"""
Domain records for EVStats.

Every record is an immutable dataclass. Raw payloads should go through
evstats.utils.record_validation first; from_dict here only maps keys and
coerces types, it does not range-check.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from evstats.calculations.constants import (
    DEFAULT_OFF_PEAK_END,
    DEFAULT_OFF_PEAK_START,
    DEFAULT_OFF_PEAK_WEEKEND_END,
    DEFAULT_OFF_PEAK_WEEKEND_START,
)
from evstats.config import Config
from evstats.utils.time_utils import WEEKDAY_NAMES, format_minutes, weekday_index


def _optional_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class Trip:
    """One driving event."""

    distance_km: float
    electricity_kwh: float
    duration_seconds: float
    start_timestamp: Optional[float] = None
    end_timestamp: Optional[float] = None
    start_soc: Optional[float] = None
    end_soc: Optional[float] = None
    date: str = ""
    month: str = ""

    @property
    def has_timestamps(self) -> bool:
        return bool(self.start_timestamp) and bool(self.end_timestamp)

    @property
    def kwh_per_100km(self) -> Optional[float]:
        if self.distance_km <= 0:
            return None
        return self.electricity_kwh * 100.0 / self.distance_km

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trip":
        return cls(
            distance_km=float(data.get("distance_km") or 0),
            electricity_kwh=float(data.get("electricity_kwh") or 0),
            duration_seconds=float(data.get("duration_seconds") or 0),
            start_timestamp=_optional_float(data.get("start_timestamp")),
            end_timestamp=_optional_float(data.get("end_timestamp")),
            start_soc=_optional_float(data.get("start_soc")),
            end_soc=_optional_float(data.get("end_soc")),
            date=data.get("date") or "",
            month=data.get("month") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Charge:
    """One charging session."""

    date: str
    kwh_charged: float
    id: str = ""
    time: Optional[str] = None
    odometer: float = 0.0
    total_cost: float = 0.0
    charger_type_id: Optional[str] = None
    price_per_kwh: float = 0.0
    initial_percentage: Optional[float] = None
    final_percentage: Optional[float] = None
    is_soc_estimated: bool = False
    timestamp: Optional[float] = None
    type: str = "electric"

    @property
    def soc_delta(self) -> Optional[float]:
        if self.initial_percentage is None or self.final_percentage is None:
            return None
        return self.final_percentage - self.initial_percentage

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Charge":
        return cls(
            id=str(data.get("id") or ""),
            date=data.get("date") or "",
            time=data.get("time") or None,
            odometer=float(data.get("odometer") or 0),
            kwh_charged=float(data.get("kwh_charged") or 0),
            total_cost=float(data.get("total_cost") or 0),
            charger_type_id=data.get("charger_type_id"),
            price_per_kwh=float(data.get("price_per_kwh") or 0),
            initial_percentage=_optional_float(data.get("initial_percentage")),
            final_percentage=_optional_float(data.get("final_percentage")),
            is_soc_estimated=bool(data.get("is_soc_estimated", False)),
            timestamp=_optional_float(data.get("timestamp")),
            type=data.get("type") or "electric",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ChargerType:
    """Named charger profile referenced by Charge.charger_type_id."""

    id: str
    name: str
    efficiency: float = 1.0
    speed_kw: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChargerType":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            efficiency=float(data.get("efficiency", 1.0)),
            speed_kw=float(data.get("speed_kw") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SmartChargingPreference:
    """A manual charging slot the user pinned to a weekday."""

    day: int
    start: str
    end: str
    active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SmartChargingPreference":
        return cls(
            day=weekday_index(data["day"]),
            start=data["start"],
            end=data["end"],
            active=bool(data.get("active", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": WEEKDAY_NAMES[self.day],
            "start": self.start,
            "end": self.end,
            "active": self.active,
        }


@dataclass(frozen=True)
class Settings:
    """Read-only configuration bag shared by every component."""

    battery_size: float = Config.DEFAULT_BATTERY_CAPACITY_KWH
    soh: float = 100.0
    off_peak_enabled: bool = False
    off_peak_start: Optional[str] = DEFAULT_OFF_PEAK_START
    off_peak_end: Optional[str] = DEFAULT_OFF_PEAK_END
    off_peak_start_weekend: Optional[str] = DEFAULT_OFF_PEAK_WEEKEND_START
    off_peak_end_weekend: Optional[str] = DEFAULT_OFF_PEAK_WEEKEND_END
    off_peak_price: Optional[float] = None
    home_charger_rating: Optional[float] = None
    electric_price: float = 0.0
    smart_charging_preferences: Tuple[SmartChargingPreference, ...] = ()
    charger_types: Tuple[ChargerType, ...] = ()

    @property
    def charger_amps(self) -> float:
        return self.home_charger_rating or Config.DEFAULT_CHARGER_AMPS

    def charger_type(self, charger_type_id: Optional[str]) -> Optional[ChargerType]:
        for charger in self.charger_types:
            if charger.id == charger_type_id:
                return charger
        return None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        data = data or {}
        defaults = cls()
        return cls(
            battery_size=float(data.get("battery_size") or defaults.battery_size),
            soh=float(data.get("soh") or defaults.soh),
            off_peak_enabled=bool(data.get("off_peak_enabled", False)),
            off_peak_start=data.get("off_peak_start", defaults.off_peak_start),
            off_peak_end=data.get("off_peak_end", defaults.off_peak_end),
            off_peak_start_weekend=data.get("off_peak_start_weekend", defaults.off_peak_start_weekend),
            off_peak_end_weekend=data.get("off_peak_end_weekend", defaults.off_peak_end_weekend),
            off_peak_price=_optional_float(data.get("off_peak_price")),
            home_charger_rating=_optional_float(data.get("home_charger_rating")),
            electric_price=float(data.get("electric_price") or 0),
            smart_charging_preferences=tuple(
                SmartChargingPreference.from_dict(p) for p in data.get("smart_charging_preferences") or []
            ),
            charger_types=tuple(ChargerType.from_dict(c) for c in data.get("charger_types") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["smart_charging_preferences"] = [p.to_dict() for p in self.smart_charging_preferences]
        result["charger_types"] = [c.to_dict() for c in self.charger_types]
        return result


@dataclass(frozen=True)
class RangeModel:
    """
    Trained efficiency regression: kWh/100km ~ w1*speed^2 + w2*distance + b.

    Holds the normalization moments the weights were fitted against, so a
    model is self-contained and can be cached or shipped between processes.
    """

    weights: Tuple[float, ...]
    bias: float
    feature_mean: Tuple[float, ...]
    feature_variance: Tuple[float, ...]
    loss: float = 0.0
    samples: int = 0

    @property
    def input_width(self) -> int:
        return len(self.weights)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RangeModel":
        return cls(
            weights=tuple(float(w) for w in data["weights"]),
            bias=float(data["bias"]),
            feature_mean=tuple(float(m) for m in data["feature_mean"]),
            feature_variance=tuple(float(v) for v in data["feature_variance"]),
            loss=float(data.get("loss", 0.0)),
            samples=int(data.get("samples", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SoHModel:
    """
    Trained capacity trend: implied kWh ~ w*days_since_origin + b.

    origin is the date of the first sample the model was fitted on; day
    offsets are always measured from it.
    """

    weight: float
    bias: float
    feature_mean: float
    feature_variance: float
    origin: str
    last_day: float = 0.0
    median_capacity: float = 0.0
    loss: float = 0.0
    samples: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SoHModel":
        return cls(
            weight=float(data["weight"]),
            bias=float(data["bias"]),
            feature_mean=float(data["feature_mean"]),
            feature_variance=float(data["feature_variance"]),
            origin=data["origin"],
            last_day=float(data.get("last_day", 0.0)),
            median_capacity=float(data.get("median_capacity", 0.0)),
            loss=float(data.get("loss", 0.0)),
            samples=int(data.get("samples", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ChargingWindow:
    """A recommended weekly charging slot on one weekday."""

    day_index: int
    start_mins: int
    end_mins: int
    limit: Optional[str] = None
    source: str = "ai"
    score: float = 0.0

    @property
    def hours(self) -> float:
        return (self.end_mins - self.start_mins) / 60.0

    def overlaps(self, other: "ChargingWindow") -> bool:
        if self.day_index != other.day_index:
            return False
        return self.start_mins < other.end_mins and other.start_mins < self.end_mins

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": WEEKDAY_NAMES[self.day_index],
            "day_index": self.day_index,
            "start": format_minutes(self.start_mins),
            "end": format_minutes(self.end_mins),
            "start_mins": self.start_mins,
            "end_mins": self.end_mins,
            "limit": self.limit,
            "source": self.source,
        }


ANOMALY_TYPES = ("battery", "drain", "charging", "efficiency")
ANOMALY_SEVERITIES = ("info", "warning", "critical")


@dataclass(frozen=True)
class Anomaly:
    """A flagged irregularity produced by a health check."""

    id: str
    type: str
    severity: str
    title: str
    description: str
    value: Optional[str] = None
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class Summary:
    """Headline totals over the whole dataset."""

    total_km: float = 0.0
    driving_kwh: float = 0.0
    avg_efficiency: float = 0.0
    days_active: int = 0
    soh: float = 100.0
    trip_count: int = 0
    avg_daily_kwh: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProcessedData:
    """Aggregator output: summary plus monthly and weekday breakdowns."""

    summary: Summary = field(default_factory=Summary)
    monthly: List[Dict[str, Any]] = field(default_factory=list)
    weekday: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "monthly": list(self.monthly),
            "weekday": list(self.weekday),
        }
