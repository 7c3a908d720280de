"""
Tests for the anomaly/health detector.
"""

from datetime import datetime, timedelta, timezone

import pytest

from evstats.models import ProcessedData, Settings, Summary
from evstats.services.anomaly_service import (
    analyze_charges,
    analyze_phantom_drain,
    analyze_tire_health,
    check_battery_health,
    check_system_health,
    infer_session_hours,
)
from tests.factories import ChargeFactory, TripFactory, parked_pair


class TestBatteryHealth:
    """Tests for SoH thresholds."""

    def test_healthy(self):
        assert check_battery_health(Summary(soh=90.0)) == []

    def test_warning(self):
        (anomaly,) = check_battery_health(Summary(soh=80.0))
        assert anomaly.id == "soh_warning"
        assert anomaly.severity == "warning"
        assert anomaly.value == "80.0%"

    def test_critical(self):
        (anomaly,) = check_battery_health(Summary(soh=70.0))
        assert anomaly.id == "soh_critical"
        assert anomaly.severity == "critical"


class TestPhantomDrain:
    """Tests for parked SoC loss."""

    def test_heavy_drain_is_a_warning(self, settings):
        trips = parked_pair(gap_hours=48, end_soc=80, start_soc=70)
        (anomaly,) = analyze_phantom_drain(trips, settings)

        assert anomaly.id == "drain_2024-03-01"
        assert anomaly.type == "drain"
        assert anomaly.severity == "warning"
        assert anomaly.value == "-5.0%/day"
        assert anomaly.timestamp == trips[1].start_timestamp
        assert "48 hours" in anomaly.description
        assert "6.0 kWh" in anomaly.description

    def test_moderate_drain_is_info(self, settings):
        (anomaly,) = analyze_phantom_drain(parked_pair(gap_hours=48, end_soc=80, start_soc=75), settings)
        assert anomaly.severity == "info"

    def test_normal_standby_draw(self, settings):
        assert analyze_phantom_drain(parked_pair(gap_hours=48, end_soc=80, start_soc=77), settings) == []

    def test_short_gap_is_ignored(self, settings):
        assert analyze_phantom_drain(parked_pair(gap_hours=10, end_soc=80, start_soc=60), settings) == []

    def test_soc_gain_is_ignored(self, settings):
        assert analyze_phantom_drain(parked_pair(gap_hours=48, end_soc=60, start_soc=80), settings) == []

    def test_missing_soc_is_ignored(self, settings):
        trips = [
            TripFactory.build_at(datetime(2024, 3, 1, 18, tzinfo=timezone.utc)),
            TripFactory.build_at(datetime(2024, 3, 4, 8, tzinfo=timezone.utc)),
        ]
        assert analyze_phantom_drain(trips, settings) == []

    def test_only_most_recent_gap_is_reported(self, settings):
        older = parked_pair(gap_hours=48, end_soc=80, start_soc=70)
        newer = parked_pair(
            gap_hours=48, end_soc=80, start_soc=75, start=datetime(2024, 3, 10, 18, tzinfo=timezone.utc)
        )
        anomalies = analyze_phantom_drain(newer + older, settings)
        assert [a.id for a in anomalies] == ["drain_2024-03-10"]


class TestChargingEfficiency:
    """Tests for charging efficiency checks on a 60 kWh battery."""

    def test_low_efficiency_midday(self, settings):
        charge = ChargeFactory.build(time="12:00", kwh_charged=40.0)  # 30 kWh gained: 75%
        (anomaly,) = analyze_charges([charge], settings, [])

        assert anomaly.id == "eff_charge-1"
        assert anomaly.type == "charging"
        assert anomaly.severity == "info"
        assert anomaly.title == "Low Charging Efficiency"
        assert anomaly.value == "75%"

    def test_very_low_efficiency_is_a_warning(self, settings):
        charge = ChargeFactory.build(time="12:00", kwh_charged=50.0)  # 60%
        (anomaly,) = analyze_charges([charge], settings, [])
        assert anomaly.severity == "warning"

    def test_valley_charging_has_lower_threshold(self, settings):
        charge = ChargeFactory.build(time="02:00", kwh_charged=40.0)
        assert analyze_charges([charge], settings, []) == []

    def test_slow_charge_inferred_from_parking_gap(self, settings):
        evening = datetime(2024, 1, 10, 17, 30, tzinfo=timezone.utc)
        trips = [
            TripFactory.build_at(evening),  # Home at 18:00
            TripFactory.build_at(evening + timedelta(hours=14, minutes=30)),  # Out at 08:00
        ]
        # 40 kWh over a 14 h stay is below 4 kW, 75% passes the slow threshold
        assert analyze_charges([ChargeFactory.build(time="20:00", kwh_charged=40.0)], settings, trips) == []

        (anomaly,) = analyze_charges([ChargeFactory.build(time="20:00", kwh_charged=55.0)], settings, trips)
        assert anomaly.title == "Efficiency (Slow/Valley Charging)"
        assert anomaly.severity == "warning"
        assert "~3.9kW" in anomaly.description

    @pytest.mark.parametrize("kwh", [20.0, 100.0])
    def test_implausible_ratios_are_not_flagged(self, settings, kwh):
        assert analyze_charges([ChargeFactory.build(time="12:00", kwh_charged=kwh)], settings, []) == []

    def test_only_recent_charges_checked(self, settings):
        charges = [
            ChargeFactory.build(id=f"c{day}", date=f"2024-01-{day:02d}", time="12:00", kwh_charged=40.0)
            for day in range(1, 9)
        ]
        anomalies = analyze_charges(charges, settings, [])
        assert [a.id for a in anomalies] == ["eff_c8", "eff_c7", "eff_c6", "eff_c5", "eff_c4"]

    def test_recent_charges_ordered_by_parsed_date_and_time(self, settings):
        # Unpadded values sort wrongly as strings: "2024-1-1" > "2024-01-09", "9:30" > "12:00"
        charges = [ChargeFactory.build(id="old", date="2024-1-1", time="12:00", kwh_charged=40.0)]
        charges += [
            ChargeFactory.build(id=f"c{day}", date=f"2024-01-{day:02d}", time="12:00", kwh_charged=40.0)
            for day in range(5, 9)
        ]
        charges.append(ChargeFactory.build(id="morning", date="2024-01-08", time="9:30", kwh_charged=40.0))

        anomalies = analyze_charges(charges, settings, [])
        assert [a.id for a in anomalies] == ["eff_c8", "eff_morning", "eff_c7", "eff_c6", "eff_c5"]

    def test_missing_soc_is_skipped(self, settings):
        charge = ChargeFactory.build(initial_percentage=None, kwh_charged=40.0)
        assert analyze_charges([charge], settings, []) == []


class TestSessionHours:
    """Tests for plug-in duration inference."""

    def test_overnight_fallback(self):
        assert infer_session_hours(0.0, 8, []) == 8.0

    def test_daytime_without_gap(self):
        assert infer_session_hours(0.0, 12, []) == 0.0


class TestTireHealth:
    """Tests for the consumption drift rule."""

    def _trips(self, high_count):
        trips = []
        for index in range(5):
            kwh = 4.2 if index < high_count else 3.2  # 21 vs 16 kWh/100km
            trips.append(TripFactory.build(electricity_kwh=kwh, start_timestamp=1_700_000_000 + index * 3600))
        return trips

    def test_three_high_trips(self):
        (anomaly,) = analyze_tire_health(self._trips(3), Summary(avg_efficiency=16.0))
        assert anomaly.id == "tire_pressure"
        assert anomaly.type == "efficiency"
        assert anomaly.severity == "info"

    def test_two_high_trips(self):
        assert analyze_tire_health(self._trips(2), Summary(avg_efficiency=16.0)) == []

    def test_no_average(self):
        assert analyze_tire_health(self._trips(5), Summary()) == []


class TestSystemHealth:
    """Tests for the combined health check."""

    def test_combines_all_checks(self):
        settings = Settings(battery_size=60.0)
        data = ProcessedData(summary=Summary(soh=70.0, avg_efficiency=16.0))
        trips = parked_pair(gap_hours=48, end_soc=80, start_soc=70)
        charges = [ChargeFactory.build(time="12:00", kwh_charged=50.0)]

        anomalies = check_system_health(data, settings, charges, trips)

        assert [a.type for a in anomalies] == ["battery", "drain", "charging"]
        assert anomalies[0].to_dict()["severity"] == "critical"

    def test_healthy_dataset(self, commute_trips, settings):
        data = ProcessedData(summary=Summary(soh=99.0, avg_efficiency=16.0))
        assert check_system_health(data, settings, [], commute_trips) == []
