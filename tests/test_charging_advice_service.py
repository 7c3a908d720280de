"""
Tests for the rule-based charging advice.
"""

from datetime import datetime, timezone

import pytest

from evstats.models import ChargerType, Settings
from evstats.services.charging_advice_service import (
    build_charging_insights,
    calculate_comfort_zone,
    calculate_cost_savings,
    calculate_optimal_charge_day,
    calculate_seasonal_factor,
    find_last_slow_full_charge,
    get_charging_recommendation,
)
from evstats.services.summary_service import process_data
from tests.factories import ChargeFactory, SettingsFactory

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestCostSavings:
    """Tests for off-peak savings estimation."""

    def test_disabled_off_peak(self):
        result = calculate_cost_savings([ChargeFactory.build()], Settings(), 20.0)
        assert result == {
            "potential_monthly_savings": 0,
            "feasible_in_off_peak": True,
            "deficit_kwh": 0,
            "off_peak_window_hours": 0,
        }

    def test_feasible_window(self):
        result = calculate_cost_savings([], SettingsFactory.build(), 10.0)
        assert result["off_peak_window_hours"] == 8
        assert result["feasible_in_off_peak"] is True
        assert result["deficit_kwh"] == 0

    def test_deficit_when_window_too_short(self):
        # 16 A x 230 V x 8 h = 29.44 kWh
        settings = SettingsFactory.build(home_charger_rating=16.0)
        result = calculate_cost_savings([], settings, 40.0)
        assert result["feasible_in_off_peak"] is False
        assert result["deficit_kwh"] == pytest.approx(10.56)

    def test_unrated_charger_assumes_portable_cable(self):
        # No rating: 8 A x 230 V x 8 h = 14.72 kWh, not the scheduler's 16 A
        result = calculate_cost_savings([], SettingsFactory.build(), 20.0)
        assert result["feasible_in_off_peak"] is False
        assert result["deficit_kwh"] == pytest.approx(5.28)

    def test_rated_charger_covers_same_need(self):
        settings = SettingsFactory.build(home_charger_rating=16.0)
        result = calculate_cost_savings([], settings, 20.0)
        assert result["feasible_in_off_peak"] is True
        assert result["deficit_kwh"] == 0

    def test_wrapping_window(self):
        settings = SettingsFactory.build(off_peak_start="23:00", off_peak_end="07:00")
        assert calculate_cost_savings([], settings, 10.0)["off_peak_window_hours"] == 8

    def test_monthly_savings(self):
        charges = [
            ChargeFactory.build(date="2024-01-10"),
            ChargeFactory.build(date="2024-02-10"),
            ChargeFactory.build(date="2024-03-10"),
            ChargeFactory.build(date="2024-03-11", total_cost=1.0),  # Already cheaper than off-peak
            ChargeFactory.build(date="2024-03-12", type="fuel", total_cost=50.0),
        ]
        # 30 kWh at 0.10 = 3.00 instead of 6.00, three times over three months
        result = calculate_cost_savings(charges, SettingsFactory.build(), 10.0)
        assert result["potential_monthly_savings"] == pytest.approx(3.0)


class TestRecommendation:
    """Tests for the charging-type recommendation priority."""

    def test_mixed_when_weekly_need_exceeds_capacity(self):
        result = get_charging_recommendation("2024-03-10", None, None, 100.0, Settings(battery_size=60.0), now=NOW)
        assert result["type"] == "mixed"
        assert result["reason"] == "recommend_mixed"
        assert result["params"] == {"weekly": "100", "capacity": "60.0"}

    def test_calibration_when_never_balanced(self):
        result = get_charging_recommendation(None, None, None, 30.0, Settings(battery_size=60.0), now=NOW)
        assert result == {"type": "slow", "reason": "recommend_calibration", "target_kwh": 0, "params": {"kwh": "30"}}

    def test_calibration_when_stale(self):
        result = get_charging_recommendation(None, "2024-01-20", None, 30.0, now=NOW)
        assert result["reason"] == "recommend_calibration"

    def test_off_peak_when_worthwhile(self):
        cost = {"potential_monthly_savings": 5.0, "feasible_in_off_peak": True}
        result = get_charging_recommendation("2024-03-01", None, cost, 30.0, now=NOW)
        assert result["reason"] == "recommend_offpeak"

    def test_off_peak_skipped_when_infeasible(self):
        cost = {"potential_monthly_savings": 5.0, "feasible_in_off_peak": False}
        result = get_charging_recommendation("2024-03-01", None, cost, 30.0, now=NOW)
        assert result["reason"] == "recommend_slow_sufficient"

    def test_slow_sufficient(self):
        cost = {"potential_monthly_savings": 0.5, "feasible_in_off_peak": True}
        result = get_charging_recommendation(None, "2024-03-01", cost, 30.0, now=NOW)
        assert result["reason"] == "recommend_slow_sufficient"


class TestComfortZone:
    """Tests for the comfort zone."""

    def test_too_few_charges(self):
        assert calculate_comfort_zone(ChargeFactory.build_batch(4)) == {"min_soc": 0, "can_extend_interval": False}

    def test_conservative_user_can_extend(self):
        charges = [ChargeFactory.build(initial_percentage=soc) for soc in (45, 50, 40, 55, 60)]
        assert calculate_comfort_zone(charges) == {"min_soc": 40, "can_extend_interval": True}

    def test_low_discharge_cannot_extend(self):
        charges = [ChargeFactory.build(initial_percentage=soc) for soc in (15, 50, 40, 55, 60)]
        assert calculate_comfort_zone(charges)["can_extend_interval"] is False

    def test_missing_socs_are_ignored(self):
        charges = ChargeFactory.build_batch(3) + ChargeFactory.build_batch(3, initial_percentage=None)
        assert calculate_comfort_zone(charges)["min_soc"] == 0


class TestSeasonalFactor:
    """Tests for the seasonal consumption factor."""

    MONTHLY = [{"efficiency": 16.0}, {"efficiency": 16.0}, {"efficiency": 20.0}]

    def test_winter(self):
        result = calculate_seasonal_factor(self.MONTHLY, now=datetime(2024, 1, 20, tzinfo=timezone.utc))
        assert result["season"] == "winter"
        assert result["factor"] == pytest.approx(20.0 / (52.0 / 3))

    def test_summer(self):
        result = calculate_seasonal_factor(self.MONTHLY, now=datetime(2024, 7, 20, tzinfo=timezone.utc))
        assert result["season"] == "summer"

    def test_spring_is_neutral(self):
        result = calculate_seasonal_factor(self.MONTHLY, now=datetime(2024, 4, 20, tzinfo=timezone.utc))
        assert result == {"factor": 1.0, "season": "neutral"}

    def test_single_month_is_neutral(self):
        assert calculate_seasonal_factor([{"efficiency": 20.0}])["season"] == "neutral"


class TestOptimalDay:
    """Tests for the optimal charge day."""

    WEEKDAYS = [
        {"day": "Monday", "km": 5},
        {"day": "Tuesday", "km": 40},
        {"day": "Saturday", "km": 60},
        {"day": "Sunday", "km": 20},
    ]

    def test_least_used_day(self):
        assert calculate_optimal_charge_day(self.WEEKDAYS) == "Monday"

    def test_weekend_preferred_with_off_peak(self):
        assert calculate_optimal_charge_day(self.WEEKDAYS, SettingsFactory.build()) == "Sunday"

    def test_empty_defaults_to_sunday(self):
        assert calculate_optimal_charge_day([]) == "Sunday"


class TestLastSlowFullCharge:
    """Tests for balancing-charge detection."""

    def test_unknown_charger_counts_as_slow(self):
        charge = ChargeFactory.build(final_percentage=100)
        assert find_last_slow_full_charge([charge], Settings()) == charge

    def test_fast_charger_is_skipped(self):
        settings = Settings(charger_types=(ChargerType(id="dc", name="DC", speed_kw=50.0),))
        charges = [ChargeFactory.build(final_percentage=100, charger_type_id="dc")]
        assert find_last_slow_full_charge(charges, settings) is None

    def test_partial_charges_are_skipped(self):
        assert find_last_slow_full_charge([ChargeFactory.build()], Settings()) is None


class TestChargingInsights:
    """Tests for the combined insight payload."""

    def test_insight_keys(self, commute_trips, nominal_charges, plan_now):
        settings = SettingsFactory.build()
        processed = process_data(commute_trips, settings, nominal_charges)
        insights = build_charging_insights(commute_trips, nominal_charges, settings, processed, now=plan_now)

        assert set(insights) == {
            "recommendation",
            "cost_analysis",
            "comfort_zone",
            "seasonal_factor",
            "optimal_day",
            "daily_goal_kwh",
            "weekly_kwh",
        }
        assert insights["weekly_kwh"] > 0
        assert insights["optimal_day"] in ("Saturday", "Sunday")
        # 128 kWh over 20 active days
        assert insights["daily_goal_kwh"] == pytest.approx(6.4)

    def test_no_trips(self):
        settings = Settings()
        insights = build_charging_insights([], [], settings, process_data([], settings), now=NOW)
        assert insights["weekly_kwh"] == 0.0
        assert insights["recommendation"]["reason"] == "recommend_calibration"
