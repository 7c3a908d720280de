"""
Tests for background training jobs.

The job functions are called directly; RQ only serializes their input
and output.
"""

import pytest

from evstats.jobs import train_range_job, train_soh_job
from tests.factories import TripFactory, as_payloads


class TestTrainRangeJob:
    """Tests for train_range_job."""

    def test_few_trips(self):
        result = train_range_job({"trips": as_payloads(TripFactory.build_batch(3)), "settings": {"battery_size": 60}})

        assert result["status"] == "success"
        assert result["model"] is None
        assert result["samples"] == 0
        assert [s["name"] for s in result["scenarios"]] == ["City", "Mixed", "Highway"]

    def test_trained_model_is_serialized(self, commute_trips):
        result = train_range_job({"trips": as_payloads(commute_trips)})

        assert result["status"] == "success"
        assert len(result["model"]["weights"]) == 2
        assert result["samples"] > 1500

    def test_skipped_rows_are_counted(self):
        rows = as_payloads(TripFactory.build_batch(2)) + [{"distance_km": -5}]
        assert train_range_job({"trips": rows})["skipped_rows"] == 1

    def test_invalid_settings(self):
        result = train_range_job({"settings": {"battery_size": "big"}})

        assert result["status"] == "failed"
        assert result["details"]["field"] == "battery_size"


class TestTrainSoHJob:
    """Tests for train_soh_job."""

    def test_nominal_charges(self, nominal_charges):
        result = train_soh_job({"charges": as_payloads(nominal_charges), "settings": {"battery_size": 60}})

        assert result["status"] == "success"
        assert result["predicted_soh"] == pytest.approx(100.0, abs=1.0)
        assert result["model"]["origin"] == "2024-01-10"

    def test_no_charges(self):
        result = train_soh_job({})

        assert result["status"] == "success"
        assert result["model"] is None
        assert result["predicted_soh"] == 100.0

    def test_invalid_settings(self):
        result = train_soh_job({"settings": {"off_peak_start": "whenever"}})
        assert result["status"] == "failed"
