"""
Tests for the EVStats API blueprints.

Datasets are posted in the request body; Redis is never touched (the job
queue helpers are patched) and the model cache is a NullCache.
"""

from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import RedisError

from evstats.exceptions import ModelTrainingError
from tests.factories import TripFactory, as_payloads


@pytest.fixture
def commute_body(commute_trips):
    return {"trips": as_payloads(commute_trips), "settings": {"battery_size": 60.0}}


class TestStatus:
    def test_status(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"


class TestValidationErrors:
    """Malformed bodies map to 400 with a structured error."""

    def test_non_json_body(self, client):
        response = client.post("/api/summary", data="not json", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["code"] == "E001"

    def test_trips_not_a_list(self, client):
        response = client.post("/api/summary", json={"trips": {"distance_km": 3}})
        body = response.get_json()
        assert response.status_code == 400
        assert body["code"] == "E003"
        assert body["details"]["field"] == "trips"

    def test_bad_settings_type(self, client):
        response = client.post("/api/summary", json={"settings": {"battery_size": "big"}})
        assert response.status_code == 400
        assert response.get_json()["code"] == "E003"

    def test_settings_out_of_range(self, client):
        response = client.post("/api/summary", json={"settings": {"soh": 500}})
        body = response.get_json()
        assert response.status_code == 400
        assert body["code"] == "E004"
        assert body["details"]["expected_range"] == [0, 150]

    def test_bad_rows_are_reported_not_rejected(self, client):
        trips = as_payloads(TripFactory.build_batch(2)) + [{"distance_km": "far"}]
        response = client.post("/api/range/scenarios", json={"trips": trips})
        body = response.get_json()
        assert response.status_code == 200
        assert len(body["errors"]) == 1
        assert body["errors"][0]["row_number"] == 3


class TestRangeRoutes:
    """Tests for /api/range endpoints."""

    def test_scenarios_with_few_trips(self, client):
        body = {"trips": as_payloads(TripFactory.build_batch(3)), "settings": {"battery_size": 60.0}}
        response = client.post("/api/range/scenarios", json=body)
        data = response.get_json()

        assert response.status_code == 200
        assert data["samples"] == 0
        assert data["cached"] is False
        assert [s["range"] for s in data["scenarios"]] == [375, 375, 375]

    def test_predict_requires_speed(self, client):
        response = client.post("/api/range/predict", json={"trips": []})
        assert response.status_code == 400
        assert response.get_json()["details"]["field"] == "speed"

    def test_predict_rejects_non_numeric_speed(self, client):
        response = client.post("/api/range/predict", json={"speed": "fast"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "E003"

    def test_predict_without_model(self, client):
        response = client.post("/api/range/predict", json={"speed": 90, "trips": []})
        assert response.status_code == 200
        assert response.get_json()["efficiency"] == 16.0

    def test_training_failure(self, client):
        with patch(
            "evstats.services.range_prediction_service.train",
            side_effect=ModelTrainingError("Range regression diverged", model="range", samples=1540),
        ):
            response = client.post("/api/range/scenarios", json={"trips": []})

        body = response.get_json()
        assert response.status_code == 500
        assert body["code"] == "E400"
        assert body["details"]["model"] == "range"


class TestBatteryRoutes:
    """Tests for /api/battery/soh."""

    def test_soh(self, client, nominal_charges):
        body = {"charges": as_payloads(nominal_charges), "settings": {"battery_size": 60.0}}
        response = client.post("/api/battery/soh", json=body)
        data = response.get_json()

        assert response.status_code == 200
        assert data["predicted_soh"] == pytest.approx(100.0, abs=1.0)
        assert data["samples"] == 8
        assert len(data["points"]) == 8
        assert len(data["trend"]) == 8

    def test_soh_without_charges(self, client):
        data = client.post("/api/battery/soh", json={}).get_json()
        assert data["predicted_soh"] == 100.0
        assert data["points"] == []


class TestChargingRoutes:
    """Tests for /api/charging endpoints."""

    def test_plan(self, client, commute_body):
        data = client.post("/api/charging/plan", json=commute_body).get_json()
        assert data["plan"]["windows"]
        assert data["plan"]["required_hours"] > 0

    def test_plan_with_too_few_trips(self, client):
        trips = as_payloads(TripFactory.build_batch(2, start_timestamp=1_704_096_000, end_timestamp=1_704_097_800))
        data = client.post("/api/charging/plan", json={"trips": trips}).get_json()
        assert data["plan"] is None

    def test_insights(self, client, commute_body, nominal_charges):
        commute_body["charges"] = as_payloads(nominal_charges)
        data = client.post("/api/charging/insights", json=commute_body).get_json()
        assert {"recommendation", "cost_analysis", "comfort_zone", "optimal_day"} <= set(data)


class TestHealthRoutes:
    """Tests for anomalies and summary."""

    def test_anomalies(self, client):
        response = client.post("/api/health/anomalies", json={"settings": {"soh": 70}})
        data = response.get_json()

        assert response.status_code == 200
        assert data["count"] == 1
        assert data["anomalies"][0]["id"] == "soh_critical"
        assert "timestamp" not in data["anomalies"][0]

    def test_summary(self, client, commute_body):
        data = client.post("/api/summary", json=commute_body).get_json()
        assert data["summary"]["trip_count"] == 40
        assert len(data["weekday"]) == 7

    def test_unexpected_error(self, client):
        with patch("evstats.routes.health.process_data", side_effect=RuntimeError("boom")):
            response = client.post("/api/summary", json={})

        body = response.get_json()
        assert response.status_code == 500
        assert body["code"] == "E500"
        assert "boom" not in body["error"]


class TestJobRoutes:
    """Tests for background training endpoints."""

    def test_enqueue_training(self, client):
        with patch("evstats.routes.jobs.enqueue_job", return_value=MagicMock(id="job-1")) as mock_enqueue:
            response = client.post("/api/models/range/train", json={"trips": []})

        assert response.status_code == 202
        assert response.get_json() == {"job_id": "job-1", "status": "queued"}
        assert mock_enqueue.call_args[0][1] == {"trips": []}

    def test_unknown_model(self, client):
        response = client.post("/api/models/weather/train", json={})
        assert response.status_code == 404
        assert response.get_json()["available"] == ["range", "soh"]

    def test_queue_unavailable(self, client):
        with patch("evstats.routes.jobs.enqueue_job", side_effect=RedisError("Connection refused")):
            response = client.post("/api/models/soh/train", json={})

        assert response.status_code == 503
        assert response.get_json()["code"] == "E501"

    def test_job_status(self, client):
        status = {"id": "job-1", "status": "finished", "result": {"status": "success"}}
        with patch("evstats.routes.jobs.get_job_status", return_value=status):
            response = client.get("/api/jobs/job-1")

        assert response.status_code == 200
        assert response.get_json()["status"] == "finished"

    def test_job_not_found(self, client):
        with patch("evstats.routes.jobs.get_job_status", return_value=None):
            response = client.get("/api/jobs/missing")

        assert response.status_code == 404
        assert response.get_json()["code"] == "E502"

    def test_cancel_job(self, client):
        with patch("evstats.routes.jobs.cancel_job", return_value=True):
            response = client.delete("/api/jobs/job-1")

        assert response.get_json() == {"job_id": "job-1", "status": "canceled"}
