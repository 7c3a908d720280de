"""Tests for custom EVStats exceptions."""

import pytest

from evstats.exceptions import ConfigurationError, EVStatsError, ModelTrainingError, RecordValidationError


class TestEVStatsError:
    """Tests for base EVStatsError."""

    def test_basic_message(self):
        error = EVStatsError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details == {}

    def test_with_details(self):
        error = EVStatsError("Error occurred", {"key": "value", "count": 42})
        assert "Error occurred" in str(error)
        assert error.details == {"key": "value", "count": 42}

    def test_is_exception(self):
        with pytest.raises(EVStatsError):
            raise EVStatsError("test")


class TestRecordValidationError:
    """Tests for RecordValidationError."""

    def test_all_details(self):
        error = RecordValidationError(
            "Field 'soh' outside valid range",
            field="soh",
            value=200,
            expected_range=(0, 150),
            row_number=4,
        )
        assert isinstance(error, EVStatsError)
        assert error.details == {"field": "soh", "value": 200, "expected_range": (0, 150), "row_number": 4}

    def test_omits_unset_details(self):
        error = RecordValidationError("Missing required field 'date'", field="date")
        assert error.details == {"field": "date"}
        assert error.value is None

    def test_falsy_value_is_kept(self):
        error = RecordValidationError("Bad", field="distance_km", value=0, row_number=0)
        assert error.details["value"] == 0
        assert error.details["row_number"] == 0


class TestModelTrainingError:
    """Tests for ModelTrainingError."""

    def test_details(self):
        error = ModelTrainingError("SoH regression diverged", model="soh", samples=12)
        assert error.details == {"model": "soh", "samples": 12}
        assert "soh" in str(error)


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_config_key(self):
        error = ConfigurationError("Unknown timezone: Mars/Olympus", config_key="TIMEZONE")
        assert error.config_key == "TIMEZONE"
        assert error.details == {"config_key": "TIMEZONE"}
