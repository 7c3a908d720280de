"""
Custom exceptions for EVStats.

This module provides a hierarchy of exceptions for better error handling
and more informative error messages throughout the application.

Insufficient or sparse data is never an error in the analytics engine:
those paths return neutral defaults. These exceptions cover malformed
input at the ingestion boundary and infrastructure failures.
"""


class EVStatsError(Exception):
    """Base exception for all EVStats errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class RecordValidationError(EVStatsError):
    """A trip, charge or settings payload failed validation."""

    def __init__(
        self,
        message: str,
        field: str = None,
        value=None,
        expected_range: tuple = None,
        row_number: int = None,
    ):
        details = {}
        if field:
            details['field'] = field
        if value is not None:
            details['value'] = value
        if expected_range:
            details['expected_range'] = expected_range
        if row_number is not None:
            details['row_number'] = row_number
        super().__init__(message, details)
        self.field = field
        self.value = value
        self.expected_range = expected_range
        self.row_number = row_number


class ModelTrainingError(EVStatsError):
    """Model training failed for a reason other than insufficient data."""

    def __init__(self, message: str, model: str = None, samples: int = None):
        details = {}
        if model:
            details['model'] = model
        if samples is not None:
            details['samples'] = samples
        super().__init__(message, details)
        self.model = model
        self.samples = samples


class ConfigurationError(EVStatsError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, config_key: str = None):
        details = {}
        if config_key:
            details['config_key'] = config_key
        super().__init__(message, details)
        self.config_key = config_key
