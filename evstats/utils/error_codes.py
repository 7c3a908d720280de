"""
Error Code Taxonomy for EVStats

Structured error codes returned by the API and attached to log lines.

Error Code Format:
- E001-E099: Validation errors (bad input records)
- E400-E499: Analytics errors (training, scheduling, health checks)
- E500-E599: System errors (queue, cache, unhandled)
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """High-level error categories for grouping and alerting."""

    VALIDATION = "validation"
    ANALYTICS = "analytics"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """Structured error codes with consistent format."""

    # Validation Errors (E001-E099)
    E001_INVALID_PAYLOAD = "E001"  # Body is not a JSON object
    E002_MISSING_REQUIRED_FIELD = "E002"  # Required record field missing
    E003_INVALID_DATA_TYPE = "E003"  # Field is not a number/string as expected
    E004_OUT_OF_RANGE = "E004"  # Value outside acceptable range

    # Analytics Errors (E400-E499)
    E400_MODEL_TRAINING_FAILED = "E400"  # Regression diverged

    # System Errors (E500-E599)
    E500_INTERNAL_SERVER_ERROR = "E500"  # Unhandled internal error
    E501_QUEUE_UNAVAILABLE = "E501"  # Redis/RQ unreachable
    E502_JOB_NOT_FOUND = "E502"  # Unknown background job id


ERROR_METADATA = {
    ErrorCode.E001_INVALID_PAYLOAD: {
        "category": ErrorCategory.VALIDATION,
        "description": "Request body is not a JSON object",
        "severity": "warning",
        "alert": False,
    },
    ErrorCode.E002_MISSING_REQUIRED_FIELD: {
        "category": ErrorCategory.VALIDATION,
        "description": "Required field missing in record",
        "severity": "warning",
        "alert": False,
    },
    ErrorCode.E003_INVALID_DATA_TYPE: {
        "category": ErrorCategory.VALIDATION,
        "description": "Field has wrong data type",
        "severity": "warning",
        "alert": False,
    },
    ErrorCode.E004_OUT_OF_RANGE: {
        "category": ErrorCategory.VALIDATION,
        "description": "Value outside acceptable range",
        "severity": "warning",
        "alert": False,
    },
    ErrorCode.E400_MODEL_TRAINING_FAILED: {
        "category": ErrorCategory.ANALYTICS,
        "description": "Model training diverged",
        "severity": "error",
        "alert": True,
    },
    ErrorCode.E500_INTERNAL_SERVER_ERROR: {
        "category": ErrorCategory.SYSTEM,
        "description": "Unhandled internal error",
        "severity": "critical",
        "alert": True,
    },
    ErrorCode.E501_QUEUE_UNAVAILABLE: {
        "category": ErrorCategory.SYSTEM,
        "description": "Job queue unavailable",
        "severity": "critical",
        "alert": True,
    },
    ErrorCode.E502_JOB_NOT_FOUND: {
        "category": ErrorCategory.SYSTEM,
        "description": "Background job not found",
        "severity": "warning",
        "alert": False,
    },
}


def get_error_metadata(error_code: ErrorCode) -> dict:
    """Get metadata for an error code."""
    return ERROR_METADATA.get(
        error_code,
        {
            "category": ErrorCategory.SYSTEM,
            "description": "Unknown error",
            "severity": "error",
            "alert": True,
        },
    )


def code_for_validation_error(details: dict) -> ErrorCode:
    """Map RecordValidationError details onto a validation error code."""
    if "expected_range" in details:
        return ErrorCode.E004_OUT_OF_RANGE
    if "field" in details and details.get("value") is None:
        return ErrorCode.E002_MISSING_REQUIRED_FIELD
    if "field" in details:
        return ErrorCode.E003_INVALID_DATA_TYPE
    return ErrorCode.E001_INVALID_PAYLOAD


class StructuredError:
    """Structured error with code, category, and metadata."""

    def __init__(self, code: ErrorCode, message: str, exception: Optional[Exception] = None, **context):
        self.code = code
        self.message = message
        self.exception = exception
        self.context = context
        self.metadata = get_error_metadata(code)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        error_dict = {
            "code": self.code.value,
            "category": self.metadata["category"].value,
            "message": self.message,
            "severity": self.metadata["severity"],
            "alert": self.metadata["alert"],
        }

        if self.exception:
            error_dict["exception_type"] = type(self.exception).__name__
            error_dict["exception_message"] = str(self.exception)

        if self.context:
            error_dict["context"] = self.context

        return error_dict

    def to_response(self) -> dict:
        """API error body: {error, code, details}."""
        return {"error": self.message, "code": self.code.value, "details": self.context}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"
