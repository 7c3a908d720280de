"""
Routes module for EVStats Flask blueprints.

Every blueprint is mounted under /api. Errors raised by the services are
mapped to JSON responses here so the route handlers stay linear.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from evstats.exceptions import ModelTrainingError, RecordValidationError
from evstats.routes.battery import battery_bp
from evstats.routes.charging import charging_bp
from evstats.routes.health import health_bp
from evstats.routes.jobs import jobs_bp
from evstats.routes.range import range_bp
from evstats.utils.error_codes import ErrorCode, StructuredError, code_for_validation_error

logger = logging.getLogger(__name__)

__all__ = [
    "range_bp",
    "battery_bp",
    "charging_bp",
    "health_bp",
    "jobs_bp",
    "register_blueprints",
]


def handle_validation_error(e: RecordValidationError):
    error = StructuredError(code_for_validation_error(e.details), e.message, **e.details)
    logger.warning(f"Rejected request: {error}")
    return jsonify(error.to_response()), 400


def handle_training_error(e: ModelTrainingError):
    error = StructuredError(ErrorCode.E400_MODEL_TRAINING_FAILED, e.message, e, **e.details)
    logger.error(f"Model training failed: {error.to_dict()}")
    return jsonify(error.to_response()), 500


def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    logger.error(f"Unhandled error: {e}", exc_info=True)
    error = StructuredError(ErrorCode.E500_INTERNAL_SERVER_ERROR, "Internal server error", e)
    return jsonify(error.to_response()), 500


def register_blueprints(app):
    """Register all blueprints and error handlers with the Flask app."""
    app.register_blueprint(range_bp, url_prefix="/api")
    app.register_blueprint(battery_bp, url_prefix="/api")
    app.register_blueprint(charging_bp, url_prefix="/api")
    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(jobs_bp, url_prefix="/api")

    app.register_error_handler(RecordValidationError, handle_validation_error)
    app.register_error_handler(ModelTrainingError, handle_training_error)
    app.register_error_handler(Exception, handle_unexpected_error)
