"""
Background job routes for EVStats.

Enqueue model training on the RQ worker and poll its status.
"""

import logging

from flask import Blueprint, jsonify
from redis.exceptions import RedisError

from evstats.jobs import train_range_job, train_soh_job
from evstats.routes.payloads import get_json_body
from evstats.utils.error_codes import ErrorCode, StructuredError
from evstats.utils.job_queue import cancel_job, enqueue_job, get_job_status

logger = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__)

TRAINING_JOBS = {
    "range": train_range_job,
    "soh": train_soh_job,
}


@jobs_bp.route("/models/<model>/train", methods=["POST"])
def enqueue_training(model):
    """
    Enqueue background training for "range" or "soh".

    Returns:
        202 {"job_id"}; the payload is validated by the worker
    """
    job_func = TRAINING_JOBS.get(model)
    if job_func is None:
        return jsonify({"error": f"Unknown model '{model}'", "available": sorted(TRAINING_JOBS)}), 404

    payload = get_json_body()
    try:
        job = enqueue_job(job_func, payload)
    except RedisError as e:
        logger.error(f"Failed to enqueue {model} training: {e}")
        error = StructuredError(ErrorCode.E501_QUEUE_UNAVAILABLE, "Job queue unavailable", e, model=model)
        return jsonify(error.to_response()), 503

    return jsonify({"job_id": job.id, "status": "queued"}), 202


@jobs_bp.route("/jobs/<job_id>", methods=["GET"])
def job_status(job_id):
    """Status and result of a background job."""
    status = get_job_status(job_id)
    if status is None:
        error = StructuredError(ErrorCode.E502_JOB_NOT_FOUND, "Job not found", job_id=job_id)
        return jsonify(error.to_response()), 404
    return jsonify(status)


@jobs_bp.route("/jobs/<job_id>", methods=["DELETE"])
def job_cancel(job_id):
    """Cancel a queued job."""
    if not cancel_job(job_id):
        error = StructuredError(ErrorCode.E502_JOB_NOT_FOUND, "Job not found", job_id=job_id)
        return jsonify(error.to_response()), 404
    return jsonify({"job_id": job_id, "status": "canceled"})
