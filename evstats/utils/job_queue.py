"""
Job Queue Infrastructure for EVStats.

Uses Redis Queue (RQ) for background model training, so API requests
never block on a fit.

Start a worker with:
    rq worker ev-models --url redis://localhost:6379/1
"""

import logging
from typing import Any, Callable, Dict, Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from evstats.config import Config

logger = logging.getLogger(__name__)


# Global Redis connection
_redis_conn: Optional[Redis] = None


def get_redis_connection() -> Redis:
    """
    Get or create the Redis connection for the job queue.

    The queue lives in its own Redis DB (Config.REDIS_QUEUE_DB).
    """
    global _redis_conn

    if _redis_conn is None:
        redis_url = Config.REDIS_URL
        if redis_url.endswith("/0"):
            redis_url = f"{redis_url[:-2]}/{Config.REDIS_QUEUE_DB}"
        elif not redis_url.endswith(f"/{Config.REDIS_QUEUE_DB}"):
            redis_url = f"{redis_url.rstrip('/')}/{Config.REDIS_QUEUE_DB}"

        _redis_conn = Redis.from_url(redis_url, decode_responses=False)
        logger.info(f"Connected to Redis for job queue: {redis_url}")

    return _redis_conn


def get_job_queue(queue_name: str = Config.TRAINING_QUEUE) -> Queue:
    """Get the RQ queue (default: the model training queue)."""
    return Queue(queue_name, connection=get_redis_connection())


def enqueue_job(
    func: Callable,
    *args,
    queue_name: str = Config.TRAINING_QUEUE,
    job_timeout: int = Config.TRAINING_JOB_TIMEOUT,
    retry: Optional[Retry] = None,
    job_id: Optional[str] = None,
    **kwargs,
) -> Job:
    """
    Enqueue a background job.

    Args:
        func: The function to execute
        *args: Positional arguments for the function
        queue_name: Queue to use
        job_timeout: Timeout in seconds
        retry: Retry configuration (default: no retry)
        job_id: Custom job ID (default: auto-generated)
        **kwargs: Keyword arguments for the function

    Returns:
        RQ Job instance

    Example:
        >>> from evstats.jobs import train_range_job
        >>> job = enqueue_job(train_range_job, {"trips": trips, "settings": settings})
    """
    queue = get_job_queue(queue_name)

    job = queue.enqueue(
        func,
        *args,
        **kwargs,
        job_timeout=job_timeout,
        retry=retry,
        job_id=job_id,
    )

    logger.info(f"Enqueued job {job.id} on queue '{queue_name}': {func.__module__}.{func.__name__}")
    return job


def get_job_status(job_id: str) -> Optional[Dict[str, Any]]:
    """
    Get status of a job.

    Returns:
        Dict with job status information, or None if job not found
    """
    try:
        job = Job.fetch(job_id, connection=get_redis_connection())
        return {
            "id": job.id,
            "status": job.get_status(),
            "result": job.return_value(),
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "started_at": job.started_at.isoformat() if job.started_at else None,
            "ended_at": job.ended_at.isoformat() if job.ended_at else None,
            "exc_info": job.exc_info,
        }
    except Exception as e:
        logger.warning(f"Failed to fetch job {job_id}: {e}")
        return None


def cancel_job(job_id: str) -> bool:
    """
    Cancel a queued job.

    Returns:
        True if job was canceled, False otherwise
    """
    try:
        job = Job.fetch(job_id, connection=get_redis_connection())
        job.cancel()
        logger.info(f"Canceled job {job_id}")
        return True
    except Exception as e:
        logger.warning(f"Failed to cancel job {job_id}: {e}")
        return False
