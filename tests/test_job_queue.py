"""
Tests for job queue infrastructure.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from evstats.utils import job_queue


@pytest.fixture(autouse=True)
def reset_connection():
    """Each test starts without a cached Redis connection."""
    job_queue._redis_conn = None
    yield
    job_queue._redis_conn = None


class TestGetRedisConnection:
    """Tests for get_redis_connection function."""

    def test_creates_connection_on_queue_db(self):
        with patch.object(job_queue, "Config") as mock_config:
            mock_config.REDIS_URL = "redis://localhost:6379/0"
            mock_config.REDIS_QUEUE_DB = 1

            with patch.object(job_queue.Redis, "from_url") as mock_redis:
                mock_redis.return_value = MagicMock()

                conn = job_queue.get_redis_connection()

                assert conn is not None
                mock_redis.assert_called_once_with("redis://localhost:6379/1", decode_responses=False)

    def test_returns_cached_instance(self):
        mock_conn = MagicMock()
        job_queue._redis_conn = mock_conn

        with patch.object(job_queue.Redis, "from_url") as mock_redis:
            assert job_queue.get_redis_connection() is mock_conn
            mock_redis.assert_not_called()

    def test_handles_url_without_db(self):
        with patch.object(job_queue, "Config") as mock_config:
            mock_config.REDIS_URL = "redis://localhost:6379"
            mock_config.REDIS_QUEUE_DB = 2

            with patch.object(job_queue.Redis, "from_url") as mock_redis:
                job_queue.get_redis_connection()

                assert mock_redis.call_args[0][0] == "redis://localhost:6379/2"


class TestGetJobQueue:
    """Tests for get_job_queue function."""

    def test_returns_queue(self):
        with patch.object(job_queue, "get_redis_connection") as mock_get_conn:
            mock_conn = MagicMock()
            mock_get_conn.return_value = mock_conn

            with patch.object(job_queue, "Queue") as mock_queue_class:
                result = job_queue.get_job_queue("ev-models")

                mock_queue_class.assert_called_once_with("ev-models", connection=mock_conn)
                assert result is mock_queue_class.return_value


class TestEnqueueJob:
    """Tests for enqueue_job function."""

    def test_enqueue_with_defaults(self):
        def train_task(payload):
            return payload

        with patch.object(job_queue, "get_job_queue") as mock_get_queue:
            mock_queue = mock_get_queue.return_value
            mock_queue.enqueue.return_value = MagicMock(id="job-1")

            job = job_queue.enqueue_job(train_task, {"trips": []})

            assert job.id == "job-1"
            mock_queue.enqueue.assert_called_once_with(
                train_task,
                {"trips": []},
                job_timeout=job_queue.Config.TRAINING_JOB_TIMEOUT,
                retry=None,
                job_id=None,
            )

    def test_enqueue_on_named_queue(self):
        def train_task(payload):
            return payload

        with patch.object(job_queue, "get_job_queue") as mock_get_queue:
            job_queue.enqueue_job(train_task, {}, queue_name="urgent", job_id="fixed")

            mock_get_queue.assert_called_once_with("urgent")
            assert mock_get_queue.return_value.enqueue.call_args.kwargs["job_id"] == "fixed"


class TestGetJobStatus:
    """Tests for get_job_status function."""

    def test_finished_job(self):
        mock_job = MagicMock()
        mock_job.id = "job-1"
        mock_job.get_status.return_value = "finished"
        mock_job.return_value = MagicMock(return_value={"status": "success"})
        mock_job.created_at = datetime(2024, 2, 5, 12, 0)
        mock_job.started_at = datetime(2024, 2, 5, 12, 1)
        mock_job.ended_at = None
        mock_job.exc_info = None

        with patch.object(job_queue, "get_redis_connection"), \
                patch.object(job_queue.Job, "fetch", return_value=mock_job):
            status = job_queue.get_job_status("job-1")

        assert status["status"] == "finished"
        assert status["result"] == {"status": "success"}
        assert status["created_at"] == "2024-02-05T12:00:00"
        assert status["ended_at"] is None

    def test_unknown_job(self):
        with patch.object(job_queue, "get_redis_connection"), \
                patch.object(job_queue.Job, "fetch", side_effect=Exception("No such job")):
            assert job_queue.get_job_status("missing") is None


class TestCancelJob:
    """Tests for cancel_job function."""

    def test_cancel(self):
        mock_job = MagicMock()
        with patch.object(job_queue, "get_redis_connection"), \
                patch.object(job_queue.Job, "fetch", return_value=mock_job):
            assert job_queue.cancel_job("job-1") is True
        mock_job.cancel.assert_called_once()

    def test_cancel_unknown_job(self):
        with patch.object(job_queue, "get_redis_connection"), \
                patch.object(job_queue.Job, "fetch", side_effect=Exception("No such job")):
            assert job_queue.cancel_job("missing") is False
