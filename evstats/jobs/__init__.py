"""Background jobs executed by RQ workers."""

from evstats.jobs.training_jobs import train_range_job, train_soh_job

__all__ = ["train_range_job", "train_soh_job"]
