"""Application services."""

from .jobs import JobService, JobUpdate, get_job_service, reset_job_state

__all__ = [
    "JobService",
    "JobUpdate",
    "get_job_service",
    "reset_job_state",
]
