"""Infrastructure layer exports."""

from .jobs import InMemoryJobRepository, JobRepository
from .observability import get_logger, setup_logging

__all__ = [
    "InMemoryJobRepository",
    "JobRepository",
    "get_logger",
    "setup_logging",
]
