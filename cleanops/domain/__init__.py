"""Domain layer definitions."""

from .jobs import DashboardStats, Employee, Job, Task

__all__ = [
    "DashboardStats",
    "Employee",
    "Job",
    "Task",
]
