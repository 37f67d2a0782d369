"""Domain entities for cleaning jobs and the work derived from them."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Job:
    """One scheduled cleaning engagement."""

    job_id: str
    customer_name: str
    phone: str
    region: str
    date: date
    price: Decimal
    email: str | None = None
    address: str | None = None
    city: str | None = None
    time: str | None = None
    areas: str | None = None
    work_type: str | None = None
    est_time: str | None = None
    notes: str | None = None
    assigned_employee: str | None = None
    status: str = "Upcoming"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Task:
    """Actionable unit of work for the cleaner assigned to a job."""

    task_id: str
    job_id: str
    title: str
    assigned_to: str
    due_date: date
    description: str | None = None
    priority: str = "Medium"
    status: str = "Pending"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Employee:
    employee_id: str
    name: str
    phone: str
    role: str
    region: str
    email: str | None = None
    status: str = "Active"
    notes: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class DashboardStats:
    """Headline counters for the admin dashboard."""

    total_jobs: int
    completed_jobs: int
    today_jobs: int
    total_revenue: Decimal
    active_cleaners: int
