from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

Region = Literal["Sydney", "Melbourne", "Adelaide", "Perth", "Brisbane"]
JobStatus = Literal["Upcoming", "Completed", "Redo", "Cancelled"]
TaskStatus = Literal["Pending", "In Progress", "Completed", "Redo", "Cancelled"]
TaskPriority = Literal["Low", "Medium", "High"]
EmployeeRole = Literal["Cleaner", "Manager", "HR"]
EmployeeStatus = Literal["Active", "Inactive"]

JOB_STATUSES: tuple[str, ...] = get_args(JobStatus)
TASK_STATUSES: tuple[str, ...] = get_args(TaskStatus)

TASK_STATUS_FOR_JOB: dict[str, str] = {
    "Upcoming": "Pending",
    "Completed": "Completed",
    "Redo": "Redo",
    "Cancelled": "Cancelled",
}

# "In Progress" has no job-level counterpart.
JOB_STATUS_FOR_TASK: dict[str, str] = {task: job for job, task in TASK_STATUS_FOR_JOB.items()}


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class JobCreate(BaseModel):
    customer_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None
    address: str | None = None
    city: str | None = None
    region: Region
    date: date
    time: str | None = None
    areas: str | None = None
    work_type: str | None = None
    est_time: str | None = None
    price: Decimal = Field(ge=0)
    assigned_employee: str | None = None
    status: JobStatus = "Upcoming"
    notes: str | None = None

    @field_validator(
        "email", "address", "city", "time", "areas", "work_type", "est_time", "assigned_employee", "notes",
        mode="before",
    )
    @classmethod
    def blank_as_missing(cls, value: object) -> object:
        return _blank_to_none(value)


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None
    role: EmployeeRole
    region: Region
    status: EmployeeStatus = "Active"
    notes: str | None = None


class LedgerRecord(BaseModel):
    """Point-in-time projection of a job as written to the monthly ledger."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    date: date
    region: str | None = None
    customer_name: str = ""
    phone: str = ""
    address: str = ""
    price: Decimal = Decimal("0")
    cleaner_name: str | None = None
    status: str
