"""Application service layer for the job lifecycle."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from cleanops.core.errors import NotFoundError, ValidationError
from cleanops.core.schema import (
    JOB_STATUS_FOR_TASK,
    JOB_STATUSES,
    TASK_STATUS_FOR_JOB,
    TASK_STATUSES,
    EmployeeCreate,
    JobCreate,
    LedgerRecord,
)
from cleanops.domain import DashboardStats, Employee, Job, Task
from cleanops.infrastructure import InMemoryJobRepository, JobRepository, get_logger
from cleanops.workers.ledger import LedgerOutcome, LedgerWorker, get_ledger_worker

logger = get_logger(__name__)


@dataclass
class JobUpdate:
    """Result of a job mutation.

    ``ledger`` is the outcome of the spreadsheet write, kept apart from the
    job itself: it is ``None`` when the write was scheduled in the background
    and it never reflects a rollback of ``job`` or ``task``.
    """

    job: Job
    task: Task | None = None
    ledger: LedgerOutcome | None = None


def _validation_message(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobService:
    """Coordinates job, task and ledger use cases."""

    def __init__(self, repository: JobRepository, ledger: LedgerWorker) -> None:
        self._repository = repository
        self._ledger = ledger

    @property
    def ledger(self) -> LedgerWorker:
        return self._ledger

    # ------------------------------------------------------------------
    # employees
    # ------------------------------------------------------------------
    def create_employee(self, payload: dict) -> Employee:
        try:
            data = EmployeeCreate(**payload)
        except PydanticValidationError as exc:
            raise ValidationError(_validation_message(exc)) from exc
        employee = Employee(employee_id=self._repository.next_id("emp"), **data.model_dump())
        return self._repository.create_employee(employee)

    def get_employee(self, employee_id: str) -> Employee:
        employee = self._repository.find_employee_by_id(employee_id)
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    def list_employees(self, role: str | None = None) -> list[Employee]:
        return self._repository.list_employees(role)

    def update_employee(self, employee_id: str, payload: dict) -> Employee:
        """Apply a partial update; the merged record is validated as a whole."""

        employee = self.get_employee(employee_id)
        current = {name: getattr(employee, name) for name in EmployeeCreate.model_fields}
        try:
            data = EmployeeCreate(**{**current, **payload})
        except PydanticValidationError as exc:
            raise ValidationError(_validation_message(exc)) from exc
        updated = replace(employee, **data.model_dump(), updated_at=_now())
        logger.info("Employee updated", employee_id=employee_id)
        return self._repository.save_employee(updated)

    def delete_employee(self, employee_id: str) -> None:
        if not self._repository.delete_employee(employee_id):
            raise NotFoundError(f"Employee {employee_id} not found")
        logger.info("Employee deleted", employee_id=employee_id)

    # ------------------------------------------------------------------
    # dashboard
    # ------------------------------------------------------------------
    def dashboard_stats(self, today: date | None = None) -> DashboardStats:
        """Counters for the admin dashboard.

        ``today_jobs`` counts jobs created on ``today`` (UTC), and revenue only
        includes completed jobs.
        """

        today = today or _now().date()
        jobs = self._repository.list_jobs()
        completed = [job for job in jobs if job.status == "Completed"]
        cleaners = self._repository.list_employees("Cleaner")
        return DashboardStats(
            total_jobs=len(jobs),
            completed_jobs=len(completed),
            today_jobs=sum(1 for job in jobs if job.created_at.date() == today),
            total_revenue=sum((job.price for job in completed), Decimal("0")),
            active_cleaners=sum(1 for employee in cleaners if employee.status == "Active"),
        )

    # ------------------------------------------------------------------
    # jobs
    # ------------------------------------------------------------------
    def get_job(self, job_id: str) -> Job:
        job = self._repository.find_job_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self, status: str | None = None) -> list[Job]:
        if status is not None and status not in JOB_STATUSES:
            raise ValidationError(f"Invalid status: {status!r}")
        return self._repository.list_jobs(status)

    async def create_job(self, payload: dict, *, job_id: str | None = None) -> JobUpdate:
        try:
            data = JobCreate(**payload)
        except PydanticValidationError as exc:
            raise ValidationError(_validation_message(exc)) from exc

        if data.assigned_employee:
            self.get_employee(data.assigned_employee)
        if job_id is not None and self._repository.find_job_by_id(job_id) is not None:
            raise ValidationError(f"Job {job_id} already exists")

        job = Job(job_id=job_id or self._repository.next_id("job"), **data.model_dump())
        self._repository.save_job(job)

        task = None
        if job.assigned_employee:
            task = self._create_task(job, job.assigned_employee)

        logger.info("Job created", job_id=job.job_id, region=job.region, date=job.date.isoformat())
        ledger = await self._sync_ledger(job)
        return JobUpdate(job=job, task=task, ledger=ledger)

    async def apply_job_status_transition(self, job_id: str, status: str | None) -> JobUpdate:
        """Move a job to ``status``, mirror it onto its task and record it in the ledger.

        Every transition between the four job statuses is allowed so operators
        can correct mistakes (e.g. ``Cancelled`` back to ``Upcoming``).
        """
        if status not in JOB_STATUSES:
            raise ValidationError(f"Invalid status: {status!r}")

        job = self.get_job(job_id)
        previous = job.status
        job.status = status
        job.updated_at = _now()
        self._repository.save_job(job)

        task = self._repository.find_task_by_job_id(job.job_id)
        if task is not None:
            task.status = TASK_STATUS_FOR_JOB[status]
            task.updated_at = _now()
            self._repository.save_task(task)

        logger.info(
            "Job status changed",
            job_id=job.job_id,
            from_status=previous,
            to_status=status,
            task_id=task.task_id if task else None,
        )
        ledger = await self._sync_ledger(job)
        return JobUpdate(job=job, task=task, ledger=ledger)

    async def assign_cleaner(self, job_id: str, employee_id: str | None) -> JobUpdate:
        if not employee_id:
            raise ValidationError("Employee ID is required")

        job = self.get_job(job_id)
        self.get_employee(employee_id)

        job.assigned_employee = employee_id
        job.updated_at = _now()
        self._repository.save_job(job)

        task = self._repository.find_task_by_job_id(job.job_id)
        if task is not None:
            task.assigned_to = employee_id
            task.updated_at = _now()
            self._repository.save_task(task)
        else:
            task = self._create_task(job, employee_id)

        logger.info("Cleaner assigned", job_id=job.job_id, employee_id=employee_id, task_id=task.task_id)
        ledger = await self._sync_ledger(job)
        return JobUpdate(job=job, task=task, ledger=ledger)

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------
    def list_tasks(self, due_date: date | None = None, assigned_to: str | None = None) -> list[Task]:
        return self._repository.list_tasks(due_date, assigned_to)

    async def update_task_status(self, task_id: str, status: str | None) -> JobUpdate:
        """Change a task's status by transitioning the job it belongs to."""

        if status not in TASK_STATUSES:
            raise ValidationError(f"Invalid task status: {status!r}")
        task = self._repository.find_task_by_id(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        job_status = JOB_STATUS_FOR_TASK.get(status)
        if job_status is None:
            raise ValidationError(f"Task status {status!r} cannot be set independently of its job")
        return await self.apply_job_status_transition(task.job_id, job_status)

    def _create_task(self, job: Job, employee_id: str) -> Task:
        location = ", ".join(part for part in (job.address, job.city) if part)
        task = Task(
            task_id=self._repository.next_id("task"),
            job_id=job.job_id,
            title=f"Clean job for {job.customer_name}",
            description=f"Cleaning at {location}" if location else None,
            assigned_to=employee_id,
            due_date=job.date,
            status=TASK_STATUS_FOR_JOB[job.status],
        )
        return self._repository.create_task(task)

    # ------------------------------------------------------------------
    # ledger
    # ------------------------------------------------------------------
    def ledger_record_for(self, job: Job) -> LedgerRecord:
        cleaner_name = None
        if job.assigned_employee:
            employee = self._repository.find_employee_by_id(job.assigned_employee)
            cleaner_name = employee.name if employee else None
        return LedgerRecord(
            job_id=job.job_id,
            date=job.date,
            region=job.region,
            customer_name=job.customer_name,
            phone=job.phone,
            address=job.address or "",
            price=job.price,
            cleaner_name=cleaner_name,
            status=job.status,
        )

    async def _sync_ledger(self, job: Job) -> LedgerOutcome | None:
        record = self.ledger_record_for(job)
        if (os.getenv("LEDGER_SYNC_MODE") or "inline").lower() == "background":
            self._ledger.submit(record)
            return None
        return await self._ledger.upsert_row(record)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()
        self._ledger.reset()


_repository = InMemoryJobRepository()
_service = JobService(_repository, get_ledger_worker())


def get_job_service() -> JobService:
    """Return the singleton job service for the process."""

    return _service


def reset_job_state() -> None:
    """Reset the in-memory store and ledger locks (used in tests)."""

    _service.reset()
