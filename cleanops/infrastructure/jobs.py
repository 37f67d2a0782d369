"""Infrastructure layer for job, task and employee persistence."""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Protocol

from cleanops.domain import Employee, Job, Task


class JobRepository(Protocol):
    """Persistence contract for the operational records."""

    def next_id(self, kind: str) -> str: ...

    def find_job_by_id(self, job_id: str) -> Job | None: ...

    def save_job(self, job: Job) -> Job: ...

    def list_jobs(self, status: str | None = None) -> list[Job]: ...

    def find_task_by_id(self, task_id: str) -> Task | None: ...

    def find_task_by_job_id(self, job_id: str) -> Task | None: ...

    def create_task(self, task: Task) -> Task: ...

    def save_task(self, task: Task) -> Task: ...

    def list_tasks(self, due_date: date | None = None, assigned_to: str | None = None) -> list[Task]: ...

    def find_employee_by_id(self, employee_id: str) -> Employee | None: ...

    def create_employee(self, employee: Employee) -> Employee: ...

    def save_employee(self, employee: Employee) -> Employee: ...

    def delete_employee(self, employee_id: str) -> bool: ...

    def list_employees(self, role: str | None = None) -> list[Employee]: ...

    def reset(self) -> None: ...


class InMemoryJobRepository:
    """Simple in-memory repository for fast iteration and tests.

    Records are copied on the way in and out so callers only observe changes
    they have explicitly saved, as they would with a document store.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._tasks: dict[str, Task] = {}
        self._employees: dict[str, Employee] = {}
        self._counters: dict[str, int] = {}

    def next_id(self, kind: str) -> str:
        self._counters[kind] = self._counters.get(kind, 0) + 1
        return f"{kind}-{self._counters[kind]:05d}"

    # ------------------------------------------------------------------
    # jobs
    # ------------------------------------------------------------------
    def find_job_by_id(self, job_id: str) -> Job | None:
        job = self._jobs.get(job_id)
        return replace(job) if job else None

    def save_job(self, job: Job) -> Job:
        self._jobs[job.job_id] = replace(job)
        return job

    def list_jobs(self, status: str | None = None) -> list[Job]:
        jobs = [replace(job) for job in self._jobs.values() if status is None or job.status == status]
        jobs.sort(key=lambda item: item.created_at, reverse=True)
        return jobs

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------
    def find_task_by_id(self, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    def find_task_by_job_id(self, job_id: str) -> Task | None:
        for task in self._tasks.values():
            if task.job_id == job_id:
                return replace(task)
        return None

    def create_task(self, task: Task) -> Task:
        if self.find_task_by_job_id(task.job_id) is not None:
            raise ValueError(f"job {task.job_id} already has a task")
        self._tasks[task.task_id] = replace(task)
        return task

    def save_task(self, task: Task) -> Task:
        self._tasks[task.task_id] = replace(task)
        return task

    def list_tasks(self, due_date: date | None = None, assigned_to: str | None = None) -> list[Task]:
        tasks = [
            replace(task)
            for task in self._tasks.values()
            if (due_date is None or task.due_date == due_date)
            and (assigned_to is None or task.assigned_to == assigned_to)
        ]
        tasks.sort(key=lambda item: item.created_at)
        return tasks

    # ------------------------------------------------------------------
    # employees
    # ------------------------------------------------------------------
    def find_employee_by_id(self, employee_id: str) -> Employee | None:
        employee = self._employees.get(employee_id)
        return replace(employee) if employee else None

    def create_employee(self, employee: Employee) -> Employee:
        self._employees[employee.employee_id] = replace(employee)
        return employee

    def save_employee(self, employee: Employee) -> Employee:
        self._employees[employee.employee_id] = replace(employee)
        return employee

    def delete_employee(self, employee_id: str) -> bool:
        return self._employees.pop(employee_id, None) is not None

    def list_employees(self, role: str | None = None) -> list[Employee]:
        employees = [replace(item) for item in self._employees.values() if role is None or item.role == role]
        employees.sort(key=lambda item: item.created_at, reverse=True)
        return employees

    def reset(self) -> None:
        self._jobs.clear()
        self._tasks.clear()
        self._employees.clear()
        self._counters.clear()
