from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, HTTPException, Query

from cleanops.application import get_job_service
from cleanops.core.errors import OperationsError, http_status_for

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(
    due_date: date | None = Query(default=None, alias="date"),
    assigned_to: str | None = Query(default=None),
) -> dict:
    service = get_job_service()
    items = []
    for task in service.list_tasks(due_date, assigned_to):
        record = asdict(task)
        try:
            record["assigned_name"] = service.get_employee(task.assigned_to).name
        except OperationsError:
            record["assigned_name"] = None
        items.append(record)
    return {"items": items}


@router.put("/{task_id}/status")
async def update_task_status(task_id: str, payload: dict) -> dict:
    """Task statuses follow their job, so the change is applied to the job."""
    service = get_job_service()
    try:
        update = await service.update_task_status(task_id, payload.get("status"))
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return {
        "task": asdict(update.task) if update.task else None,
        "job": asdict(update.job),
        "ledger": update.ledger.as_dict() if update.ledger else None,
    }
