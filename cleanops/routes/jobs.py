from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query

from cleanops.application import JobUpdate, get_job_service
from cleanops.core.errors import OperationsError, http_status_for
from cleanops.domain import Job

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _serialise_job(job: Job) -> dict:
    return asdict(job)


def _serialise_update(update: JobUpdate) -> dict:
    return {
        "job": _serialise_job(update.job),
        "task": asdict(update.task) if update.task else None,
        "ledger": update.ledger.as_dict() if update.ledger else None,
    }


@router.post("", status_code=201)
async def create_job(payload: dict) -> dict:
    service = get_job_service()
    try:
        update = await service.create_job(payload)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return _serialise_update(update)


@router.get("")
async def list_jobs(status: str | None = Query(default=None)) -> dict:
    service = get_job_service()
    try:
        jobs = service.list_jobs(status)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return {"data": [_serialise_job(job) for job in jobs], "meta": {"total": len(jobs)}}


@router.get("/{job_id}")
async def get_job(job_id: str) -> dict:
    service = get_job_service()
    try:
        job = service.get_job(job_id)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return _serialise_job(job)


@router.put("/{job_id}/status")
async def update_job_status(job_id: str, payload: dict) -> dict:
    """Change a job's status; the ledger result is reported but never fails the request."""
    service = get_job_service()
    try:
        update = await service.apply_job_status_transition(job_id, payload.get("status"))
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return {"message": "Status updated", **_serialise_update(update)}


@router.put("/{job_id}/assign")
async def assign_cleaner(job_id: str, payload: dict) -> dict:
    service = get_job_service()
    try:
        update = await service.assign_cleaner(job_id, payload.get("employee_id"))
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return {"message": "Cleaner updated successfully", **_serialise_update(update)}
