from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query

from cleanops.application import get_job_service
from cleanops.core.errors import OperationsError, http_status_for

router = APIRouter(prefix="/employees", tags=["employees"])


@router.post("", status_code=201)
async def create_employee(payload: dict) -> dict:
    service = get_job_service()
    try:
        employee = service.create_employee(payload)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return asdict(employee)


@router.get("")
async def list_employees(role: str | None = Query(default=None)) -> dict:
    service = get_job_service()
    return {"items": [asdict(employee) for employee in service.list_employees(role)]}


@router.get("/{employee_id}")
async def get_employee(employee_id: str) -> dict:
    service = get_job_service()
    try:
        employee = service.get_employee(employee_id)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return asdict(employee)


@router.put("/{employee_id}")
async def update_employee(employee_id: str, payload: dict) -> dict:
    service = get_job_service()
    try:
        employee = service.update_employee(employee_id, payload)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return asdict(employee)


@router.delete("/{employee_id}")
async def delete_employee(employee_id: str) -> dict:
    service = get_job_service()
    try:
        service.delete_employee(employee_id)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
    return {"employee_id": employee_id, "deleted": True}
