from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter

from cleanops.application import get_job_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
async def dashboard_stats() -> dict:
    return asdict(get_job_service().dashboard_stats())
