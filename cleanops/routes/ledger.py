from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException

from cleanops.core.errors import OperationsError, http_status_for
from cleanops.core.ledger_reader import read_ledger

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/{year}/{month}")
async def get_monthly_ledger(year: int, month: int) -> dict:
    try:
        return await asyncio.to_thread(read_ledger, year, month)
    except OperationsError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=str(exc)) from exc
