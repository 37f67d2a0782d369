from __future__ import annotations

import asyncio
import os
from dataclasses import asdict, dataclass
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import Any, Callable

from cleanops.core.errors import StorageError
from cleanops.core.exports import ledger_path_for
from cleanops.core.locks import FileLockRegistry
from cleanops.core.regions import LEDGER_SHEETS, resolve_sheet_name
from cleanops.core.schema import LedgerRecord
from cleanops.core.weeks import week_label
from cleanops.infrastructure import get_logger, workbooks

logger = get_logger(__name__)

LEDGER_HEADER = ["Job ID", "Date", "Week", "Customer", "Phone", "Address", "Price", "Cleaner", "Status"]
COLUMN_WIDTHS = [26, 14, 10, 22, 16, 32, 12, 22, 14]
UNASSIGNED = "Unassigned"
DEFAULT_WRITE_TIMEOUT = 30.0


@dataclass
class LedgerOutcome:
    job_id: str
    status: str
    file: str | None = None
    sheet: str | None = None
    row: int | None = None
    action: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _write_timeout() -> float | None:
    raw = os.getenv("LEDGER_WRITE_TIMEOUT")
    if not raw:
        return DEFAULT_WRITE_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_WRITE_TIMEOUT
    return value if value > 0 else None


class LedgerWorker:
    """Keeps the monthly ledger workbooks in step with job snapshots.

    Every upsert for a given workbook runs under that file's lock, and the
    blocking openpyxl load/save happens in a worker thread.
    """

    def __init__(
        self,
        locks: FileLockRegistry | None = None,
        router: Callable[[object], str] = resolve_sheet_name,
    ) -> None:
        self._locks = locks or FileLockRegistry()
        self._router = router
        self._pending: dict[asyncio.Task[LedgerOutcome], None] = {}
        self._writes: set[asyncio.Task[LedgerOutcome]] = set()

    @property
    def locks(self) -> FileLockRegistry:
        return self._locks

    @staticmethod
    def build_row(record: LedgerRecord) -> list[Any]:
        price = record.price if isinstance(record.price, Decimal) else Decimal(str(record.price))
        return [
            record.job_id,
            record.date.strftime("%d/%m/%Y"),
            week_label(record.date),
            record.customer_name,
            record.phone,
            record.address,
            float(price),
            record.cleaner_name or UNASSIGNED,
            record.status,
        ]

    @staticmethod
    def _find_row(sheet, job_id: str) -> int | None:
        for (cell,) in sheet.iter_rows(min_row=2, max_col=1):
            if cell.value is not None and str(cell.value).strip() == job_id:
                return cell.row
        return None

    async def upsert_row(self, record: LedgerRecord) -> LedgerOutcome:
        """Write ``record`` into its monthly workbook; never raises.

        The write timeout covers both the wait for the file lock and the write
        itself. A write that overruns is reported as ``timeout`` but keeps the
        file lock until its thread finishes, so the next writer never loads a
        half-saved file.
        """

        path = ledger_path_for(record.date)
        timeout = _write_timeout()
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        try:
            lock = await self._locks.acquire(path, timeout=timeout)
        except asyncio.TimeoutError:
            return self._timed_out(record, path, timeout, "lock timeout")

        write = loop.create_task(asyncio.to_thread(self._write, record, path))
        write.add_done_callback(lambda _: lock.release())
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)

        remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
        try:
            return await asyncio.wait_for(asyncio.shield(write), remaining)
        except asyncio.TimeoutError:
            write.add_done_callback(partial(self._log_late_write, record.job_id, path.name))
            return self._timed_out(record, path, timeout, "write timeout")
        except StorageError as exc:
            logger.error(
                "Ledger write failed",
                job_id=record.job_id,
                file=path.name,
                error=str(exc),
                exc_info=True,
            )
            return LedgerOutcome(job_id=record.job_id, status="failed", file=path.name, error=str(exc))
        except Exception as exc:  # pragma: no cover - logged, never raised to the caller
            logger.error(
                "Unexpected ledger write failure",
                job_id=record.job_id,
                file=path.name,
                error=str(exc),
                exc_info=True,
            )
            return LedgerOutcome(job_id=record.job_id, status="failed", file=path.name, error=str(exc))

    @staticmethod
    def _timed_out(record: LedgerRecord, path: Path, timeout: float | None, reason: str) -> LedgerOutcome:
        logger.error(
            "Ledger write abandoned after timeout",
            job_id=record.job_id,
            file=path.name,
            timeout=timeout,
            reason=reason,
        )
        return LedgerOutcome(job_id=record.job_id, status="timeout", file=path.name, error=reason)

    @staticmethod
    def _log_late_write(job_id: str, file_name: str, write: asyncio.Task[LedgerOutcome]) -> None:
        if write.cancelled():
            return
        exc = write.exception()
        if exc is not None:
            logger.error("Abandoned ledger write failed", job_id=job_id, file=file_name, error=str(exc))
        else:
            logger.info("Abandoned ledger write finished", job_id=job_id, file=file_name)

    def submit(self, record: LedgerRecord) -> asyncio.Task[LedgerOutcome]:
        """Schedule :meth:`upsert_row` without waiting for it."""

        task = asyncio.get_running_loop().create_task(self.upsert_row(record))
        self._pending[task] = None
        task.add_done_callback(lambda done: self._pending.pop(done, None))
        return task

    async def drain(self) -> list[LedgerOutcome]:
        """Wait for every write scheduled through :meth:`submit`.

        Writes that were reported as timed out are awaited as well, so nothing
        is still touching a workbook when this returns.
        """

        outcomes = list(await asyncio.gather(*self._pending)) if self._pending else []
        if self._writes:
            await asyncio.wait(list(self._writes))
        return outcomes

    def _write(self, record: LedgerRecord, path: Path) -> LedgerOutcome:
        workbook = workbooks.load_or_create(path)
        for name in LEDGER_SHEETS:
            workbooks.ensure_sheet(workbook, name, LEDGER_HEADER, COLUMN_WIDTHS)

        sheet_name = self._router(record.region)
        if sheet_name not in LEDGER_SHEETS:
            logger.warning(
                "Ledger write skipped: no sheet for region",
                job_id=record.job_id,
                region=record.region,
                sheet=sheet_name,
            )
            return LedgerOutcome(job_id=record.job_id, status="skipped", file=path.name, sheet=sheet_name)

        sheet = workbook[sheet_name]
        values = self.build_row(record)
        row_index = self._find_row(sheet, record.job_id)
        if row_index is None:
            sheet.append(values)
            row_index = sheet.max_row
            action = "appended"
        else:
            for column, value in enumerate(values[1:], start=2):
                sheet.cell(row=row_index, column=column, value=value)
            action = "updated"

        workbooks.save(workbook, path)
        logger.info(
            "Ledger row written",
            job_id=record.job_id,
            file=path.name,
            sheet=sheet_name,
            row=row_index,
            action=action,
            status=record.status,
        )
        return LedgerOutcome(
            job_id=record.job_id,
            status="written",
            file=path.name,
            sheet=sheet_name,
            row=row_index,
            action=action,
        )

    def reset(self) -> None:
        self._pending.clear()
        self._writes.clear()
        self._locks.reset()


_worker: LedgerWorker | None = None


def get_ledger_worker() -> LedgerWorker:
    global _worker
    if _worker is None:
        _worker = LedgerWorker()
    return _worker
