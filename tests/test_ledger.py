import asyncio
import sys
import time
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from cleanops.core.errors import StorageError
from cleanops.core.exports import ledger_file_name, ledger_path
from cleanops.core.locks import FileLockRegistry
from cleanops.core.regions import FALLBACK_SHEET, LEDGER_SHEETS, REGIONS, resolve_sheet_name
from cleanops.core.schema import LedgerRecord
from cleanops.core.weeks import week_label, week_of_month
from cleanops.infrastructure import workbooks
from cleanops.workers.ledger import LEDGER_HEADER, LedgerWorker


@pytest.fixture(autouse=True)
def export_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("LEDGER_EXPORT_DIR", str(tmp_path))
    monkeypatch.delenv("LEDGER_FILE_PREFIX", raising=False)
    monkeypatch.delenv("LEDGER_WRITE_TIMEOUT", raising=False)
    return tmp_path


def _record(job_id: str = "J1", **overrides) -> LedgerRecord:
    data = {
        "job_id": job_id,
        "date": date(2026, 2, 10),
        "region": "Sydney",
        "customer_name": "Alice Smith",
        "phone": "0412345678",
        "address": "1 George St",
        "price": Decimal("150"),
        "cleaner_name": None,
        "status": "Upcoming",
    }
    data.update(overrides)
    return LedgerRecord(**data)


def _data_rows(path: Path, sheet: str) -> list[tuple]:
    workbook = load_workbook(path)
    return [row for row in workbook[sheet].iter_rows(min_row=2, values_only=True) if any(row)]


# ----------------------------------------------------------------------
# week labels and region routing
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (date(2026, 2, 10), "Week 2"),
        (date(2026, 2, 1), "Week 1"),
        (date(2026, 3, 7), "Week 1"),
        (date(2026, 3, 8), "Week 2"),
        (date(2025, 11, 1), "Week 1"),
        (date(2025, 11, 2), "Week 2"),
        (date(2025, 11, 30), "Week 6"),
    ],
)
def test_week_label_follows_sunday_start_weeks(value, expected):
    assert week_label(value) == expected


def test_week_label_is_pure_across_input_types():
    assert week_label("2026-02-10") == week_label(date(2026, 2, 10))
    assert week_label(datetime(2026, 2, 10, 23, 59)) == "Week 2"
    assert week_of_month(date(2026, 2, 10)) == week_of_month(date(2026, 2, 10))


def test_resolve_sheet_name_routes_unknown_regions_to_fallback():
    for region in REGIONS:
        assert resolve_sheet_name(region) == region
    assert resolve_sheet_name("Hobart") == FALLBACK_SHEET
    assert resolve_sheet_name("sydney") == FALLBACK_SHEET
    assert resolve_sheet_name(None) == FALLBACK_SHEET
    assert resolve_sheet_name(42) == FALLBACK_SHEET


def test_ledger_file_name_uses_prefix_month_and_year(monkeypatch):
    assert ledger_file_name(2026, 2) == "PhantomCleaning_February_2026.xlsx"
    monkeypatch.setenv("LEDGER_FILE_PREFIX", "Ops")
    assert ledger_file_name(2025, 12) == "Ops_December_2025.xlsx"
    with pytest.raises(ValueError):
        ledger_file_name(2025, 13)


# ----------------------------------------------------------------------
# workbook store
# ----------------------------------------------------------------------
def test_load_or_create_returns_empty_workbook_for_missing_file(tmp_path):
    workbook = workbooks.load_or_create(tmp_path / "missing.xlsx")
    assert workbook.sheetnames == []


def test_load_or_create_rejects_corrupt_file(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a zip archive")
    with pytest.raises(StorageError):
        workbooks.load_or_create(path)
    assert path.read_bytes() == b"not a zip archive"


def test_ensure_sheet_is_idempotent(tmp_path):
    workbook = workbooks.load_or_create(tmp_path / "ledger.xlsx")
    first = workbooks.ensure_sheet(workbook, "Perth", LEDGER_HEADER)
    second = workbooks.ensure_sheet(workbook, "Perth", LEDGER_HEADER)
    assert first is second
    assert workbook.sheetnames == ["Perth"]
    assert first.max_row == 1
    assert [cell.value for cell in first[1]] == LEDGER_HEADER


def test_ensure_sheet_writes_header_into_existing_empty_sheet():
    workbook = Workbook()
    workbook.active.title = "Perth"
    sheet = workbooks.ensure_sheet(workbook, "Perth", LEDGER_HEADER)
    assert [cell.value for cell in sheet[1]] == LEDGER_HEADER


def test_save_replaces_file_without_leaving_temporaries(tmp_path):
    path = tmp_path / "ledger.xlsx"
    workbook = workbooks.load_or_create(path)
    workbooks.ensure_sheet(workbook, "Sydney", LEDGER_HEADER)
    workbooks.save(workbook, path)
    workbooks.save(workbook, path)

    assert sorted(item.name for item in tmp_path.iterdir()) == ["ledger.xlsx"]
    assert load_workbook(path).sheetnames == ["Sydney"]


def test_save_failure_keeps_previous_file(tmp_path, monkeypatch):
    path = tmp_path / "ledger.xlsx"
    workbook = workbooks.load_or_create(path)
    workbooks.ensure_sheet(workbook, "Sydney", LEDGER_HEADER)
    workbooks.save(workbook, path)
    original = path.read_bytes()

    def _fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(workbooks.os, "replace", _fail)
    with pytest.raises(StorageError):
        workbooks.save(workbook, path)

    assert path.read_bytes() == original
    assert sorted(item.name for item in tmp_path.iterdir()) == ["ledger.xlsx"]


def test_save_into_unwritable_location_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied")
    workbook = workbooks.load_or_create(blocker / "ledger.xlsx")
    workbooks.ensure_sheet(workbook, "Sydney", LEDGER_HEADER)

    with pytest.raises(StorageError):
        workbooks.save(workbook, blocker / "ledger.xlsx")

    assert blocker.read_text() == "occupied"


# ----------------------------------------------------------------------
# upsert engine
# ----------------------------------------------------------------------
def test_upsert_creates_monthly_workbook_with_every_sheet(export_dir):
    worker = LedgerWorker()
    outcome = asyncio.run(worker.upsert_row(_record()))

    path = export_dir / "PhantomCleaning_February_2026.xlsx"
    assert outcome.status == "written"
    assert outcome.action == "appended"
    assert outcome.sheet == "Sydney"
    assert outcome.file == path.name

    workbook = load_workbook(path)
    assert workbook.sheetnames == list(LEDGER_SHEETS)
    for name in LEDGER_SHEETS:
        assert [cell.value for cell in workbook[name][1]] == LEDGER_HEADER

    rows = _data_rows(path, "Sydney")
    assert len(rows) == 1
    job_id, written_date, week, customer, phone, address, price, cleaner, status = rows[0]
    assert job_id == "J1"
    assert written_date == "10/02/2026"
    assert week == "Week 2"
    assert (customer, phone, address) == ("Alice Smith", "0412345678", "1 George St")
    assert price == 150
    assert cleaner == "Unassigned"
    assert status == "Upcoming"


def test_upsert_twice_keeps_a_single_row():
    worker = LedgerWorker()
    asyncio.run(worker.upsert_row(_record()))
    second = asyncio.run(worker.upsert_row(_record()))

    assert second.action == "updated"
    assert second.row == 2
    assert len(_data_rows(ledger_path(2026, 2), "Sydney")) == 1


def test_upsert_overwrites_row_in_place():
    worker = LedgerWorker()

    async def scenario():
        await worker.upsert_row(_record("J1"))
        await worker.upsert_row(_record("J9", customer_name="Bob"))
        return await worker.upsert_row(_record("J1", status="Completed", cleaner_name="Casey"))

    outcome = asyncio.run(scenario())
    rows = _data_rows(ledger_path(2026, 2), "Sydney")

    assert outcome.row == 2
    assert [row[0] for row in rows] == ["J1", "J9"]
    assert rows[0][7:] == ("Casey", "Completed")


def test_upsert_routes_unknown_region_to_fallback_sheet():
    worker = LedgerWorker()
    outcome = asyncio.run(worker.upsert_row(_record("J3", region="Hobart")))

    assert outcome.status == "written"
    assert outcome.sheet == FALLBACK_SHEET
    assert [row[0] for row in _data_rows(ledger_path(2026, 2), FALLBACK_SHEET)] == ["J3"]
    assert _data_rows(ledger_path(2026, 2), "Sydney") == []


def test_upsert_skips_when_router_names_unprovisioned_sheet():
    worker = LedgerWorker(router=lambda region: "Mars")
    outcome = asyncio.run(worker.upsert_row(_record()))

    assert outcome.status == "skipped"
    assert not ledger_path(2026, 2).exists()


def test_upsert_reports_corrupt_workbook_without_raising():
    path = ledger_path(2026, 2)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"garbage")

    outcome = asyncio.run(LedgerWorker().upsert_row(_record()))

    assert outcome.status == "failed"
    assert outcome.error
    assert path.read_bytes() == b"garbage"


def test_months_are_kept_in_separate_workbooks():
    worker = LedgerWorker()

    async def scenario():
        await worker.upsert_row(_record("J1", date=date(2026, 2, 10)))
        await worker.upsert_row(_record("J2", date=date(2026, 3, 3)))

    asyncio.run(scenario())

    assert [row[0] for row in _data_rows(ledger_path(2026, 2), "Sydney")] == ["J1"]
    assert [row[0] for row in _data_rows(ledger_path(2026, 3), "Sydney")] == ["J2"]


def test_concurrent_upserts_to_one_file_lose_nothing():
    worker = LedgerWorker()
    records = [_record(f"J{index}", region=REGIONS[index % len(REGIONS)]) for index in range(12)]

    async def scenario():
        return await asyncio.gather(*(worker.upsert_row(record) for record in records))

    outcomes = asyncio.run(scenario())

    assert all(outcome.status == "written" for outcome in outcomes)
    path = ledger_path(2026, 2)
    written = [row[0] for name in REGIONS for row in _data_rows(path, name)]
    assert sorted(written) == sorted(record.job_id for record in records)


def test_back_to_back_updates_apply_in_submission_order():
    worker = LedgerWorker()

    async def scenario():
        await worker.upsert_row(_record("J2"))
        return await asyncio.gather(
            worker.upsert_row(_record("J2", status="Completed")),
            worker.upsert_row(_record("J2", status="Redo")),
        )

    asyncio.run(scenario())
    rows = _data_rows(ledger_path(2026, 2), "Sydney")

    assert len(rows) == 1
    assert rows[0][0] == "J2"
    assert rows[0][-1] == "Redo"


def test_upsert_times_out_when_file_lock_is_held(monkeypatch):
    monkeypatch.setenv("LEDGER_WRITE_TIMEOUT", "0.05")
    worker = LedgerWorker()
    path = ledger_path(2026, 2)

    async def scenario():
        async with worker.locks.hold(path):
            return await worker.upsert_row(_record())

    outcome = asyncio.run(scenario())

    assert outcome.status == "timeout"
    assert not path.exists()


def test_upsert_reports_unwritable_export_dir_as_failure(tmp_path, monkeypatch):
    blocker = tmp_path / "exports-file"
    blocker.write_text("occupied")
    monkeypatch.setenv("LEDGER_EXPORT_DIR", str(blocker))

    outcome = asyncio.run(LedgerWorker().upsert_row(_record()))

    assert outcome.status == "failed"
    assert outcome.error


def test_upsert_abandons_write_that_overruns_timeout(monkeypatch):
    monkeypatch.setenv("LEDGER_WRITE_TIMEOUT", "0.1")
    real_save = workbooks.save

    def slow_save(workbook, path):
        time.sleep(0.6)
        return real_save(workbook, path)

    monkeypatch.setattr(workbooks, "save", slow_save)
    worker = LedgerWorker()
    path = ledger_path(2026, 2)

    async def scenario():
        started = time.monotonic()
        outcome = await worker.upsert_row(_record())
        elapsed = time.monotonic() - started
        held_after_timeout = worker.locks.is_locked(path)
        await worker.drain()
        return outcome, elapsed, held_after_timeout, worker.locks.is_locked(path)

    outcome, elapsed, held_after_timeout, held_after_drain = asyncio.run(scenario())

    assert outcome.status == "timeout"
    assert outcome.error == "write timeout"
    assert elapsed < 0.5
    assert held_after_timeout
    assert not held_after_drain
    assert [row[0] for row in _data_rows(path, "Sydney")] == ["J1"]


def test_write_after_overrun_waits_for_previous_save(monkeypatch):
    monkeypatch.setenv("LEDGER_WRITE_TIMEOUT", "0.1")
    real_save = workbooks.save
    delays = iter([0.4])

    def slow_first_save(workbook, path):
        time.sleep(next(delays, 0))
        return real_save(workbook, path)

    monkeypatch.setattr(workbooks, "save", slow_first_save)
    worker = LedgerWorker()

    async def scenario():
        first = await worker.upsert_row(_record("J1"))
        monkeypatch.setenv("LEDGER_WRITE_TIMEOUT", "5")
        second = await worker.upsert_row(_record("J2"))
        await worker.drain()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.status == "timeout"
    assert second.status == "written"
    assert [row[0] for row in _data_rows(ledger_path(2026, 2), "Sydney")] == ["J1", "J2"]


def test_submit_and_drain_background_writes():
    worker = LedgerWorker()

    async def scenario():
        worker.submit(_record("J1"))
        worker.submit(_record("J1", status="Cancelled"))
        return await worker.drain()

    outcomes = asyncio.run(scenario())

    assert [outcome.status for outcome in outcomes] == ["written", "written"]
    rows = _data_rows(ledger_path(2026, 2), "Sydney")
    assert len(rows) == 1
    assert rows[0][-1] == "Cancelled"


# ----------------------------------------------------------------------
# file locks
# ----------------------------------------------------------------------
def test_lock_key_normalises_relative_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    registry = FileLockRegistry()
    assert registry.key_for("ledger.xlsx") == registry.key_for(tmp_path / "ledger.xlsx")
    assert registry.lock_for("ledger.xlsx") is registry.lock_for(tmp_path / "ledger.xlsx")


def test_locks_serialise_same_path_and_not_different_paths(tmp_path):
    registry = FileLockRegistry()
    first = tmp_path / "February.xlsx"
    second = tmp_path / "March.xlsx"

    async def scenario():
        async with registry.hold(first):
            assert registry.is_locked(first)
            async with registry.hold(second, timeout=0.1):
                assert registry.is_locked(second)
            with pytest.raises(asyncio.TimeoutError):
                async with registry.hold(first, timeout=0.05):
                    pass
        assert not registry.is_locked(first)

    asyncio.run(scenario())


def test_with_file_lock_runs_callers_one_at_a_time(tmp_path):
    registry = FileLockRegistry()
    path = tmp_path / "ledger.xlsx"
    events: list[str] = []

    async def writer(name: str) -> str:
        events.append(f"{name}:start")
        await asyncio.sleep(0.01)
        events.append(f"{name}:end")
        return name

    async def scenario():
        return await asyncio.gather(
            registry.with_file_lock(path, lambda: writer("a")),
            registry.with_file_lock(path, lambda: writer("b")),
        )

    assert asyncio.run(scenario()) == ["a", "b"]
    assert events == ["a:start", "a:end", "b:start", "b:end"]
