from __future__ import annotations

import os
from datetime import date
from pathlib import Path

DEFAULT_FILE_PREFIX = "PhantomCleaning"

# Fixed English names so file names do not depend on the process locale.
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def _base_root() -> Path:
    env_root = os.getenv("LEDGER_EXPORT_DIR")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "exports"


def _file_prefix() -> str:
    return os.getenv("LEDGER_FILE_PREFIX") or DEFAULT_FILE_PREFIX


def ledger_file_name(year: int, month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return f"{_file_prefix()}_{MONTH_NAMES[month - 1]}_{year}.xlsx"


def ledger_path(year: int, month: int) -> Path:
    """Return the workbook path covering ``month`` of ``year``."""

    return _base_root() / ledger_file_name(year, month)


def ledger_path_for(scheduled: date) -> Path:
    return ledger_path(scheduled.year, scheduled.month)
