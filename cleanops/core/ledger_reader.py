"""Read-only access to the monthly ledger workbooks."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import pandas as pd

from cleanops.core.errors import NotFoundError, StorageError, ValidationError
from cleanops.core.exports import ledger_path


def _frame_to_records(dataframe: pd.DataFrame) -> list[dict[str, Any]]:
    dataframe = dataframe.dropna(how="all")
    dataframe = dataframe.astype(object).where(dataframe.notna(), None)
    return dataframe.to_dict(orient="records")


def read_workbook(path: Path) -> dict[str, list[dict[str, Any]]]:
    try:
        frames = pd.read_excel(path, sheet_name=None, dtype={"Job ID": str, "Phone": str})
    except (BadZipFile, KeyError, OSError, ValueError) as exc:
        raise StorageError(f"ledger workbook {path.name} could not be read", path) from exc
    return {name: _frame_to_records(frame) for name, frame in frames.items()}


def read_ledger(year: int, month: int) -> dict[str, Any]:
    """Return every sheet of the ledger for ``month``/``year`` as row dicts."""

    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")
    path = ledger_path(year, month)
    if not path.exists():
        raise NotFoundError(f"no ledger for {year}-{month:02d}")
    return {"file": path.name, "sheets": read_workbook(path)}
