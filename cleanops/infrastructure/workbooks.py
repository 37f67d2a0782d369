"""On-disk storage for the monthly ledger workbooks.

``save`` never writes the target in place: the workbook goes to a temporary
file in the same directory which is fsynced and then renamed over the target,
so readers see either the previous file or the new one, never a partial one.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Sequence
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from cleanops.core.errors import StorageError


def load_or_create(path: Path) -> Workbook:
    """Load ``path`` or return an empty workbook (no sheets) when it does not exist."""

    if not path.exists():
        workbook = Workbook()
        workbook.remove(workbook.active)
        return workbook
    try:
        return load_workbook(path)
    except (BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as exc:
        raise StorageError(f"ledger workbook {path.name} is unreadable: {exc}", path) from exc


def _header_missing(sheet: Worksheet) -> bool:
    return sheet.max_row <= 1 and all(cell.value is None for cell in sheet[1])


def ensure_sheet(
    workbook: Workbook,
    name: str,
    header: Sequence[str],
    widths: Sequence[int] | None = None,
) -> Worksheet:
    """Return sheet ``name``, creating it with ``header`` as its first row if needed."""

    if name in workbook.sheetnames:
        sheet = workbook[name]
    else:
        sheet = workbook.create_sheet(title=name)

    if _header_missing(sheet):
        for column, title in enumerate(header, start=1):
            sheet.cell(row=1, column=column, value=title)
        for column, width in enumerate(widths or [], start=1):
            sheet.column_dimensions[get_column_letter(column)].width = width
        sheet.freeze_panes = "A2"
    return sheet


def _discard(tmp_path: Path | None) -> None:
    if tmp_path is not None:
        tmp_path.unlink(missing_ok=True)


def save(workbook: Workbook, path: Path) -> Path:
    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
        os.close(fd)
        tmp_path = Path(tmp_name)
        workbook.save(tmp_path)
        with tmp_path.open("rb+") as fp:
            os.fsync(fp.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        _discard(tmp_path)
        raise StorageError(f"ledger workbook {path.name} could not be written: {exc}", path) from exc
    except Exception:
        _discard(tmp_path)
        raise
    return path
