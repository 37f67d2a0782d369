from __future__ import annotations

from pathlib import Path


class OperationsError(Exception):
    """Base class for errors raised by the operations core."""


class ValidationError(OperationsError):
    """Raised when a request fails domain validation."""


class NotFoundError(OperationsError):
    """Raised when a referenced job, task or employee does not exist."""


class StorageError(OperationsError):
    """Raised when a ledger workbook cannot be read or written."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None


def http_status_for(exc: OperationsError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    return 500
