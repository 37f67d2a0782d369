"""
Structured logging setup for the operations console.
Emits JSON lines with consistent key/value fields so ledger failures can be
picked up by log-based alerting.
"""
from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str | None = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level name; defaults to ``LOG_LEVEL`` or INFO.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # openpyxl warns about every unsupported extension it meets on load
    logging.getLogger("openpyxl").setLevel(logging.ERROR)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
