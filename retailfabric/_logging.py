"""Logging setup and correlation ids."""

from __future__ import annotations

import logging
import sys
import uuid
from typing import TextIO

LOGGER_NAME = "retailfabric"
FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s"


class CorrelationFilter(logging.Filter):
    """Default correlation_id for records logged without one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def setup_logging(
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Idempotent: a second call only adjusts the level.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(level)
    if log.handlers:
        return log

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(CorrelationFilter())
    log.addHandler(handler)
    return log


__all__ = (
    "LOGGER_NAME",
    "CorrelationFilter",
    "new_correlation_id",
    "setup_logging",
)
