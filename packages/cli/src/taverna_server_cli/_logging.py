"""Logging setup for the CLI, with run-id injection.

Call :func:`setup_logging` once per invocation. Records go to stderr so they
never mix with results on stdout; each record carries the id of the run being
driven when it was emitted (see :func:`taverna_server_sdk.run_context`).
"""

from __future__ import annotations

import datetime
import json
import logging
import sys
import traceback
from typing import Any

from taverna_server_sdk import get_run_id

_TEXT_FORMAT = "%(levelname)s %(name)s [%(run_id)s] %(message)s"


class RunIdFilter(logging.Filter):
    """Inject ``run_id`` into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id() or "-"
        return True


class CliJsonFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Output schema::

        {
            "timestamp": "2025-06-15T12:34:56.789012+00:00",
            "level": "INFO",
            "logger": "taverna_server_sdk.server",
            "message": "Run 3f2a... started",
            "run_id": "3f2a...",
            "exception": null
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        exc_text: str | None = None
        if record.exc_info and record.exc_info[0] is not None:
            exc_text = "".join(
                traceback.format_exception(*record.exc_info),
            )

        payload: dict[str, Any] = {
            "timestamp": (
                datetime.datetime.fromtimestamp(
                    record.created,
                    tz=datetime.UTC,
                ).isoformat()
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", "-"),
            "exception": exc_text,
        }
        return json.dumps(payload, default=str)


def level_for_verbosity(verbosity: int) -> int:
    """0 -> WARNING, 1 -> INFO, 2+ -> DEBUG."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(level: int = logging.WARNING, *, json_format: bool = False) -> None:
    """Configure the root logger to write to stderr.

    Parameters
    ----------
    level:
        Minimum log level (default ``logging.WARNING``).
    json_format:
        Emit single-line JSON records instead of plain text.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicate output ---------------
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(CliJsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT))
    handler.addFilter(RunIdFilter())

    root.addHandler(handler)
    # httpx logs every request at INFO; only let that through at DEBUG.
    httpx_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_level)
