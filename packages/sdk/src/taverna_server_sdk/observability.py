"""Run-id propagation for log records.

The driver enters :func:`run_context` around every lifecycle operation so that
log records emitted underneath (by the SDK or the CLI) can be tagged with the
run they concern.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "taverna_run_id",
    default=None,
)


@contextmanager
def run_context(run_id: str | None) -> Generator[str | None, None, None]:
    """Make *run_id* the current run id for the duration of the block."""
    token = _run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        _run_id_var.reset(token)


def get_run_id() -> str | None:
    """Return the current run id, or None outside a run_context."""
    return _run_id_var.get()
