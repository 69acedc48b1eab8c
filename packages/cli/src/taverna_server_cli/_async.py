"""Async-to-sync bridge for Click commands, plus interrupt handling."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Coroutine, Generator

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously.

    Each CLI invocation is a fresh process so ``asyncio.run``
    is safe — no existing event loop to conflict with.
    """
    return asyncio.run(coro)


@contextlib.contextmanager
def cancel_on_interrupt() -> Generator[asyncio.Event, None, None]:
    """Yield an event that is set when SIGINT arrives inside the block.

    Must be entered from a running event loop. Where the loop cannot install
    signal handlers (Windows, non-main threads) the event is never set and
    Ctrl-C raises KeyboardInterrupt as usual.
    """
    loop = asyncio.get_running_loop()
    cancelled = asyncio.Event()
    installed = True
    try:
        loop.add_signal_handler(signal.SIGINT, cancelled.set)
    except (NotImplementedError, RuntimeError, ValueError):
        installed = False
    try:
        yield cancelled
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
