"""Run lifecycle driver.

Takes a workflow from submission to collected outputs::

    create -> configure inputs -> (request bundle output) -> start
           -> wait -> collect -> (delete)

All authoritative state lives on the server; the driver holds only the handle
of the run it is driving. A start that fails because inputs are missing or
unreadable deletes the run before the error propagates, as does an unreadable
Baclava input file, so no half-configured run is left behind.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from taverna_server_sdk.exceptions import (
    IndexOutOfRangeError,
    InputsNotSetError,
    RunError,
    TavernaServerError,
    UnreadableInputError,
    error_context,
)
from taverna_server_sdk.observability import run_context
from taverna_server_sdk.ports import resolve
from taverna_server_sdk.types import (
    DEFAULT_BACLAVA_OUTPUT,
    DEFAULT_POLL_INTERVAL,
    RunStatus,
    WaitOutcome,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Mapping

    from taverna_server_sdk.ports import OutputPort, PortValue
    from taverna_server_sdk.server import Run, Server

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputAssignment:
    """One input port and the value source given to it."""

    port: str
    value: str | None = None
    file: Path | None = None


@dataclass
class InputConfiguration:
    """What :meth:`RunDriver.configure_inputs` did."""

    assigned: list[InputAssignment] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)
    bundle: Path | None = None


@dataclass
class RunResult:
    """Everything collected from a run after it stopped running."""

    run_id: str
    outcome: WaitOutcome = WaitOutcome.COMPLETED
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    outputs: dict[str, OutputPort] = field(default_factory=dict)
    values: dict[str, PortValue | None] = field(default_factory=dict)
    bundle: bytes | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is WaitOutcome.COMPLETED and self.exit_code == 0


class RunDriver:
    """Drives one run through its lifecycle on a :class:`Server`."""

    def __init__(self, server: Server, run: Run | None = None) -> None:
        self._server = server
        self._run = run

    @property
    def run(self) -> Run:
        if self._run is None:
            raise RunError("No run has been created yet")
        return self._run

    # ------------------------------------------------------------------
    # Lifecycle steps
    # ------------------------------------------------------------------

    async def create(self, workflow: bytes) -> Run:
        """Submit *workflow*; the new run is in CREATED."""
        with error_context(operation="create"):
            self._run = await self._server.create_run(workflow)
        return self._run

    async def configure_inputs(
        self,
        values: Mapping[str, str] | None = None,
        files: Mapping[str, str | Path] | None = None,
        *,
        bundle: str | Path | None = None,
    ) -> InputConfiguration:
        """Assign input values.

        With *bundle*, the Baclava file is uploaded and *values*/*files* are
        ignored. Otherwise each declared port named in *values* gets that
        inline value, and each named in *files* that file; *values* wins when
        a port is named in both. Names that are not declared ports are
        reported in ``unknown``; ports not named remain unset.
        """
        values = dict(values or {})
        files = {name: Path(path) for name, path in (files or {}).items()}

        with self._scope("configure_inputs"):
            if bundle is not None:
                try:
                    await self.run.set_baclava_input(bundle)
                except UnreadableInputError:
                    await self._discard()
                    raise
                return InputConfiguration(bundle=Path(bundle))

            ports = await self.run.input_ports()
            config = InputConfiguration(
                unknown=sorted(name for name in {*values, *files} if name not in ports)
            )
            for name, port in ports.items():
                if name in values:
                    port.set_value(values[name])
                    config.assigned.append(InputAssignment(name, value=values[name]))
                elif name in files:
                    port.set_file(files[name])
                    config.assigned.append(InputAssignment(name, file=files[name]))
            if config.unknown:
                logger.warning("Ignoring values for undeclared inputs: %s", config.unknown)
            return config

    async def request_bundle_output(self, name: str = DEFAULT_BACLAVA_OUTPUT) -> None:
        """Collect every output as one Baclava file instead of per port."""
        with self._scope("request_bundle_output"):
            await self.run.request_baclava_output(name)

    async def start(self) -> None:
        """Start the run, deleting it if inputs are missing or unreadable."""
        with self._scope("start"):
            try:
                await self.run.start()
            except (InputsNotSetError, UnreadableInputError):
                await self._discard()
                raise

    async def wait(
        self,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
        on_tick: Callable[[], None] | None = None,
    ) -> WaitOutcome:
        """Poll the run's status every *interval* seconds while it is RUNNING.

        Setting *cancel* ends the wait promptly with ``CANCELLED``; the run
        itself is left untouched and keeps going on the server. No timeout
        applies unless *timeout* is given.
        """
        cancel = cancel or asyncio.Event()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        with self._scope("wait"):
            while await self.run.status() is RunStatus.RUNNING:
                if cancel.is_set():
                    return self._cancelled()
                delay = interval
                if deadline is not None:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        logger.warning("Gave up waiting for run after %ss", timeout)
                        return WaitOutcome.TIMED_OUT
                    delay = min(delay, remaining)
                try:
                    await asyncio.wait_for(cancel.wait(), timeout=delay)
                except TimeoutError:
                    if on_tick is not None:
                        on_tick()
                    continue
                return self._cancelled()
        return WaitOutcome.COMPLETED

    async def collect(self, *, bundle: bool = False) -> RunResult:
        """Fetch exit code, console text and, on success, the outputs."""
        run = self.run
        with self._scope("collect"):
            result = RunResult(
                run_id=run.identifier,
                exit_code=await run.exit_code(),
                stdout=await run.console_output(),
                stderr=await run.console_error(),
            )
            if result.exit_code != 0:
                return result
            if bundle:
                result.bundle = await run.baclava_output()
                return result
            result.outputs = await run.output_ports()
            for name, port in result.outputs.items():
                try:
                    result.values[name] = resolve(port)
                except IndexOutOfRangeError:
                    result.values[name] = None
            return result

    async def delete(self) -> None:
        """Delete the run from the server."""
        with self._scope("delete"):
            await self.run.delete()

    # ------------------------------------------------------------------
    # Whole lifecycle
    # ------------------------------------------------------------------

    async def execute(
        self,
        workflow: bytes,
        *,
        values: Mapping[str, str] | None = None,
        files: Mapping[str, str | Path] | None = None,
        bundle_in: str | Path | None = None,
        bundle_out: str | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
        delete: bool = False,
    ) -> RunResult:
        """Run *workflow* to completion and collect its results.

        A cancelled or timed-out wait returns a result carrying that outcome
        without collecting anything or deleting the run.
        """
        run = await self.create(workflow)
        await self.configure_inputs(values, files, bundle=bundle_in)
        if bundle_out is not None:
            await self.request_bundle_output(bundle_out)
        await self.start()

        outcome = await self.wait(interval=interval, cancel=cancel, timeout=timeout)
        if outcome is not WaitOutcome.COMPLETED:
            return RunResult(run_id=run.identifier, outcome=outcome)

        result = await self.collect(bundle=bundle_out is not None)
        if delete:
            await self.delete()
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _scope(self, operation: str) -> Generator[None, None, None]:
        run_id = self.run.identifier
        with run_context(run_id), error_context(run_id=run_id, operation=operation):
            yield

    async def _discard(self) -> None:
        try:
            await self.run.delete()
        except TavernaServerError:
            logger.warning("Could not delete run after failed input setup", exc_info=True)

    def _cancelled(self) -> WaitOutcome:
        logger.info("Stopped waiting for run %s; it continues on the server", self.run.identifier)
        return WaitOutcome.CANCELLED
