"""Server and run handles over the REST connection.

A :class:`Run` is a handle to state owned by the server. It caches only the
last observed status (to keep status monotonic), the declared input ports and
whatever the caller has assigned to them locally. Input values are sent to the
server when the run is started.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from taverna_server_sdk.connection import Connection
from taverna_server_sdk.exceptions import (
    AddressingError,
    InputsNotSetError,
    RunError,
    ServerError,
    UnreadableInputError,
    WorkflowRejectedError,
)
from taverna_server_sdk.ports import OutputPort
from taverna_server_sdk.schemas import InputDescription, OutputDescription, RunInput
from taverna_server_sdk.types import DEFAULT_BACLAVA_OUTPUT, WORKFLOW_CONTENT_TYPE, RunStatus

if TYPE_CHECKING:
    from taverna_server_sdk.credentials import UserCredentials

logger = logging.getLogger(__name__)

_REJECTED_STATUS_CODES = (400, 406, 415, 422)


def validate_address(address: str) -> str:
    """Return *address* if it is an absolute http(s) URI, else raise ValueError."""
    try:
        url = httpx.URL(address)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ValueError(f"'{address}' is not a valid URI") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"'{address}' is not an absolute http(s) URI")
    return address


class Server:
    """Entry point to a Taverna Server.

    Example::

        async with Server("http://localhost:8080/taverna", credentials=creds) as server:
            run = await server.create_run(workflow_bytes)
    """

    def __init__(
        self,
        address: str,
        *,
        credentials: UserCredentials | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._connection = Connection(
            validate_address(address), credentials, timeout, transport=transport
        )

    @property
    def address(self) -> str:
        return self._connection.address

    async def __aenter__(self) -> Server:
        await self._connection.__aenter__()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self._connection.__aexit__(*args)

    async def create_run(
        self, workflow: bytes, credentials: UserCredentials | None = None
    ) -> Run:
        """Submit *workflow* and return a handle to the new run."""
        try:
            response = await self._connection.post_bytes(
                "/runs", workflow, WORKFLOW_CONTENT_TYPE, credentials=credentials
            )
        except ServerError as exc:
            if exc.details.get("status_code") in _REJECTED_STATUS_CODES:
                raise WorkflowRejectedError(
                    f"Server rejected the workflow: {exc}", details=exc.details
                ) from exc
            raise

        location = response.headers.get("Location", "")
        run_id = location.rstrip("/").rsplit("/", 1)[-1]
        if not run_id:
            raise ServerError("Server did not report the location of the new run")
        logger.info("Created run %s", run_id)
        return Run(self._connection, run_id, credentials)

    async def get_run(self, run_id: str, credentials: UserCredentials | None = None) -> Run:
        """Return a handle to an existing run; raises RunNotFoundError if absent."""
        await self._connection.request(
            "GET",
            f"/runs/{quote(run_id, safe='')}",
            accept="application/json",
            credentials=credentials,
        )
        return Run(self._connection, run_id, credentials)


class InputPort:
    """A declared workflow input and the value assigned to it locally."""

    def __init__(self, name: str, depth: int = 0) -> None:
        self.name = name
        self.depth = depth
        self._value: str | None = None
        self._file: Path | None = None

    @property
    def value(self) -> str | None:
        return self._value

    @property
    def file(self) -> Path | None:
        return self._file

    @property
    def is_set(self) -> bool:
        return self._value is not None or self._file is not None

    def set_value(self, value: str) -> None:
        self._value = value
        self._file = None

    def set_file(self, path: str | Path) -> None:
        self._file = Path(path)
        self._value = None

    def __repr__(self) -> str:
        return f"InputPort(name={self.name!r}, depth={self.depth})"


class Run:
    """Handle to one run on the server."""

    def __init__(
        self,
        connection: Connection,
        identifier: str,
        credentials: UserCredentials | None = None,
    ) -> None:
        self._conn = connection
        self.identifier = identifier
        self._credentials = credentials
        self._path = f"/runs/{quote(identifier, safe='')}"
        self._status: RunStatus | None = None
        self._input_ports: dict[str, InputPort] | None = None
        self._baclava_input = False
        self._baclava_output: str | None = None

    def __repr__(self) -> str:
        return f"Run(identifier={self.identifier!r})"

    # ------------------------------------------------------------------
    # Properties of the run
    # ------------------------------------------------------------------

    async def status(self) -> RunStatus:
        """Current status; never moves backwards once observed."""
        if self._status is not None and self._status.is_terminal:
            return self._status
        text = (await self._get_text("/status")).strip()
        try:
            observed = RunStatus(text)
        except ValueError:
            raise ServerError(f"Unknown run status '{text}'") from None
        self._observe(observed)
        return self._status or observed

    async def create_time(self) -> datetime | None:
        return _parse_time(await self._get_text("/createTime"))

    async def start_time(self) -> datetime | None:
        return _parse_time(await self._get_text("/startTime"))

    async def finish_time(self) -> datetime | None:
        return _parse_time(await self._get_text("/finishTime"))

    async def exit_code(self) -> int | None:
        text = (await self._get_text("/listeners/io/properties/exitcode")).strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            raise ServerError(f"Invalid exit code '{text}'") from None

    async def console_output(self) -> str:
        return await self._get_text("/listeners/io/properties/stdout")

    async def console_error(self) -> str:
        return await self._get_text("/listeners/io/properties/stderr")

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def input_ports(self) -> dict[str, InputPort]:
        """Declared input ports, keyed by name."""
        if self._input_ports is None:
            data = await self._conn.get_json(
                self._path + "/input/expected", credentials=self._credentials
            )
            description = InputDescription.from_payload(data)
            self._input_ports = {p.name: InputPort(p.name, p.depth) for p in description.inputs}
        return self._input_ports

    async def set_baclava_input(self, path: str | Path) -> None:
        """Upload a Baclava file holding every input value."""
        source = Path(path)
        data = _read_input(source)
        await self._conn.put_bytes(
            self._path + "/wd/" + quote(source.name, safe=""),
            data,
            credentials=self._credentials,
        )
        await self._conn.put_text(
            self._path + "/input/baclava", source.name, credentials=self._credentials
        )
        self._baclava_input = True
        logger.info("Run %s: uploaded Baclava input %s", self.identifier, source.name)

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    async def request_baclava_output(self, name: str = DEFAULT_BACLAVA_OUTPUT) -> None:
        """Ask the server to write every output into one Baclava file."""
        await self._conn.put_text(self._path + "/output", name, credentials=self._credentials)
        self._baclava_output = name

    async def baclava_output(self, name: str | None = None) -> bytes:
        """Download the Baclava output file."""
        target = name or self._baclava_output
        if target is None:
            raise RunError(f"Run {self.identifier}: Baclava output was not requested")
        return await self._conn.get_bytes(
            self._path + "/wd/" + quote(target, safe=""), credentials=self._credentials
        )

    async def output_ports(self) -> dict[str, OutputPort]:
        """Output ports of a finished run, keyed by name."""
        data = await self._conn.get_json(self._path + "/output", credentials=self._credentials)
        description = OutputDescription.from_payload(data)
        return {
            p.name: OutputPort.from_descriptor(p, fetch=self._fetch) for p in description.ports
        }

    async def output_port(self, name: str) -> OutputPort:
        ports = await self.output_ports()
        try:
            return ports[name]
        except KeyError:
            raise AddressingError(
                f"Run {self.identifier} has no output port '{name}'",
                details={"available": sorted(ports)},
            ) from None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Send the assigned inputs and start the run.

        Raises:
            InputsNotSetError: a declared input has no value and no Baclava
                input was supplied. Nothing is sent to the server.
            UnreadableInputError: a file-backed input cannot be read.
        """
        ports = await self.input_ports()
        if not self._baclava_input:
            missing = [name for name, port in ports.items() if not port.is_set]
            if missing:
                raise InputsNotSetError(input_names=missing)

            payloads = {
                name: _read_input(port.file)
                for name, port in ports.items()
                if port.file is not None
            }
            for name, port in ports.items():
                await self._send_input(port, payloads.get(name))

        await self._conn.put_text(
            self._path + "/status", RunStatus.RUNNING.value, credentials=self._credentials
        )
        self._observe(RunStatus.RUNNING)
        logger.info("Run %s started", self.identifier)

    async def delete(self) -> None:
        await self._conn.delete(self._path, credentials=self._credentials)
        logger.info("Run %s deleted", self.identifier)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _send_input(self, port: InputPort, payload: bytes | None) -> None:
        target = self._path + "/input/input/" + quote(port.name, safe="")
        if port.file is not None and payload is not None:
            remote = port.file.name
            await self._conn.put_bytes(
                self._path + "/wd/" + quote(remote, safe=""),
                payload,
                credentials=self._credentials,
            )
            body = RunInput(file=remote)
        else:
            body = RunInput(value=port.value)
        await self._conn.put_json(target, body.to_payload(), credentials=self._credentials)
        logger.debug("Run %s: set input %s", self.identifier, port.name)

    async def _get_text(self, suffix: str) -> str:
        return await self._conn.get_text(self._path + suffix, credentials=self._credentials)

    async def _fetch(self, reference: str) -> bytes:
        return await self._conn.download(reference, credentials=self._credentials)

    def _observe(self, status: RunStatus) -> None:
        if self._status is None or status.rank >= self._status.rank:
            self._status = status


def _read_input(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise UnreadableInputError(
            f"Cannot read input file '{path}': {exc}", path=str(path)
        ) from exc


def _parse_time(text: str) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ServerError(f"Invalid timestamp '{text}'") from None
