"""Testing utilities for client authors.

Provides :class:`FakeTavernaServer`, an in-memory stand-in for the server's
REST interface that plugs into httpx as a mock transport, so the whole client
stack (connection, server, run, driver and CLI) can be exercised without a
network.

Example::

    fake = FakeTavernaServer(inputs={"in1": 0}, outputs={"out1": "hello"})
    async with Server(fake.address, transport=fake.transport) as server:
        result = await RunDriver(server).execute(b"<workflow/>", values={"in1": "x"})
"""

from __future__ import annotations

import base64
import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import unquote

import httpx

from taverna_server_sdk.types import WORKFLOW_CONTENT_TYPE, RunStatus

FAKE_ADDRESS = "http://taverna.test:8080/taverna"


@dataclass(frozen=True)
class ErrorValue:
    """Marks a leaf (or a whole sub-list) of a fake output as an error."""

    message: str


@dataclass
class FakeRun:
    """Server-side state of one fake run."""

    identifier: str
    workflow: bytes
    status: RunStatus = RunStatus.CREATED
    created: datetime = field(default_factory=lambda: datetime.now(UTC))
    started: datetime | None = None
    finished: datetime | None = None
    inputs: dict[str, dict[str, str]] = field(default_factory=dict)
    baclava_in: str | None = None
    baclava_out: str | None = None
    files: dict[str, bytes] = field(default_factory=dict)
    polls_left: int | None = 1


def _depth_of(tree: Any) -> int:
    if isinstance(tree, list):
        return 1 + max((_depth_of(child) for child in tree), default=0)
    return 0


def _basic(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


class FakeTavernaServer:
    """Configurable in-memory Taverna Server.

    Args:
        inputs: Declared input ports of every submitted workflow, name to depth.
        outputs: Output values produced by every run. A leaf is ``str`` or
            ``bytes`` (data) or :class:`ErrorValue`; lists nest to any depth.
            ``str`` leaves are served as ``text/plain``, ``bytes`` leaves as
            ``application/octet-stream``.
        exit_code: Exit code reported once a run finishes.
        stdout: Console output reported once a run finishes.
        stderr: Console error text reported once a run finishes.
        finish_after: Number of status polls a started run spends operating
            before it finishes; ``None`` keeps runs operating forever.
        credentials: ``(username, password)`` the server insists on.
        reject_workflows: Refuse every submitted workflow with 400.
    """

    def __init__(
        self,
        *,
        inputs: dict[str, int] | None = None,
        outputs: dict[str, Any] | None = None,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        finish_after: int | None = 1,
        credentials: tuple[str, str] | None = None,
        reject_workflows: bool = False,
        address: str = FAKE_ADDRESS,
    ) -> None:
        self.address = address
        self.inputs = dict(inputs or {})
        self.outputs = dict(outputs or {})
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.finish_after = finish_after
        self.credentials = credentials
        self.reject_workflows = reject_workflows
        self.runs: dict[str, FakeRun] = {}
        self.requests: list[tuple[str, str]] = []
        self._root = httpx.URL(address).path.rstrip("/") + "/rest"

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def run(self, run_id: str) -> FakeRun:
        return self.runs[run_id]

    def add_run(self, *, status: RunStatus = RunStatus.FINISHED, **kwargs: Any) -> FakeRun:
        """Create a run directly in server state, e.g. an already finished one."""
        kwargs.setdefault("polls_left", self.finish_after)
        run = FakeRun(identifier=str(uuid.uuid4()), workflow=b"<workflow/>", **kwargs)
        self.runs[run.identifier] = run
        if status is RunStatus.RUNNING:
            self._start(run)
        elif status.is_terminal:
            self._start(run)
            self._finish(run)
            run.status = status
        return run

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if self.credentials is not None:
            expected = _basic(*self.credentials)
            if request.headers.get("Authorization") != expected:
                return httpx.Response(401, text="Unauthorized")

        if not path.startswith(self._root + "/runs"):
            return httpx.Response(404, text=f"No such resource {path}")
        parts = [unquote(p) for p in path[len(self._root) :].split("/") if p]

        if len(parts) == 1:
            if request.method == "POST":
                return self._create(request)
            return httpx.Response(405)

        run = self.runs.get(parts[1])
        if run is None:
            return httpx.Response(404, text=f"No run {parts[1]}")
        resource = "/".join(parts[2:])

        if not resource:
            if request.method == "DELETE":
                del self.runs[run.identifier]
                return httpx.Response(204)
            return httpx.Response(200, json={"run": {"id": run.identifier}})
        if resource == "status":
            return self._status(request, run)
        if request.method == "GET":
            return self._get(run, resource)
        if request.method == "PUT":
            return self._put(request, run, resource)
        return httpx.Response(405)

    def _create(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("Content-Type") != WORKFLOW_CONTENT_TYPE:
            return httpx.Response(415, text="Unsupported media type")
        if self.reject_workflows or not request.content.strip():
            return httpx.Response(400, text="Bad workflow")
        run = FakeRun(
            identifier=str(uuid.uuid4()),
            workflow=request.content,
            polls_left=self.finish_after,
        )
        self.runs[run.identifier] = run
        location = f"{self.address}/rest/runs/{run.identifier}"
        return httpx.Response(201, headers={"Location": location})

    def _status(self, request: httpx.Request, run: FakeRun) -> httpx.Response:
        if request.method == "PUT":
            if request.content.decode() != RunStatus.RUNNING.value:
                return httpx.Response(400, text="Unsupported status change")
            if run.status is not RunStatus.CREATED:
                return httpx.Response(400, text="Run already started")
            missing = [name for name in self.inputs if name not in run.inputs]
            if missing and run.baclava_in is None:
                return httpx.Response(400, text=f"Inputs not set: {missing}")
            self._start(run)
            return httpx.Response(200)

        if run.status is RunStatus.RUNNING and run.polls_left is not None:
            if run.polls_left <= 0:
                self._finish(run)
            else:
                run.polls_left -= 1
        return httpx.Response(200, text=run.status.value)

    def _get(self, run: FakeRun, resource: str) -> httpx.Response:
        finished = run.status.is_terminal
        stamps = {
            "createTime": run.created,
            "startTime": run.started,
            "finishTime": run.finished,
        }
        if resource in stamps:
            stamp = stamps[resource]
            return httpx.Response(200, text=stamp.isoformat() if stamp else "")
        if resource == "listeners/io/properties/exitcode":
            return httpx.Response(200, text=str(self.exit_code) if finished else "")
        if resource == "listeners/io/properties/stdout":
            return httpx.Response(200, text=self.stdout if finished else "")
        if resource == "listeners/io/properties/stderr":
            return httpx.Response(200, text=self.stderr if finished else "")
        if resource == "input/expected":
            ports = [{"name": name, "depth": depth} for name, depth in self.inputs.items()]
            return httpx.Response(200, json={"inputDescription": {"input": ports}})
        if resource == "output":
            if not finished:
                return httpx.Response(400, text="Run has not finished")
            return httpx.Response(200, json=self._output_document(run))
        if resource.startswith("wd/"):
            name = resource[len("wd/") :]
            if name not in run.files:
                return httpx.Response(404, text=f"No file {name}")
            return httpx.Response(200, content=run.files[name])
        return httpx.Response(404, text=f"No resource {resource}")

    def _put(self, request: httpx.Request, run: FakeRun, resource: str) -> httpx.Response:
        if resource.startswith("wd/"):
            run.files[resource[len("wd/") :]] = request.content
            return httpx.Response(201)
        if resource.startswith("input/input/"):
            name = resource[len("input/input/") :]
            if name not in self.inputs:
                return httpx.Response(404, text=f"No input {name}")
            body = json.loads(request.content)["runInput"]
            if "file" in body and body["file"] not in run.files:
                return httpx.Response(400, text=f"No file {body['file']}")
            run.inputs[name] = body
            return httpx.Response(200)
        if resource == "input/baclava":
            name = request.content.decode()
            if name not in run.files:
                return httpx.Response(400, text=f"No file {name}")
            run.baclava_in = name
            return httpx.Response(200)
        if resource == "output":
            run.baclava_out = request.content.decode()
            return httpx.Response(200)
        return httpx.Response(405)

    # ------------------------------------------------------------------
    # State transitions and documents
    # ------------------------------------------------------------------

    def _start(self, run: FakeRun) -> None:
        run.status = RunStatus.RUNNING
        run.started = datetime.now(UTC)

    def _finish(self, run: FakeRun) -> None:
        run.status = RunStatus.FINISHED
        run.finished = datetime.now(UTC)
        if run.baclava_out is not None:
            names = "".join(f'<port name="{name}"/>' for name in self.outputs)
            run.files[run.baclava_out] = f"<dataThingMap>{names}</dataThingMap>".encode()

    def _output_document(self, run: FakeRun) -> dict[str, Any]:
        ports = []
        for name, tree in self.outputs.items():
            node = self._node(run, name, tree, ())
            ports.append({"name": name, "depth": _depth_of(tree), **node})
        return {"workflowOutputs": {"output": ports}}

    def _node(
        self, run: FakeRun, port: str, tree: Any, index: tuple[int, ...]
    ) -> dict[str, Any]:
        key = "/".join(["out", port, *(str(i) for i in index)])
        href = f"{self.address}/rest/runs/{run.identifier}/wd/{key}"
        if isinstance(tree, list):
            return {
                "list": [
                    self._node(run, port, child, (*index, i)) for i, child in enumerate(tree)
                ]
            }
        if isinstance(tree, ErrorValue):
            return {"error": {"href": href, "message": tree.message}}
        text = isinstance(tree, str)
        data = tree.encode() if text else bytes(tree)
        run.files[key] = data
        return {
            "value": {
                "href": href,
                "contentType": "text/plain" if text else "application/octet-stream",
                "contentByteLength": len(data),
            }
        }
