"""Taverna Server SDK — async client for the Taverna 2 Server REST interface.

Core exports::

    from taverna_server_sdk import Server, RunDriver, HttpBasicCredentials
    from taverna_server_sdk import resolve, total_size, parse_coordinate
"""

from __future__ import annotations

__version__ = "0.4.0"

# === Client ===
from taverna_server_sdk.connection import Connection
from taverna_server_sdk.credentials import HttpBasicCredentials, UserCredentials

# === Exceptions ===
from taverna_server_sdk.exceptions import (
    AddressingError,
    AuthenticationError,
    IndexOutOfRangeError,
    InputsNotSetError,
    MalformedCoordinateError,
    RunError,
    RunNotFoundError,
    ServerError,
    ServerUnavailableError,
    TavernaServerError,
    UnreadableInputError,
    WorkflowRejectedError,
    error_context,
)

# === Lifecycle ===
from taverna_server_sdk.lifecycle import (
    InputAssignment,
    InputConfiguration,
    RunDriver,
    RunResult,
)

# === Observability ===
from taverna_server_sdk.observability import get_run_id, run_context

# === Ports ===
from taverna_server_sdk.ports import (
    OutputPort,
    PortValue,
    iter_indices,
    leaves,
    parse_coordinate,
    resolve,
    total_size,
)
from taverna_server_sdk.server import InputPort, Run, Server, validate_address

# === Types ===
from taverna_server_sdk.types import PortValueKind, RunStatus, WaitOutcome

__all__ = [
    "AddressingError",
    "AuthenticationError",
    "Connection",
    "HttpBasicCredentials",
    "IndexOutOfRangeError",
    "InputAssignment",
    "InputConfiguration",
    "InputPort",
    "InputsNotSetError",
    "MalformedCoordinateError",
    "OutputPort",
    "PortValue",
    "PortValueKind",
    "Run",
    "RunDriver",
    "RunError",
    "RunNotFoundError",
    "RunResult",
    "RunStatus",
    "Server",
    "ServerError",
    "ServerUnavailableError",
    "TavernaServerError",
    "UnreadableInputError",
    "UserCredentials",
    "WaitOutcome",
    "WorkflowRejectedError",
    "__version__",
    "error_context",
    "get_run_id",
    "iter_indices",
    "leaves",
    "parse_coordinate",
    "resolve",
    "run_context",
    "total_size",
    "validate_address",
]
