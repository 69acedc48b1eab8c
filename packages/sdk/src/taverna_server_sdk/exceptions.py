"""Exception hierarchy for the Taverna Server client.

All exceptions inherit from TavernaServerError so callers can catch
client-level errors with a single except clause.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence


class TavernaServerError(Exception):
    """Base exception for all Taverna Server client errors."""

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Server Errors
# =============================================================================


class ServerError(TavernaServerError):
    """Base for errors reported by (or while reaching) the remote server."""


class ServerUnavailableError(ServerError):
    """Raised when the server cannot be reached or does not answer in time."""


class AuthenticationError(ServerError):
    """Raised when the server refuses the supplied credentials."""


class WorkflowRejectedError(ServerError):
    """Raised when the server refuses a workflow definition."""


class RunNotFoundError(ServerError):
    """Raised when a run does not exist (or no longer exists) on the server."""

    def __init__(
        self,
        message: str = "",
        *,
        run_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.run_id = run_id
        super().__init__(message or f"Run '{run_id}' not found", details=details)


# =============================================================================
# Run Errors
# =============================================================================


class RunError(TavernaServerError):
    """Base for errors that abort a run's lifecycle."""


class InputsNotSetError(RunError):
    """Raised when a run is started while required inputs have no value."""

    def __init__(
        self,
        message: str = "",
        *,
        input_names: Sequence[str] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        self.input_names = list(input_names)
        super().__init__(
            message or f"Inputs not set: {', '.join(self.input_names)}",
            details=details,
        )


class UnreadableInputError(RunError):
    """Raised when a file-backed input cannot be read from local storage."""

    def __init__(
        self,
        message: str = "",
        *,
        path: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.path = path
        super().__init__(message or f"Cannot read input file '{path}'", details=details)


# =============================================================================
# Addressing Errors
# =============================================================================


class AddressingError(TavernaServerError):
    """Base for local port-value addressing failures."""


class IndexOutOfRangeError(AddressingError):
    """Raised when an index does not address a value of an output port."""

    def __init__(
        self,
        message: str = "",
        *,
        index: Sequence[int] = (),
        length: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.index = tuple(index)
        self.length = length
        super().__init__(message, details=details)


class MalformedCoordinateError(AddressingError):
    """Raised when a ``NAME:I1,I2,...`` coordinate cannot be parsed."""

    def __init__(
        self,
        message: str = "",
        *,
        coordinate: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.coordinate = coordinate
        super().__init__(message or f"Malformed coordinate '{coordinate}'", details=details)


# =============================================================================
# Error Context Manager
# =============================================================================


@contextmanager
def error_context(**context: Any) -> Generator[None, None, None]:
    """Enrich TavernaServerError exceptions with contextual metadata.

    Any TavernaServerError raised inside the block will have its ``details``
    dict updated with the provided key-value pairs. Other exceptions pass
    through unchanged.

    Example::

        with error_context(run_id="f00", operation="start"):
            raise InputsNotSetError(input_names=["in1"])
        # error.details == {"run_id": "f00", "operation": "start"}
    """
    try:
        yield
    except TavernaServerError as exc:
        exc.details.update(context)
        raise
