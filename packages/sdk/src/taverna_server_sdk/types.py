"""Shared enums and constants for the Taverna Server client."""

from __future__ import annotations

from enum import StrEnum

# =============================================================================
# Run Lifecycle
# =============================================================================


class RunStatus(StrEnum):
    """Run states — owned and driven by the server.

    Values are the words the server uses on its ``status`` resource.
    """

    CREATED = "Initialized"
    RUNNING = "Operating"
    FINISHED = "Finished"
    STOPPED = "Stopped"

    @property
    def rank(self) -> int:
        """Position in the lifecycle; a run never moves to a lower rank."""
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.FINISHED, RunStatus.STOPPED)


_STATUS_RANK: dict[RunStatus, int] = {
    RunStatus.CREATED: 0,
    RunStatus.RUNNING: 1,
    RunStatus.FINISHED: 2,
    RunStatus.STOPPED: 2,
}


class WaitOutcome(StrEnum):
    """How a wait for run completion ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


# =============================================================================
# Port Values
# =============================================================================


class PortValueKind(StrEnum):
    """What a resolved port value holds."""

    DATA = "data"
    REFERENCE = "reference"
    ERROR = "error"


# =============================================================================
# Constants
# =============================================================================

WORKFLOW_CONTENT_TYPE = "application/vnd.taverna.t2flow+xml"
DEFAULT_BACLAVA_OUTPUT = "out.xml"
DEFAULT_POLL_INTERVAL = 1.0
