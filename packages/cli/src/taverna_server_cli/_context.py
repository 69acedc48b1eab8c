"""CLI context object passed through Click's ``ctx.obj``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from taverna_server_sdk import HttpBasicCredentials, Server

if TYPE_CHECKING:
    import httpx
    from rich.console import Console

    from taverna_server_cli._config import CliConfig
    from taverna_server_sdk import UserCredentials


@dataclass
class CliContext:
    """Holds shared state for all CLI commands."""

    console: Console
    err_console: Console
    json_mode: bool
    config: CliConfig
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def credentials(self) -> UserCredentials | None:
        """Basic-auth credentials when a username is configured."""
        if not self.config.username:
            return None
        return HttpBasicCredentials(self.config.username, self.config.password)

    def open_server(self, address: str) -> Server:
        """Server handle for *address*; use it with ``async with``."""
        return Server(
            address,
            credentials=self.credentials,
            timeout=self.config.timeout,
            transport=self.transport,
        )

    def progress(self, message: str, **kwargs: object) -> None:
        """Progress chatter on stderr; silent in JSON mode."""
        if not self.json_mode:
            self.err_console.print(
                message, highlight=False, markup=False, **kwargs  # type: ignore[arg-type]
            )
