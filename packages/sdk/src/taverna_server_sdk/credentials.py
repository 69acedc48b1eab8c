"""User credentials attached to every server call."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx


class UserCredentials(ABC):
    """Opaque capability presented to the server with each request."""

    @abstractmethod
    def auth(self) -> httpx.Auth:
        """Return the httpx auth flow for these credentials."""


@dataclass(frozen=True)
class HttpBasicCredentials(UserCredentials):
    """Username and password sent with HTTP basic authentication."""

    username: str
    password: str = field(default="", repr=False)

    def auth(self) -> httpx.Auth:
        return httpx.BasicAuth(self.username, self.password)
