"""Thin async HTTP connection to a Taverna Server REST interface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from taverna_server_sdk.exceptions import (
    AuthenticationError,
    RunNotFoundError,
    ServerError,
    ServerUnavailableError,
)

if TYPE_CHECKING:
    from taverna_server_sdk.credentials import UserCredentials

logger = logging.getLogger(__name__)

_REST_ROOT = "/rest"
_JSON = "application/json"
_TEXT = "text/plain"
_OCTET = "application/octet-stream"


class Connection:
    """Async HTTP client wrapping httpx for the server's REST resources.

    Paths passed to the request helpers are relative to ``<address>/rest``.
    Errors are mapped to the SDK exception hierarchy; nothing is retried.

    Example::

        async with Connection("http://localhost:8080/taverna") as conn:
            status = await conn.get_text("/runs/<id>/status")
    """

    def __init__(
        self,
        address: str,
        credentials: UserCredentials | None = None,
        timeout: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._address = address.rstrip("/")
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def address(self) -> str:
        return self._address

    async def __aenter__(self) -> Connection:
        self._client = httpx.AsyncClient(
            base_url=self._address + _REST_ROOT,
            auth=self._credentials.auth() if self._credentials else None,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def get_text(self, path: str, *, credentials: UserCredentials | None = None) -> str:
        """GET a ``text/plain`` resource."""
        response = await self.request("GET", path, accept=_TEXT, credentials=credentials)
        return response.text

    async def get_json(self, path: str, *, credentials: UserCredentials | None = None) -> Any:
        """GET a JSON document."""
        response = await self.request("GET", path, accept=_JSON, credentials=credentials)
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON in response from GET {path}: {exc}") from exc

    async def get_bytes(self, path: str, *, credentials: UserCredentials | None = None) -> bytes:
        """GET raw bytes."""
        response = await self.request("GET", path, accept="*/*", credentials=credentials)
        return response.content

    async def put_text(
        self, path: str, text: str, *, credentials: UserCredentials | None = None
    ) -> httpx.Response:
        """PUT a ``text/plain`` body."""
        return await self.request(
            "PUT",
            path,
            content=text.encode("utf-8"),
            content_type=_TEXT,
            credentials=credentials,
        )

    async def put_json(
        self, path: str, body: Any, *, credentials: UserCredentials | None = None
    ) -> httpx.Response:
        """PUT a JSON body."""
        return await self.request("PUT", path, json=body, credentials=credentials)

    async def put_bytes(
        self, path: str, data: bytes, *, credentials: UserCredentials | None = None
    ) -> httpx.Response:
        """PUT an ``application/octet-stream`` body."""
        return await self.request(
            "PUT", path, content=data, content_type=_OCTET, credentials=credentials
        )

    async def post_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str,
        *,
        credentials: UserCredentials | None = None,
    ) -> httpx.Response:
        """POST a raw body with an explicit content type."""
        return await self.request(
            "POST", path, content=data, content_type=content_type, credentials=credentials
        )

    async def delete(self, path: str, *, credentials: UserCredentials | None = None) -> None:
        """HTTP DELETE."""
        await self.request("DELETE", path, credentials=credentials)

    async def download(self, url: str, *, credentials: UserCredentials | None = None) -> bytes:
        """GET an absolute URL handed out by the server (a value reference)."""
        return await self.get_bytes(url, credentials=credentials)

    # ------------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        accept: str | None = None,
        content_type: str | None = None,
        credentials: UserCredentials | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map HTTP errors to SDK exceptions."""
        if not self._client:
            raise ServerError("Connection not open. Use 'async with' context.")

        headers: dict[str, str] = {}
        if accept:
            headers["Accept"] = accept
        if content_type:
            headers["Content-Type"] = content_type
        if credentials is not None:
            kwargs["auth"] = credentials.auth()

        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.ConnectError as exc:
            raise ServerUnavailableError(f"Cannot connect to {self._address}") from exc
        except httpx.TimeoutException as exc:
            raise ServerUnavailableError(f"Request timed out after {self._timeout}s") from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(f"Server refused credentials for {method} {path}")

        if status == 404:
            run_id, sub_resource = _run_from_path(path)
            if run_id and not (sub_resource and await self._run_exists(run_id, credentials)):
                raise RunNotFoundError(run_id=run_id)
            raise ServerError(
                f"Server error 404: {method} {path} not found",
                details={"status_code": status, "method": method, "path": path},
            )

        if status >= 400:
            raise ServerError(
                f"Server error {status}: {response.text}",
                details={"status_code": status, "method": method, "path": path},
            )

        return response

    async def _run_exists(self, run_id: str, credentials: UserCredentials | None) -> bool:
        """Whether ``/runs/<id>`` itself resolves, after a 404 on one of its resources."""
        try:
            await self.request(
                "GET", f"/runs/{quote(run_id, safe='')}", accept=_JSON, credentials=credentials
            )
        except RunNotFoundError:
            return False
        return True


def _run_from_path(path: str) -> tuple[str, bool]:
    """Return the run id of a ``/runs/<id>[/...]`` path and whether a sub-resource follows."""
    parts = [p for p in httpx.URL(path).path.split("/") if p]
    if "runs" in parts:
        idx = parts.index("runs")
        if idx + 1 < len(parts):
            return parts[idx + 1], idx + 2 < len(parts)
    return "", False
