"""Shared test fixtures for SDK tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from taverna_server_sdk import Server
from taverna_server_sdk.testing import FakeTavernaServer

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

@pytest.fixture
def workflow() -> bytes:
    return b"<workflow xmlns='http://taverna.sf.net/2008/xml/t2flow'/>"


@pytest.fixture
def fake() -> FakeTavernaServer:
    """A fake server with one scalar input and a mix of outputs."""
    return FakeTavernaServer(
        inputs={"in1": 0},
        outputs={
            "out1": "hello",
            "list": ["a", "bb", "ccc"],
        },
        stdout="all good\n",
    )


@pytest.fixture
async def server(fake: FakeTavernaServer) -> AsyncIterator[Server]:
    """An open Server talking to *fake*."""
    async with Server(fake.address, transport=fake.transport) as srv:
        yield srv
