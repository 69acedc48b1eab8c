"""Shared test fixtures for CLI tests."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from taverna_server_cli._config import CliConfig
from taverna_server_cli._context import CliContext
from taverna_server_sdk.testing import FakeTavernaServer

if TYPE_CHECKING:
    from pathlib import Path

_ENV_VARS = (
    "TAVERNA_USERNAME",
    "TAVERNA_PASSWORD",
    "TAVERNA_TIMEOUT",
    "TAVERNA_POLL_INTERVAL",
    "TAVERNA_PROFILE",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the real ~/.taverna/config.toml and TAVERNA_* variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "taverna" / "config.toml"
    monkeypatch.setattr("taverna_server_cli._config.CONFIG_PATH", config_file)
    return config_file


@pytest.fixture
def runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake() -> FakeTavernaServer:
    """An in-memory server: one scalar input, a scalar and a list output."""
    return FakeTavernaServer(
        inputs={"in1": 0},
        outputs={"out1": "hello", "list": ["a", "bb", "ccc"]},
        stdout="all good\n",
        finish_after=0,
    )


@pytest.fixture
def invoke(runner: CliRunner, fake: FakeTavernaServer) -> Any:
    """Invoke the CLI with its HTTP traffic routed to *fake*."""
    from taverna_server_cli.main import cli

    def _invoke(args: list[str], **kwargs: Any) -> Any:
        return runner.invoke(cli, args, obj={"transport": fake.transport}, **kwargs)

    return _invoke


@pytest.fixture
def workflow_file(tmp_path: Path) -> Path:
    path = tmp_path / "workflow.t2flow"
    path.write_bytes(b"<workflow xmlns='http://taverna.sf.net/2008/xml/t2flow'/>")
    return path


@pytest.fixture
def make_ctx() -> Any:
    """Factory for a CliContext writing to in-memory consoles."""

    def _make(*, json_mode: bool = False) -> tuple[CliContext, io.StringIO, io.StringIO]:
        out = io.StringIO()
        err = io.StringIO()
        ctx = CliContext(
            console=Console(file=out, no_color=True, width=200),
            err_console=Console(file=err, no_color=True, width=200),
            json_mode=json_mode,
            config=CliConfig(),
        )
        return ctx, out, err

    return _make


@pytest.fixture
def patch_run_async() -> Any:
    """Patch run_async to return a predetermined value.

    Usage::

        def test_foo(runner, patch_run_async):
            with patch_run_async(side_effect=RunNotFoundError(run_id="x")):
                result = runner.invoke(cli, ["output", SERVER, "x"])
                assert result.exit_code == 1
    """
    from contextlib import contextmanager

    @contextmanager
    def _patch(return_value: Any = None, side_effect: Any = None):  # type: ignore[no-untyped-def]
        target = "taverna_server_cli._async.run_async"

        _real_se = side_effect

        def _close_and_apply(coro: Any) -> Any:
            # Close the unawaited coroutine to suppress RuntimeWarning
            if hasattr(coro, "close"):
                coro.close()
            if _real_se is not None:
                if callable(_real_se) and not isinstance(_real_se, type):
                    return _real_se(coro)
                raise _real_se
            return return_value

        with patch(target, side_effect=_close_and_apply) as m:
            yield m

    return _patch
