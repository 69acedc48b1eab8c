"""Tests for main CLI entry point."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from taverna_server_cli import __version__
from taverna_server_cli.main import cli, main
from taverna_server_sdk import (
    AuthenticationError,
    IndexOutOfRangeError,
    InputsNotSetError,
    RunNotFoundError,
    ServerError,
    ServerUnavailableError,
    UnreadableInputError,
    WorkflowRejectedError,
)

if TYPE_CHECKING:
    from click.testing import CliRunner

SERVER = "http://taverna.test:8080/taverna"
RUN_ID = "6c2b0bbd-7b6b-4d5e-8c8d-2f0f6f0f4e11"


class TestCli:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
        assert "REST API version: 2.2a" in result.output

    def test_short_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["-v"])
        assert result.exit_code == 0
        assert "taverna" in result.output

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["-h"])
        assert result.exit_code == 0
        assert "Taverna 2 Server" in result.output

    def test_commands_registered(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        for command in ("run", "output", "config"):
            assert command in result.output

    def test_invalid_server_address(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["output", "not-a-uri", RUN_ID])
        assert result.exit_code == 2
        assert "not an absolute http(s) URI" in result.output


class TestMainEntryPoint:
    def _exit_code(self, args: list[str]) -> int | str | None:
        with pytest.raises(SystemExit) as info:
            main(args)
        return info.value.code

    def test_help_exits_zero(self) -> None:
        assert self._exit_code(["--help"]) == 0

    def test_version_exits_zero(self) -> None:
        assert self._exit_code(["--version"]) == 0

    def test_usage_error_exits_one(self) -> None:
        assert self._exit_code(["output", SERVER]) == 1

    def test_unknown_option_exits_one(self) -> None:
        assert self._exit_code(["run", "--bogus", SERVER]) == 1

    def test_command_failure_exits_one(self, patch_run_async: Any) -> None:
        with patch_run_async(side_effect=RunNotFoundError(run_id=RUN_ID)):
            assert self._exit_code(["output", SERVER, RUN_ID]) == 1

    def test_interrupt_exits_one_without_traceback(
        self, patch_run_async: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch_run_async(side_effect=KeyboardInterrupt()):
            assert self._exit_code(["output", SERVER, RUN_ID]) == 1
        err = capsys.readouterr().err
        assert "Aborted!" in err
        assert "Traceback" not in err


class TestHandleErrors:
    def _invoke(self, runner: CliRunner, patch_run_async: Any, exc: Exception) -> Any:
        with patch_run_async(side_effect=exc):
            return runner.invoke(cli, ["output", SERVER, RUN_ID])

    def test_auth_error(self, runner: CliRunner, patch_run_async: Any) -> None:
        result = self._invoke(runner, patch_run_async, AuthenticationError("401"))
        assert result.exit_code == 1
        assert "Authentication failed" in result.stderr

    def test_server_unavailable(self, runner: CliRunner, patch_run_async: Any) -> None:
        exc = ServerUnavailableError(f"Cannot connect to {SERVER}")
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "Cannot connect" in result.stderr

    def test_run_not_found(self, runner: CliRunner, patch_run_async: Any) -> None:
        result = self._invoke(runner, patch_run_async, RunNotFoundError(run_id=RUN_ID))
        assert result.exit_code == 1
        assert f"Could not find run '{RUN_ID}'" in result.stderr

    def test_inputs_not_set_lists_names(self, runner: CliRunner, patch_run_async: Any) -> None:
        exc = InputsNotSetError(input_names=["in1", "in2"])
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "At least one input has not been set" in result.stderr
        assert " - in1" in result.stderr
        assert " - in2" in result.stderr

    def test_unreadable_input(self, runner: CliRunner, patch_run_async: Any) -> None:
        exc = UnreadableInputError("Cannot read input file 'x.txt'", path="x.txt")
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "could not be read" in result.stderr
        assert "x.txt" in result.stderr

    def test_workflow_rejected(self, runner: CliRunner, patch_run_async: Any) -> None:
        exc = WorkflowRejectedError("Server rejected the workflow: 400")
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "rejected the workflow" in result.stderr

    def test_addressing_error(self, runner: CliRunner, patch_run_async: Any) -> None:
        exc = IndexOutOfRangeError("Index 5 out of range", index=(5,), length=3)
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "Index 5 out of range" in result.stderr

    def test_generic_server_error(self, runner: CliRunner, patch_run_async: Any) -> None:
        result = self._invoke(runner, patch_run_async, ServerError("Server error 500: boom"))
        assert result.exit_code == 1
        assert "Server error 500" in result.stderr

    def test_unexpected_error(self, runner: CliRunner, patch_run_async: Any) -> None:
        result = self._invoke(runner, patch_run_async, RuntimeError("kaput"))
        assert result.exit_code == 1
        assert "Unexpected error: kaput" in result.stderr

    def test_unexpected_error_redacts_secrets(
        self, runner: CliRunner, patch_run_async: Any
    ) -> None:
        exc = RuntimeError("Authorization: Basic YWxpY2U6c2VjcmV0")
        result = self._invoke(runner, patch_run_async, exc)
        assert result.exit_code == 1
        assert "YWxpY2U6c2VjcmV0" not in result.stderr
        assert "An unexpected error occurred." in result.stderr
