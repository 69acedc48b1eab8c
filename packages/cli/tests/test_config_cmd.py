"""Tests for config commands."""

from __future__ import annotations

import json
import tomllib
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from taverna_server_cli.main import cli

if TYPE_CHECKING:
    from pathlib import Path

    from click.testing import CliRunner


def _settings(runner: CliRunner, *args: str) -> dict[str, dict[str, object]]:
    result = runner.invoke(cli, ["--json", *args, "config", "show"])
    assert result.exit_code == 0, result.output
    return {row["setting"]: row for row in json.loads(result.stdout)}


class TestConfigShow:
    def test_table(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        for name in ("username", "password", "timeout", "poll_interval"):
            assert name in result.output
        assert "Profile 'default'" in result.output

    def test_defaults(self, runner: CliRunner) -> None:
        rows = _settings(runner)
        assert rows["timeout"] == {"setting": "timeout", "value": 30.0, "source": "default"}
        assert rows["password"]["value"] == ""

    def test_flags_and_masked_password(self, runner: CliRunner) -> None:
        rows = _settings(runner, "-u", "alice", "-p", "hunter2")
        assert rows["username"]["value"] == "alice"
        assert rows["username"]["source"] == "flag"
        assert rows["password"]["value"] == "***"

    def test_password_never_printed(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["-p", "hunter2", "config", "show"])
        assert result.exit_code == 0
        assert "hunter2" not in result.output

    def test_environment_source(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TAVERNA_POLL_INTERVAL", "0.5")
        rows = _settings(runner)
        assert rows["poll_interval"]["value"] == 0.5
        assert rows["poll_interval"]["source"] == "TAVERNA_POLL_INTERVAL"

    def test_file_source(self, runner: CliRunner, isolated_config: Path) -> None:
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text('[default]\nusername = "from-file"\n', encoding="utf-8")
        rows = _settings(runner)
        assert rows["username"]["value"] == "from-file"
        assert rows["username"]["source"] == f"{isolated_config} [default]"


class TestConfigSet:
    def test_active_profile_by_default(self, runner: CliRunner) -> None:
        with patch("taverna_server_cli.commands.config_cmd.save_config_value") as mock_save:
            result = runner.invoke(cli, ["--profile", "lab", "config", "set", "username", "al"])
        assert result.exit_code == 0, result.output
        mock_save.assert_called_once_with("username", "al", profile="lab")

    def test_explicit_profile(self, runner: CliRunner) -> None:
        with patch("taverna_server_cli.commands.config_cmd.save_config_value") as mock_save:
            result = runner.invoke(
                cli, ["config", "set", "timeout", "5", "--profile", "staging"]
            )
        assert result.exit_code == 0, result.output
        mock_save.assert_called_once_with("timeout", "5", profile="staging")

    def test_writes_file(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(cli, ["config", "set", "poll_interval", "0.25"])
        assert result.exit_code == 0, result.output
        data = tomllib.loads(isolated_config.read_text())
        assert data["default"]["poll_interval"] == "0.25"
        assert _settings(runner)["poll_interval"]["value"] == 0.25

    def test_password_masked(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(cli, ["config", "set", "password", "hunter2"])
        assert result.exit_code == 0, result.output
        assert "hunter2" not in result.stderr
        assert "password = ***" in result.stderr

    def test_unknown_key(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config", "set", "colour", "blue"])
        assert result.exit_code == 2
        assert "'colour' is not one of" in result.output

    @pytest.mark.parametrize("value", ["soon", "0"])
    def test_invalid_seconds(self, runner: CliRunner, isolated_config: Path, value: str) -> None:
        result = runner.invoke(cli, ["config", "set", "timeout", value])
        assert result.exit_code == 2
        assert "Invalid value for VALUE" in result.output
        assert not isolated_config.exists()
