"""``taverna config``: inspect and edit stored settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from taverna_server_cli._config import SECRET_SETTINGS, SETTINGS, save_config_value
from taverna_server_cli._output import print_result, print_success
from taverna_server_cli.main import handle_errors

if TYPE_CHECKING:
    from taverna_server_cli._context import CliContext

_COLUMNS = [("Setting", "setting"), ("Value", "value"), ("Source", "source")]


@click.group("config")
def config_group() -> None:
    """Inspect and edit stored settings (~/.taverna/config.toml)."""


@config_group.command("show")
@click.pass_obj
@handle_errors
def config_show(ctx: CliContext) -> None:
    """Show the settings commands run with and where each comes from."""
    cfg = ctx.config
    rows = [
        {
            "setting": name,
            "value": _display(name, getattr(cfg, name)),
            "source": cfg.source_of(name),
        }
        for name in SETTINGS
    ]
    print_result(ctx, rows, columns=_COLUMNS, title=f"Profile '{cfg.profile}'")


@config_group.command("set")
@click.argument("key", type=click.Choice(sorted(SETTINGS)))
@click.argument("value")
@click.option("--profile", default=None, help="Profile to write (default: the active one).")
@click.pass_obj
@handle_errors
def config_set(ctx: CliContext, key: str, value: str, profile: str | None) -> None:
    """Store KEY = VALUE in the config file."""
    target = profile or ctx.config.profile
    try:
        path = save_config_value(key, value, profile=target)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="VALUE") from None
    print_success(ctx, f"[{target}] {key} = {_display(key, value)} ({path})")


def _display(name: str, value: object) -> object:
    if name in SECRET_SETTINGS:
        return "***" if value else ""
    return value
