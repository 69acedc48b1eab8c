"""Root CLI entry point — ``taverna`` command group."""

from __future__ import annotations

import functools
import sys
from typing import Any

import click
from rich.console import Console

from taverna_server_cli import __version__
from taverna_server_cli._config import load_config
from taverna_server_cli._context import CliContext
from taverna_server_cli._logging import level_for_verbosity, setup_logging
from taverna_server_sdk import (
    AddressingError,
    AuthenticationError,
    InputsNotSetError,
    RunNotFoundError,
    ServerUnavailableError,
    TavernaServerError,
    UnreadableInputError,
    WorkflowRejectedError,
)

_SENSITIVE_KEYWORDS = ("authorization", "basic ", "password", "secret", "token")

_VERSION_MESSAGE = "%(prog)s, version %(version)s\nTaverna 2 Server REST API version: 2.2a"

# ---------------------------------------------------------------------------
# Error-handling decorator
# ---------------------------------------------------------------------------


def handle_errors(fn: Any) -> Any:
    """Catch SDK exceptions and render user-friendly messages."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except click.exceptions.Exit:
            raise
        except InputsNotSetError as exc:
            names = "\n".join(f" - {name}" for name in exc.input_names)
            _die(f"At least one input has not been set:\n{names}")
        except UnreadableInputError as exc:
            _die(f"One of the files you set as an input could not be read. Full error is:\n{exc}")
        except AuthenticationError:
            _die(
                "Authentication failed. Check your username and password "
                "(-u/-p or TAVERNA_USERNAME/TAVERNA_PASSWORD)."
            )
        except ServerUnavailableError as exc:
            _die(str(exc) or "Server unavailable.")
        except WorkflowRejectedError as exc:
            _die(str(exc) or "The server rejected the workflow.")
        except RunNotFoundError as exc:
            _die(f"Could not find run '{exc.run_id}'.")
        except AddressingError as exc:
            _die(str(exc))
        except TavernaServerError as exc:
            _die(str(exc))
        except click.ClickException:
            raise
        except Exception as exc:
            msg = str(exc)
            if any(kw in msg.lower() for kw in _SENSITIVE_KEYWORDS):
                msg = "An unexpected error occurred."
            _die(f"Unexpected error: {msg}")

    return wrapper


def _die(message: str) -> None:
    raise click.ClickException(message)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-u", "--username", default=None, help="The username to use for server operations.")
@click.option(
    "-p", "--password", default=None, help="The password to use for the supplied username."
)
@click.option("--profile", default=None, help="Config profile name.")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output raw JSON.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Request timeout in seconds.",
)
@click.option("--verbose", count=True, help="Log progress (repeat for debug output).")
@click.option("--log-json", is_flag=True, default=False, help="Emit log records as JSON.")
@click.version_option(__version__, "-v", "--version", prog_name="taverna", message=_VERSION_MESSAGE)
@click.pass_context
def cli(
    ctx: click.Context,
    username: str | None,
    password: str | None,
    profile: str | None,
    json_mode: bool,
    timeout: float | None,
    verbose: int,
    log_json: bool,
) -> None:
    """Drive workflow runs on a Taverna 2 Server.

    Commands take the full URI of the server to connect to as SERVER,
    e.g. http://example.com:8080/taverna.
    """
    seeded = ctx.obj if isinstance(ctx.obj, dict) else {}
    setup_logging(level_for_verbosity(verbose), json_format=log_json)
    cfg = load_config(username=username, password=password, timeout=timeout, profile=profile)
    ctx.obj = CliContext(
        console=Console(),
        err_console=Console(stderr=True),
        json_mode=json_mode,
        config=cfg,
        transport=seeded.get("transport"),
    )


# ---------------------------------------------------------------------------
# Register commands (lazy imports to keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    from taverna_server_cli.commands.config_cmd import config_group
    from taverna_server_cli.commands.output import output_cmd
    from taverna_server_cli.commands.run import run_cmd

    cli.add_command(run_cmd)
    cli.add_command(output_cmd)
    cli.add_command(config_group)


_register_commands()


# ---------------------------------------------------------------------------
# Console script
# ---------------------------------------------------------------------------


def main(args: list[str] | None = None) -> None:
    """Console-script entry point; every failure, usage errors included, exits 1."""
    try:
        code = cli.main(args=args, prog_name="taverna", standalone_mode=False)
    except click.UsageError as exc:
        exc.show()
        sys.exit(1)
    except click.ClickException as exc:
        exc.show()
        sys.exit(exc.exit_code)
    except (click.Abort, KeyboardInterrupt):
        click.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(code if isinstance(code, int) else 0)
