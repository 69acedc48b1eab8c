"""``taverna output`` — inspect the outputs of an existing run."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from taverna_server_cli import _async
from taverna_server_cli._output import (
    describe_value,
    format_index,
    print_data,
    print_result,
    print_success,
)
from taverna_server_cli._params import COORDINATE, SERVER_ADDRESS
from taverna_server_cli._render import describe_port, value_data
from taverna_server_cli.main import handle_errors
from taverna_server_sdk import AddressingError, RunDriver, leaves, resolve
from taverna_server_sdk.types import DEFAULT_BACLAVA_OUTPUT

if TYPE_CHECKING:
    from taverna_server_cli._context import CliContext
    from taverna_server_sdk import OutputPort, PortValue


@click.command("output")
@click.argument("server", type=SERVER_ADDRESS)
@click.argument("run_id")
@click.option(
    "-d",
    "--data",
    "with_data",
    is_flag=True,
    default=False,
    help="Return the actual output data rather than a reference to it. This only takes "
    "effect for ports with a depth of zero or one, or for values picked with -c.",
)
@click.option(
    "-r",
    "--refs",
    is_flag=True,
    default=False,
    help="List the reference of every value of each port.",
)
@click.option(
    "-n",
    "--name",
    "names",
    multiple=True,
    metavar="PORT",
    help="Only show output port PORT (repeatable).",
)
@click.option(
    "-c",
    "--coordinate",
    "coordinates",
    type=COORDINATE,
    multiple=True,
    metavar="NAME:I1,I2,...",
    help="Show the single value of port NAME at the given list index (repeatable).",
)
@click.option(
    "-o",
    "--baclava-out",
    type=click.Path(dir_okay=False, path_type=Path),
    is_flag=False,
    flag_value=Path(DEFAULT_BACLAVA_OUTPUT),
    default=None,
    help="Download the run's Baclava output file instead. A filename may be specified or "
    f"'{DEFAULT_BACLAVA_OUTPUT}' is used.",
)
@click.option(
    "-D",
    "--delete",
    "delete_run",
    is_flag=True,
    default=False,
    help="Delete the run from the server once its outputs have been read.",
)
@click.pass_obj
@handle_errors
def output_cmd(
    ctx: CliContext,
    server: str,
    run_id: str,
    with_data: bool,
    refs: bool,
    names: tuple[str, ...],
    coordinates: tuple[tuple[str, tuple[int, ...]], ...],
    baclava_out: Path | None,
    delete_run: bool,
) -> None:
    """Show the outputs of run RUN_ID on SERVER."""

    async def _collect() -> tuple[bytes | None, list[str | bytes], dict[str, Any]]:
        async with ctx.open_server(server) as srv:
            run = await srv.get_run(run_id)
            driver = RunDriver(srv, run)
            bundle: bytes | None = None
            lines: list[str | bytes] = []
            payload: dict[str, Any] = {"run_id": run.identifier, "ports": [], "values": []}

            if baclava_out is not None:
                bundle = await run.baclava_output(baclava_out.name)
            else:
                ports = await run.output_ports()
                for port in _select(ports, names, coordinates):
                    if ctx.json_mode:
                        payload["ports"].append(
                            await describe_port(port, with_data=with_data and port.depth <= 1)
                        )
                    else:
                        lines.extend(await _port_lines(port, with_data=with_data, refs=refs))
                for name, index in coordinates:
                    value = resolve(_lookup(ports, name), index)
                    if ctx.json_mode:
                        entry = {"port": name, "index": list(index), **describe_value(value)}
                        if with_data and not value.is_error:
                            entry.update(await value_data(value))
                        payload["values"].append(entry)
                    else:
                        lines.append(f"{name}{format_index(index)} {{")
                        lines.extend(await _value_lines(value, with_data=with_data))
                        lines.append("}")

            if delete_run:
                await driver.delete()
                ctx.progress("Run deleted")
            return bundle, lines, payload

    bundle, lines, payload = _async.run_async(_collect())

    if bundle is not None and baclava_out is not None:
        try:
            baclava_out.write_bytes(bundle)
        except OSError as exc:
            raise click.ClickException(
                f"Could not write baclava file '{baclava_out.absolute()}': {exc}"
            ) from None
        payload["baclava_out"] = str(baclava_out)
        if not ctx.json_mode:
            print_success(ctx, f"Baclava file written to '{baclava_out}'")

    if ctx.json_mode:
        print_result(ctx, payload)
        return
    for line in lines:
        print_data(ctx, line)


def _lookup(ports: dict[str, OutputPort], name: str) -> OutputPort:
    try:
        return ports[name]
    except KeyError:
        available = ", ".join(sorted(ports)) or "none"
        raise AddressingError(
            f"Run has no output port '{name}' (available: {available})",
            details={"available": sorted(ports)},
        ) from None


def _select(
    ports: dict[str, OutputPort],
    names: tuple[str, ...],
    coordinates: tuple[tuple[str, tuple[int, ...]], ...],
) -> list[OutputPort]:
    """Ports to summarise: those named, all when nothing was asked for."""
    if names:
        return [_lookup(ports, name) for name in dict.fromkeys(names)]
    if coordinates:
        return []
    return list(ports.values())


async def _port_lines(port: OutputPort, *, with_data: bool, refs: bool) -> list[str | bytes]:
    lines: list[str | bytes]
    if with_data and port.depth <= 1:
        lines = [f"{port} {{"]
        for _, value in leaves(port):
            lines.extend(await _value_lines(value, with_data=True))
        lines.append("}")
        return lines

    lines = [f"{port}: {port.total_size} bytes"]
    if refs:
        for index, value in leaves(port):
            target = value.reference if value.reference is not None else f"<error: {value.error}>"
            lines.append(f" {format_index(index)} {target}")
    return lines


async def _value_lines(value: PortValue, *, with_data: bool) -> list[str | bytes]:
    if value.is_error:
        return [f" Error:        {value.error}"]
    lines: list[str | bytes] = [
        f" Reference:    {value.reference}",
        f" Content type: {value.content_type}",
        f" Data size:    {value.size}",
    ]
    if with_data:
        lines.extend([" Data: <<", await value.payload(), ">>"])
    return lines
