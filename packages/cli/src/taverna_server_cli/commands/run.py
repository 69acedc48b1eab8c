"""``taverna run`` — submit a workflow, run it to completion and show its outputs."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

import click

from taverna_server_cli import _async
from taverna_server_cli._output import print_data, print_result, print_success
from taverna_server_cli._params import PORT_ASSIGNMENT, SERVER_ADDRESS
from taverna_server_cli._render import describe_port, render_port
from taverna_server_cli.main import handle_errors
from taverna_server_sdk import RunDriver, WaitOutcome
from taverna_server_sdk.types import DEFAULT_BACLAVA_OUTPUT

if TYPE_CHECKING:
    from taverna_server_cli._context import CliContext
    from taverna_server_sdk import RunResult


@click.command("run")
@click.argument("server", type=SERVER_ADDRESS)
@click.option(
    "-w",
    "--workflow",
    "workflow_file",
    type=click.File("rb"),
    default=None,
    help="The workflow to run. If this is not specified then the workflow is read from stdin.",
)
@click.option(
    "-i",
    "--input",
    "inputs",
    type=PORT_ASSIGNMENT,
    multiple=True,
    metavar="INPUT:VALUE",
    help="Set input port INPUT to VALUE.",
)
@click.option(
    "-f",
    "--input-file",
    "input_files",
    type=PORT_ASSIGNMENT,
    multiple=True,
    metavar="INPUT:FILE",
    help="Set input port INPUT to use FILE for its input.",
)
@click.option(
    "-b",
    "--baclava-in",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Set Baclava file for input port values.",
)
@click.option(
    "-o",
    "--baclava-out",
    type=click.Path(dir_okay=False, path_type=Path),
    is_flag=False,
    flag_value=Path(DEFAULT_BACLAVA_OUTPUT),
    default=None,
    help="Return outputs in Baclava format. A filename may be specified or "
    f"'{DEFAULT_BACLAVA_OUTPUT}' is used.",
)
@click.option(
    "-r",
    "--output-refs",
    is_flag=True,
    default=False,
    help="Return URIs that point to the data items of the output rather than the data "
    "items themselves.",
)
@click.option(
    "-D",
    "--delete",
    "delete_run",
    is_flag=True,
    default=False,
    help="Delete the run from the server when it is complete. By default the run and its "
    "results are preserved until the server's expiry time is reached.",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0.01),
    default=None,
    help="Seconds between status checks (default from config, 1s).",
)
@click.pass_obj
@handle_errors
def run_cmd(
    ctx: CliContext,
    server: str,
    workflow_file: BinaryIO | None,
    inputs: tuple[tuple[str, str], ...],
    input_files: tuple[tuple[str, str], ...],
    baclava_in: Path | None,
    baclava_out: Path | None,
    output_refs: bool,
    delete_run: bool,
    poll_interval: float | None,
) -> None:
    """Run a workflow on SERVER and wait for it to finish."""
    workflow = _read_workflow(workflow_file)
    values = dict(inputs)
    files = {name: Path(path) for name, path in input_files}
    interval = poll_interval or ctx.config.poll_interval

    async def _run() -> tuple[RunResult, dict[str, Any]]:
        async with ctx.open_server(server) as srv:
            driver = RunDriver(srv)
            run = await driver.create(workflow)
            ctx.progress(f"Created run with id: {run.identifier}")
            ctx.progress(f"Created at {await run.create_time()}")

            config = await driver.configure_inputs(values, files, bundle=baclava_in)
            if config.bundle is not None:
                ctx.progress("Uploaded baclava input file")
            for assignment in config.assigned:
                if assignment.file is not None:
                    ctx.progress(
                        f"Set input '{assignment.port}' to use file "
                        f"'{assignment.file.name}' as input"
                    )
                else:
                    ctx.progress(f"Set input '{assignment.port}' to '{assignment.value}'")
            for name in config.unknown:
                ctx.progress(f"Workflow has no input '{name}'; ignored", style="yellow")

            if baclava_out is not None:
                await driver.request_bundle_output(baclava_out.name)

            await driver.start()
            ctx.progress(f"Started at {await run.start_time()}")

            ctx.progress("Running", end="")
            with _async.cancel_on_interrupt() as cancel:
                outcome = await driver.wait(
                    interval=interval,
                    cancel=cancel,
                    on_tick=lambda: ctx.progress(".", end=""),
                )
            ctx.progress("")
            if outcome is WaitOutcome.CANCELLED:
                raise click.ClickException(
                    f"Interrupted while waiting. Run {run.identifier} continues on the server."
                )
            ctx.progress(f"Finished at {await run.finish_time()}")

            result = await driver.collect(bundle=baclava_out is not None)
            rendered: dict[str, Any] = {}
            for name, port in result.outputs.items():
                if ctx.json_mode:
                    rendered[name] = await describe_port(port, with_data=not output_refs)
                else:
                    rendered[name] = await render_port(port, refs=output_refs)

            if delete_run:
                await driver.delete()
                ctx.progress("Run deleted")
            return result, rendered

    result, rendered = _async.run_async(_run())

    if ctx.json_mode:
        print_result(ctx, _result_json(result, rendered, baclava_out))
    else:
        _print_run(ctx, result, rendered)

    if result.bundle is not None and baclava_out is not None:
        try:
            baclava_out.write_bytes(result.bundle)
        except OSError as exc:
            raise click.ClickException(
                f"Could not write baclava file '{baclava_out.absolute()}': {exc}"
            ) from None
        print_success(ctx, f"Baclava file written to '{baclava_out}'")


def _read_workflow(workflow_file: BinaryIO | None) -> bytes:
    if workflow_file is not None:
        workflow = workflow_file.read()
    else:
        stdin = click.get_binary_stream("stdin")
        if stdin.isatty():
            raise click.UsageError("No workflow provided.")
        workflow = stdin.read()
    if not workflow:
        raise click.UsageError("No workflow provided.")
    return workflow


def _print_run(ctx: CliContext, result: RunResult, rendered: dict[str, Any]) -> None:
    ctx.console.print(f"Exitcode: {result.exit_code}", highlight=False)
    if result.stdout:
        ctx.console.print("Stdout:", highlight=False)
        print_data(ctx, result.stdout)
    if result.stderr:
        ctx.console.print("Stderr:", highlight=False)
        print_data(ctx, result.stderr)
    if result.exit_code != 0 or result.bundle is not None:
        return
    ctx.console.print("Outputs:")
    for name, port in result.outputs.items():
        print_data(ctx, f"          {name} ({port.depth}) -> {rendered.get(name, '')}")


def _result_json(
    result: RunResult, ports: dict[str, Any], baclava_out: Path | None
) -> dict[str, Any]:
    return {
        "run_id": result.run_id,
        "exit_code": result.exit_code,
        "stdout": result.stdout,
        "stderr": result.stderr,
        "outputs": list(ports.values()),
        "baclava_out": str(baclava_out) if result.bundle is not None else None,
    }
