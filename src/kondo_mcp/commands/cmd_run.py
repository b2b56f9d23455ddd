"""Run one kondo command in-process and print its JSON result."""

from __future__ import annotations

import click

from kondo_mcp.exit_codes import (
    DESCRIPTIONS,
    EXIT_ENGINE_FAILURE,
    EXIT_ERROR,
    EXIT_USAGE,
    exit_with,
)
from kondo_mcp.output.formatter import envelope_payload, to_json

_USAGE_CODES = {"UNKNOWN_COMMAND", "MISSING_PARAMETER", "INVALID_PARAMETER"}


@click.command("run")
@click.argument("command")
@click.option("--path", "-p", default=None, help="File or directory to analyze")
@click.option("--ns", "namespace", default=None, help="Namespace of the target/source var")
@click.option("--var-name", default=None, help="Name of the var/function")
@click.option("--level", default=None, help="Minimum lint severity: error, warning, info")
@click.option("--limit", type=int, default=None, help="Maximum items in list results")
@click.option("--envelope", is_flag=True, help="Print the full MCP content envelope")
@click.pass_context
def run_cmd(ctx, command, path, namespace, var_name, level, limit, envelope):
    """Run COMMAND (analyze, lint, callers, calls, find_var,
    namespace_graph, unused_vars) and print the result as JSON.

    Exits non-zero when the command fails.
    """
    service = ctx.obj["service"]
    result = service.call(
        command, path=path, namespace=namespace, var_name=var_name, level=level, limit=limit,
    )
    payload = envelope_payload(result)
    click.echo(to_json(result if envelope else payload))

    if result.get("isError"):
        code = payload.get("error_code") if isinstance(payload, dict) else None
        if code in _USAGE_CODES:
            exit_code = EXIT_USAGE
        elif code == "ENGINE_FAILURE":
            exit_code = EXIT_ENGINE_FAILURE
        else:
            exit_code = EXIT_ERROR
        exit_with(exit_code, DESCRIPTIONS[exit_code])
