"""Click CLI entry point with lazy-loaded subcommands."""

from __future__ import annotations

import importlib
import logging
import sys

import click

from kondo_mcp.api import KondoService
from kondo_mcp.config import Settings

# Lazy-loading command group: imports command modules only when invoked.
# This keeps fastmcp out of `kondo-mcp run` and `kondo-mcp schema`.
_COMMANDS = {
    "mcp":    ("kondo_mcp.mcp_server",          "mcp_cmd"),
    "run":    ("kondo_mcp.commands.cmd_run",    "run_cmd"),
    "schema": ("kondo_mcp.commands.cmd_schema", "schema"),
    "status": ("kondo_mcp.commands.cmd_status", "status"),
}


class LazyGroup(click.Group):
    """A Click group that lazy-loads command modules on first access."""

    def list_commands(self, ctx):
        return sorted(_COMMANDS.keys())

    def get_command(self, ctx, cmd_name):
        if cmd_name not in _COMMANDS:
            return None
        module_path, attr_name = _COMMANDS[cmd_name]
        mod = importlib.import_module(module_path)
        return getattr(mod, attr_name)


def _configure_logging(verbosity: int) -> None:
    # stdout carries the MCP stdio transport, so logs always go to stderr.
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group(cls=LazyGroup)
@click.version_option(package_name="kondo-mcp")
@click.option('-v', '--verbose', count=True, help='Log to stderr (-v info, -vv debug)')
@click.pass_context
def cli(ctx, verbose):
    """kondo-mcp: clj-kondo static analysis as MCP tools."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    if "service" not in ctx.obj:
        ctx.obj["service"] = KondoService(Settings.from_env())
