"""Print the MCP tool schema for the composite kondo tool."""

from __future__ import annotations

import click

from kondo_mcp.output.formatter import to_json
from kondo_mcp.tools import tool_def


@click.command("schema")
def schema():
    """Print the ``kondo`` tool definition (name, description, inputSchema)."""
    click.echo(to_json(tool_def()))
