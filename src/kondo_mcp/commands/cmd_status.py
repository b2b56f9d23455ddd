"""Show registration mode, cache and settings."""

from __future__ import annotations

import click

from kondo_mcp.output.formatter import to_json


@click.command("status")
@click.option("--register", is_flag=True, help="Run the registration pipeline first")
@click.pass_context
def status(ctx, register):
    """Show whether a host addon registry was found and current settings."""
    service = ctx.obj["service"]
    if register:
        service.start()
    click.echo(to_json(service.status()))
