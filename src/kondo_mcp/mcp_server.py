"""MCP (Model Context Protocol) server for kondo-mcp.

Exposes clj-kondo analysis as MCP tools so that AI coding agents can lint
Clojure code and query call graphs through a standard tool interface.

Usage:
    kondo-mcp mcp                    # stdio (for Claude Code, Cursor, etc.)
    kondo-mcp mcp --transport sse    # SSE on localhost:8000
    kondo-mcp mcp --transport streamable-http  # Streamable HTTP on localhost:8000
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.types import TextContent

from kondo_mcp.api import KondoService
from kondo_mcp.output.formatter import to_json
from kondo_mcp.tools import TOOL_NAME

log = logging.getLogger(__name__)

SERVER_NAME = "kondo-mcp"

_INSTRUCTIONS = (
    "clj-kondo static analysis for Clojure/ClojureScript projects. "
    "Use the `kondo` tool with a `command` (analyze, lint, callers, calls, "
    "find_var, namespace_graph, unused_vars) and a `path`. "
    "Results are cached for a few minutes; call kondo_invalidate_cache "
    "after editing files outside this session."
)

# Tools registered only in the "full" preset (one per command).
_PER_COMMAND_TOOLS = {
    "kondo_analyze",
    "kondo_lint",
    "kondo_find_callers",
    "kondo_find_calls",
    "kondo_find_var",
    "kondo_namespace_graph",
    "kondo_unused_vars",
}
_ADMIN_TOOLS = {"kondo_invalidate_cache", "kondo_cache_stats"}
_NON_IDEMPOTENT_TOOLS = {"kondo_invalidate_cache"}


def _tool_title(name: str) -> str:
    """Convert tool name to a human title."""
    short = name.removeprefix("kondo_").replace("_", " ")
    return short.title()


def _tool_annotations(name: str) -> dict:
    return {
        "title": _tool_title(name),
        "readOnlyHint": name not in _NON_IDEMPOTENT_TOOLS,
        "destructiveHint": False,
        "idempotentHint": name not in _NON_IDEMPOTENT_TOOLS,
        "openWorldHint": False,
    }


def _envelope_result(envelope: dict) -> list[TextContent]:
    """Convert a dispatcher envelope into MCP content, raising on errors.

    FastMCP turns a raised ToolError into a result with ``isError=True``
    carrying the same text.
    """
    blocks = [
        TextContent(type="text", text=block["text"])
        for block in envelope.get("content", [])
    ]
    if envelope.get("isError"):
        raise ToolError(blocks[0].text if blocks else "kondo command failed")
    return blocks


def create_server(service: KondoService) -> FastMCP:
    """Build a FastMCP server whose tools dispatch through *service*."""
    mcp = FastMCP(SERVER_NAME, instructions=_INSTRUCTIONS)
    full = service.settings.preset == "full"

    def _tool(name: str, description: str):
        def decorator(fn):
            if name in _PER_COMMAND_TOOLS and not full:
                return fn
            kwargs = {"name": name, "description": description}
            extra = {"annotations": _tool_annotations(name)}
            if name not in _ADMIN_TOOLS:
                # Results are pre-rendered JSON text blocks, not structured output.
                extra["output_schema"] = None
            try:
                return mcp.tool(**kwargs, **extra)(fn)
            except TypeError:
                # Older FastMCP releases without annotations/output_schema support.
                return mcp.tool(**kwargs)(fn)
        return decorator

    async def _call(command: str, **params) -> list[TextContent]:
        envelope = await asyncio.to_thread(service.call, command, **params)
        return _envelope_result(envelope)

    @_tool(TOOL_NAME, "clj-kondo static analysis: analyze, callers, calls, find_var, "
                      "lint, namespace_graph, unused_vars")
    async def kondo(
        command: str,
        path: str | None = None,
        namespace: str | None = None,
        var_name: str | None = None,
        level: str | None = None,
        limit: int | None = None,
    ) -> list[TextContent]:
        """Run a clj-kondo command against a file or directory.

        Args:
            command: analyze, lint, callers, calls, find_var, namespace_graph or unused_vars.
            path: File or directory to analyze.
            namespace: Namespace of the target/source var (callers, calls, find_var).
            var_name: Name of the var/function (callers, calls, find_var).
            level: Minimum lint severity: error, warning (default) or info.
            limit: Maximum items in list results (default 200).
        """
        return await _call(command, path=path, namespace=namespace,
                           var_name=var_name, level=level, limit=limit)

    @_tool("kondo_analyze", "Analyze Clojure code: var definitions, usages, namespaces, findings summary")
    async def analyze(path: str) -> list[TextContent]:
        return await _call("analyze", path=path)

    @_tool("kondo_lint", "Lint Clojure code: findings filtered by minimum severity level")
    async def lint(path: str, level: str = "warning", limit: int | None = None) -> list[TextContent]:
        return await _call("lint", path=path, level=level, limit=limit)

    @_tool("kondo_find_callers", "Find all call sites of a specific var")
    async def find_callers(path: str, namespace: str, var_name: str,
                           limit: int | None = None) -> list[TextContent]:
        return await _call("callers", path=path, namespace=namespace, var_name=var_name, limit=limit)

    @_tool("kondo_find_calls", "Find all vars that a function calls")
    async def find_calls(path: str, namespace: str, var_name: str,
                         limit: int | None = None) -> list[TextContent]:
        return await _call("calls", path=path, namespace=namespace, var_name=var_name, limit=limit)

    @_tool("kondo_find_var", "Find definition(s) of a var by name")
    async def find_var(path: str, var_name: str, namespace: str | None = None) -> list[TextContent]:
        return await _call("find_var", path=path, var_name=var_name, namespace=namespace)

    @_tool("kondo_namespace_graph", "Namespace dependency graph: nodes and edges")
    async def namespace_graph(path: str) -> list[TextContent]:
        return await _call("namespace_graph", path=path)

    @_tool("kondo_unused_vars", "Find unused private vars (dead code detection)")
    async def unused_vars(path: str, limit: int | None = None) -> list[TextContent]:
        return await _call("unused_vars", path=path, limit=limit)

    @_tool("kondo_invalidate_cache", "Drop all cached clj-kondo results")
    def invalidate_cache() -> dict:
        return service.invalidate_cache()

    @_tool("kondo_cache_stats", "Cache entries, hits, misses and engine time")
    def cache_stats() -> dict:
        return service.cache_stats()

    return mcp


def registered_tool_names(preset: str) -> list[str]:
    """Names of the tools :func:`create_server` registers for *preset*."""
    names = {TOOL_NAME} | _ADMIN_TOOLS
    if preset == "full":
        names |= _PER_COMMAND_TOOLS
    return sorted(names)


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------


@click.command()
@click.option('--transport', type=click.Choice(['stdio', 'sse', 'streamable-http']), default='stdio',
              help='transport protocol (default: stdio)')
@click.option('--host', default='127.0.0.1', help='host for network transports')
@click.option('--port', type=int, default=8000, help='port for network transports')
@click.option('--list-tools', is_flag=True, help='list registered tools and exit')
@click.pass_context
def mcp_cmd(ctx, transport, host, port, list_tools):
    """Start the kondo MCP server.

    \b
    usage:
      kondo-mcp mcp                    # stdio (for Claude Code, Cursor, etc.)
      kondo-mcp mcp --transport sse    # SSE on localhost:8000
      kondo-mcp mcp --list-tools       # show registered tools

    \b
    environment:
      KONDO_BIN=clj-kondo         # clj-kondo executable
      KONDO_MCP_TTL=300           # cache TTL in seconds (0 disables)
      KONDO_MCP_LIMIT=200         # default list result limit
      KONDO_MCP_PRESET=full       # full (one tool per command) or composite

    \b
    integration:
      claude mcp add kondo -- kondo-mcp mcp
    """
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    service = obj.get("service") or KondoService()

    if list_tools:
        names = registered_tool_names(service.settings.preset)
        click.echo(f"{len(names)} tools registered (preset: {service.settings.preset}):\n")
        for t in names:
            click.echo(f"  {t}")
        return

    server = create_server(service)
    outcome = service.start()
    sys.stderr.write(f"kondo-mcp: registration {to_json(outcome.as_dict())}\n")
    log.info("starting %s (transport: %s)", SERVER_NAME, transport)
    try:
        if transport == "stdio":
            server.run()
        elif transport == "sse":
            server.run(transport="sse", host=host, port=port)
        else:
            try:
                server.run(transport="streamable-http", host=host, port=port)
            except TypeError:
                # Older FastMCP versions may use "http" alias.
                server.run(transport="http", host=host, port=port)
    finally:
        service.shutdown()
