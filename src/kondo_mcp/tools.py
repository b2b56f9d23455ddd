"""Command dispatch for the ``kondo`` MCP tool.

Every request goes through the same path::

    params -> resolve_request -> COMMAND_HANDLERS[command]
           -> AnalysisCache.get_or_compute(engine call) -> truncate -> envelope

No handler exception escapes :meth:`CommandDispatcher.dispatch`; failures
become error envelopes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from kondo_mcp.cache import AnalysisCache
from kondo_mcp.engine import AnalysisEngine
from kondo_mcp.exit_codes import EngineFailureError, KondoError, UnknownCommandError
from kondo_mcp.output.formatter import (
    DEFAULT_LIMIT,
    failure_envelope,
    text_envelope,
    truncate,
    unknown_command_envelope,
)
from kondo_mcp.params import LEVELS, Command, Request, resolve_request

log = logging.getLogger(__name__)


class CommandDispatcher:
    """Routes requests to handlers sharing one engine and one cache."""

    def __init__(
        self,
        engine: AnalysisEngine,
        cache: AnalysisCache,
        *,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.engine = engine
        self.cache = cache
        self.default_limit = default_limit

    def handle(self, params: Mapping[str, Any]) -> dict:
        """Dispatch on ``params["command"]``."""
        return self.dispatch(params.get("command"), params)

    def dispatch(self, command, params: Mapping[str, Any] | None = None) -> dict:
        params = params or {}
        try:
            request = resolve_request(params, command)
        except UnknownCommandError as exc:
            log.debug("unknown command %r", command)
            return unknown_command_envelope(exc.command, exc.available)
        except KondoError as exc:
            return _kondo_error_envelope(command, exc)

        handler = COMMAND_HANDLERS[request.command]
        name = request.command.value
        try:
            payload = handler(self, request)
        except KondoError as exc:
            log.warning("kondo %s failed: %s", name, exc.message)
            return _kondo_error_envelope(name, exc)
        except Exception as exc:
            log.error("kondo %s failed: %s", name, exc, exc_info=True)
            return failure_envelope(name, str(exc) or type(exc).__name__)

        try:
            return text_envelope(payload)
        except (TypeError, ValueError) as exc:
            log.error("kondo %s: result is not serializable: %s", name, exc)
            return failure_envelope(name, f"malformed engine result for {name}: {exc}")

    def cached(self, request: Request, compute: Callable[[], Any]) -> Any:
        return self.cache.get_or_compute(request.cache_key(), compute)

    def truncate(self, items, request: Request):
        return truncate(items, request.limit, self.default_limit)

    def invalidate_cache(self) -> None:
        self.cache.invalidate_all()


def _kondo_error_envelope(command, exc: KondoError) -> dict:
    extra = {}
    parameter = getattr(exc, "parameter", None)
    if parameter:
        extra["parameter"] = parameter
    return failure_envelope(command, exc.message, exc.error_code, **extra)


def _expect_list(value, command: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise EngineFailureError(
            f"malformed engine result for {command}: expected a list, got {type(value).__name__}"
        )
    return list(value)


def _expect_dict(value, command: str) -> dict:
    if not isinstance(value, dict):
        raise EngineFailureError(
            f"malformed engine result for {command}: expected an object, got {type(value).__name__}"
        )
    return value


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_analyze(d: CommandDispatcher, req: Request):
    path = req.require_path()
    return _expect_dict(d.cached(req, lambda: d.engine.analyze(path)), "analyze")


def _handle_lint(d: CommandDispatcher, req: Request):
    path = req.require_path()
    level = req.effective_level
    findings = _expect_list(d.cached(req, lambda: d.engine.lint(path, level)), "lint")
    result = d.truncate(findings, req)
    return {
        "findings": result.items,
        "count": result.total_count,
        "shown": result.shown,
        "truncated": result.truncated,
        "level": level,
    }


def _handle_callers(d: CommandDispatcher, req: Request):
    path = req.require_path()
    ns = req.require("namespace")
    var = req.require("var_name")
    callers = _expect_list(d.cached(req, lambda: d.engine.find_callers(path, ns, var)), "callers")
    result = d.truncate(callers, req)
    return {
        "target": {"ns": ns, "var": var},
        "callers": result.items,
        "count": result.total_count,
        "shown": result.shown,
        "truncated": result.truncated,
    }


def _handle_calls(d: CommandDispatcher, req: Request):
    path = req.require_path()
    ns = req.require("namespace")
    var = req.require("var_name")
    calls = _expect_list(d.cached(req, lambda: d.engine.find_calls(path, ns, var)), "calls")
    result = d.truncate(calls, req)
    return {
        "source": {"ns": ns, "var": var},
        "calls": result.items,
        "count": result.total_count,
        "shown": result.shown,
        "truncated": result.truncated,
    }


def _handle_find_var(d: CommandDispatcher, req: Request):
    path = req.require_path()
    var = req.require("var_name")
    ns = req.namespace
    if ns:
        return d.cached(req, lambda: d.engine.find_var(path, var, ns))
    return d.cached(req, lambda: d.engine.find_var(path, var))


def _handle_namespace_graph(d: CommandDispatcher, req: Request):
    path = req.require_path()
    graph = _expect_dict(d.cached(req, lambda: d.engine.namespace_graph(path)), "namespace_graph")
    nodes = _expect_list(graph.get("nodes", []), "namespace_graph")
    edges = _expect_list(graph.get("edges", []), "namespace_graph")
    return {
        "nodes": nodes,
        "edges": edges,
        "node_count": len(nodes),
        "edge_count": len(edges),
    }


def _handle_unused_vars(d: CommandDispatcher, req: Request):
    path = req.require_path()
    unused = _expect_list(d.cached(req, lambda: d.engine.unused_vars(path)), "unused_vars")
    result = d.truncate(unused, req)
    return {
        "unused": result.items,
        "count": result.total_count,
        "shown": result.shown,
        "truncated": result.truncated,
    }


COMMAND_HANDLERS: dict[Command, Callable[[CommandDispatcher, Request], Any]] = {
    Command.ANALYZE: _handle_analyze,
    Command.LINT: _handle_lint,
    Command.CALLERS: _handle_callers,
    Command.CALLS: _handle_calls,
    Command.FIND_VAR: _handle_find_var,
    Command.NAMESPACE_GRAPH: _handle_namespace_graph,
    Command.UNUSED_VARS: _handle_unused_vars,
}

_missing = set(Command) - set(COMMAND_HANDLERS)
if _missing:
    raise RuntimeError(f"commands without handlers: {sorted(c.value for c in _missing)}")


# ---------------------------------------------------------------------------
# Tool schema
# ---------------------------------------------------------------------------

TOOL_NAME = "kondo"


def tool_def() -> dict:
    """MCP tool definition for the composite ``kondo`` tool."""
    return {
        "name": TOOL_NAME,
        "description": (
            "clj-kondo static analysis: "
            + ", ".join(Command.names())
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "command": {"type": "string", "enum": Command.names()},
                "path": {
                    "type": "string",
                    "description": "Path to file or directory to analyze",
                },
                "namespace": {
                    "type": "string",
                    "description": "Namespace of the target/source var",
                },
                "var_name": {
                    "type": "string",
                    "description": "Name of the var/function",
                },
                "level": {
                    "type": "string",
                    "description": "Minimum severity level for lint (default: warning)",
                    "enum": list(LEVELS),
                },
                "limit": {
                    "type": "integer",
                    "description": f"Maximum items in list results (default: {DEFAULT_LIMIT})",
                },
            },
            "required": ["command"],
        },
    }
