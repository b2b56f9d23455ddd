"""Command set, canonical requests and cache keys.

Composite callers merge parameters from several tool providers before
invoking a handler, so the same value may arrive under different names
(``ns`` vs ``namespace``, ``file_path`` vs ``path``).  The resolver folds
those aliases into one canonical :class:`Request`; the canonical name always
wins when both are present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from kondo_mcp.exit_codes import (
    InvalidParameterError,
    MissingParameterError,
    UnknownCommandError,
)


class Command(str, Enum):
    ANALYZE = "analyze"
    LINT = "lint"
    CALLERS = "callers"
    CALLS = "calls"
    FIND_VAR = "find_var"
    NAMESPACE_GRAPH = "namespace_graph"
    UNUSED_VARS = "unused_vars"

    @classmethod
    def names(cls) -> list[str]:
        """Sorted list of every valid command name."""
        return sorted(c.value for c in cls)

    @classmethod
    def parse(cls, value) -> "Command":
        """Exact-match lookup; anything else raises UnknownCommandError."""
        if isinstance(value, str):
            for cmd in cls:
                if cmd.value == value:
                    return cmd
        raise UnknownCommandError(value, cls.names())


LEVELS = ("error", "warning", "info")
DEFAULT_LEVEL = "warning"

# canonical name -> aliases, checked in order after the canonical name
PARAM_ALIASES: dict[str, tuple[str, ...]] = {
    "path": ("file_path", "dir"),
    "namespace": ("ns",),
    "var_name": ("var",),
}

# Request fields each command's engine call depends on (besides path).
_KEY_FIELDS: dict[Command, frozenset[str]] = {
    Command.ANALYZE: frozenset(),
    Command.LINT: frozenset({"level"}),
    Command.CALLERS: frozenset({"namespace", "var_name"}),
    Command.CALLS: frozenset({"namespace", "var_name"}),
    Command.FIND_VAR: frozenset({"namespace", "var_name"}),
    Command.NAMESPACE_GRAPH: frozenset(),
    Command.UNUSED_VARS: frozenset(),
}


@dataclass(frozen=True)
class Request:
    command: Command
    path: str | None = None
    namespace: str | None = None
    var_name: str | None = None
    level: str | None = None
    limit: int | None = None

    def require_path(self) -> str:
        if not self.path:
            raise MissingParameterError("path", self.command.value)
        return self.path

    def require(self, field: str) -> str:
        value = getattr(self, field)
        if not value:
            raise MissingParameterError(field, self.command.value)
        return value

    @property
    def effective_level(self) -> str:
        return self.level or DEFAULT_LEVEL

    def cache_key(self) -> "CacheKey":
        return CacheKey.for_request(self)


@dataclass(frozen=True)
class CacheKey:
    """Fingerprint of the request fields that affect the engine result.

    ``limit`` is deliberately absent: it only shapes the response after the
    cache lookup.
    """

    command: str
    path: str | None
    namespace: str | None = None
    var_name: str | None = None
    level: str | None = None

    @classmethod
    def for_request(cls, request: Request) -> "CacheKey":
        fields = _KEY_FIELDS[request.command]
        return cls(
            command=request.command.value,
            path=normalize_path(request.path),
            namespace=request.namespace if "namespace" in fields else None,
            var_name=request.var_name if "var_name" in fields else None,
            level=request.effective_level if "level" in fields else None,
        )


def normalize_path(path: str | None) -> str | None:
    if not path:
        return None
    return os.path.normpath(path)


def _present(value: Any) -> bool:
    if value is None:
        return False
    return not (isinstance(value, str) and not value.strip())


def _lookup(params: Mapping[str, Any], name: str) -> Any:
    # Blank strings count as absent so a merged bag can still use an alias.
    for key in (name, *PARAM_ALIASES.get(name, ())):
        value = params.get(key)
        if _present(value):
            return value
    return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_limit(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_level(value: Any) -> str | None:
    text = _as_text(value)
    if text is None:
        return None
    level = text.lower()
    if level not in LEVELS:
        raise InvalidParameterError("level", value, list(LEVELS))
    return level


def resolve_request(params: Mapping[str, Any], command=None) -> Request:
    """Build a canonical :class:`Request` from a loose parameter mapping.

    *command* overrides ``params["command"]`` when given.  A missing path
    resolves to ``None``; handlers that need it raise MissingParameterError.
    """
    cmd = Command.parse(command if command is not None else params.get("command"))
    return Request(
        command=cmd,
        path=_as_text(_lookup(params, "path")),
        namespace=_as_text(_lookup(params, "namespace")),
        var_name=_as_text(_lookup(params, "var_name")),
        level=_as_level(params.get("level")),
        limit=_as_limit(params.get("limit")),
    )
