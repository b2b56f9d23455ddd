"""Result truncation, JSON serialization and MCP content envelopes."""

from __future__ import annotations

import json as _json
from dataclasses import dataclass
from typing import Any, Sequence

# MCP responses are serialized inline into the transport payload, so list
# results are capped.
DEFAULT_LIMIT = 200


@dataclass(frozen=True)
class TruncatedResult:
    items: list
    total_count: int
    truncated: bool
    limit: int

    @property
    def shown(self) -> int:
        return len(self.items)


def effective_limit(limit: int | None, default: int = DEFAULT_LIMIT) -> int:
    """Return *limit* if positive, otherwise *default*."""
    if limit is None or limit <= 0:
        return default
    return limit


def truncate(sequence: Sequence, limit: int | None = None, default: int = DEFAULT_LIMIT) -> TruncatedResult:
    """Cap *sequence* to the first ``limit`` items, preserving order.

    The input is never mutated.  ``limit`` falls back to *default* when it
    is absent or non-positive.
    """
    cap = effective_limit(limit, default)
    items = list(sequence)
    total = len(items)
    return TruncatedResult(
        items=items[:cap],
        total_count=total,
        truncated=total > cap,
        limit=cap,
    )


def to_json(data) -> str:
    """Serialize data to a JSON string with deterministic key ordering.

    Identical data always produces byte-identical output, which keeps
    repeated tool responses friendly to LLM prompt caching.
    """
    return _json.dumps(data, indent=2, default=str, sort_keys=True)


def text_envelope(payload: Any) -> dict:
    """Wrap a successful result in the MCP content envelope."""
    return {"content": [{"type": "text", "text": to_json(payload)}]}


def error_envelope(payload: dict) -> dict:
    """Wrap an error payload in the MCP content envelope with ``isError``."""
    envelope = text_envelope(payload)
    envelope["isError"] = True
    return envelope


def unknown_command_envelope(command, available: list[str]) -> dict:
    return error_envelope({
        "error": "Unknown command",
        "error_code": "UNKNOWN_COMMAND",
        "command": command,
        "available": sorted(available),
    })


def failure_envelope(command, details: str, error_code: str = "ENGINE_FAILURE", **extra) -> dict:
    payload = {
        "error": "Failed to handle command",
        "error_code": error_code,
        "command": command,
        "details": details,
    }
    payload.update(extra)
    return error_envelope(payload)


def envelope_payload(envelope: dict) -> Any:
    """Decode the JSON text carried by an envelope (inverse of text_envelope)."""
    content = envelope.get("content") or []
    if not content:
        return None
    return _json.loads(content[0]["text"])
