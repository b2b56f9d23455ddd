"""Runtime settings read from ``KONDO_MCP_*`` environment variables.

    KONDO_BIN            clj-kondo executable (default: clj-kondo)
    KONDO_MCP_TTL        cache time-to-live in seconds (default: 300, 0 disables)
    KONDO_MCP_LIMIT      default result limit for list payloads (default: 200)
    KONDO_MCP_TIMEOUT    clj-kondo subprocess timeout in seconds (default: none)
    KONDO_MCP_PRESET     MCP tool preset: full (default) or composite

Invalid values fall back to the defaults.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Mapping

log = logging.getLogger(__name__)

DEFAULT_KONDO_BIN = "clj-kondo"
DEFAULT_CACHE_TTL = 300.0
DEFAULT_RESULT_LIMIT = 200
PRESETS = ("full", "composite")


@dataclass(frozen=True)
class Settings:
    kondo_bin: str = DEFAULT_KONDO_BIN
    cache_ttl: float = DEFAULT_CACHE_TTL
    result_limit: int = DEFAULT_RESULT_LIMIT
    timeout: float | None = None
    preset: str = "full"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            kondo_bin=(env.get("KONDO_BIN") or "").strip() or DEFAULT_KONDO_BIN,
            cache_ttl=_float_env(env, "KONDO_MCP_TTL", DEFAULT_CACHE_TTL, minimum=0.0),
            result_limit=int(_float_env(env, "KONDO_MCP_LIMIT", DEFAULT_RESULT_LIMIT, minimum=1)),
            timeout=_optional_timeout(env),
            preset=_preset(env),
        )


def _float_env(env: Mapping[str, str], name: str, default: float, *, minimum: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("ignoring %s=%r: not a number", name, raw)
        return default
    if not math.isfinite(value) or value < minimum:
        log.warning("ignoring %s=%r: must be >= %s", name, raw, minimum)
        return default
    return value


def _optional_timeout(env: Mapping[str, str]) -> float | None:
    value = _float_env(env, "KONDO_MCP_TIMEOUT", 0.0, minimum=0.0)
    return value or None


def _preset(env: Mapping[str, str]) -> str:
    preset = (env.get("KONDO_MCP_PRESET") or "").strip().lower()
    if preset in PRESETS:
        return preset
    if preset:
        log.warning("ignoring KONDO_MCP_PRESET=%r: expected one of %s", preset, ", ".join(PRESETS))
    return PRESETS[0]
