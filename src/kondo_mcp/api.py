"""Programmatic Python API for running kondo commands in-process.

:class:`KondoService` owns everything with process lifetime: settings, the
engine, the analysis cache, the dispatcher and the addon state.  The MCP
server and the CLI each build exactly one and pass it around.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from kondo_mcp.cache import AnalysisCache
from kondo_mcp.config import Settings
from kondo_mcp.engine import AnalysisEngine, KondoEngine
from kondo_mcp.output.formatter import envelope_payload
from kondo_mcp.plugins import AddonState, HostProbe, RegistrationOutcome, init_as_addon
from kondo_mcp.tools import CommandDispatcher

log = logging.getLogger(__name__)


class KondoAPIError(RuntimeError):
    """Raised by :meth:`KondoService.run_json` when a command fails."""

    def __init__(self, message: str, *, command: str | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.command = command
        self.payload = payload


class KondoService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AnalysisEngine | None = None,
        cache: AnalysisCache | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings.from_env()
        if engine is None:
            engine = KondoEngine(self.settings.kondo_bin, timeout=self.settings.timeout)
        self.engine = engine
        self.cache = cache if cache is not None else AnalysisCache(self.settings.cache_ttl)
        self.dispatcher = CommandDispatcher(
            self.engine, self.cache, default_limit=self.settings.result_limit,
        )
        self.state = AddonState()
        self.registration: RegistrationOutcome | None = None

    def start(self, probe: HostProbe | None = None) -> RegistrationOutcome:
        """Run the registration pipeline once.  Later calls return the first outcome."""
        if self.registration is None:
            self.registration = init_as_addon(self.dispatcher, self.state, probe)
            log.debug("registration: %s", self.registration.as_dict())
        return self.registration

    def shutdown(self) -> bool:
        """Invalidate the cache and reset addon state.  No-op when not started."""
        return self.state.shutdown(self.cache.invalidate_all)

    def call(self, command: str, **params) -> dict:
        """Dispatch *command* and return the MCP content envelope."""
        return self.dispatcher.dispatch(command, params)

    def handle(self, params: Mapping[str, Any]) -> dict:
        return self.dispatcher.handle(params)

    def run_json(self, command: str, **params) -> Any:
        """Dispatch *command* and return the decoded payload.

        Raises :class:`KondoAPIError` on error envelopes.
        """
        envelope = self.call(command, **params)
        payload = envelope_payload(envelope)
        if envelope.get("isError"):
            message = None
            if isinstance(payload, dict):
                message = payload.get("details") or payload.get("error")
            raise KondoAPIError(message or "kondo command failed", command=command, payload=payload)
        return payload

    def invalidate_cache(self) -> dict:
        self.cache.invalidate_all()
        return {"invalidated": True}

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def status(self) -> dict:
        registration = self.registration.as_dict() if self.registration else None
        return {
            "initialized": self.state.initialized,
            "registration": registration,
            "cache": self.cache.stats(),
            "settings": {
                "kondo_bin": self.settings.kondo_bin,
                "cache_ttl_s": self.settings.cache_ttl,
                "result_limit": self.settings.result_limit,
                "timeout_s": self.settings.timeout,
            },
        }
