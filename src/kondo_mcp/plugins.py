"""Optional host-plugin registration for kondo-mcp.

When kondo-mcp runs inside a richer MCP host that exposes an addon registry
(hive-mcp), it registers itself as an addon and contributes its commands to
the host's composite ``analysis`` tool.  Otherwise it falls back to
standalone registration of the ``kondo`` tool.

Registration is a short pipeline of steps, each taking a context dict and
returning either an updated context or ``None`` to abort::

    resolve host symbols -> register addon -> init addon -> store handle

The first ``None`` short-circuits the rest; the failing step is logged at
debug level only and the caller gets the standalone fallback.
"""

from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from kondo_mcp.exit_codes import HostCapabilityAbsent
from kondo_mcp.tools import TOOL_NAME, CommandDispatcher, tool_def

log = logging.getLogger(__name__)

ADDON_ID = "clj-kondo.mcp"

DEFAULT_HOST_SYMBOLS: dict[str, str] = {
    "register": "hive_mcp.addons.core:register_addon",
    "init": "hive_mcp.addons.core:init_addon",
    "addon_id": "hive_mcp.addons.protocol:addon_id",
}
CONTRIBUTE_SYMBOL = "hive_mcp.extensions.registry:contribute_commands"

COMPOSITE_TOOL = "analysis"
COMPOSITE_NAMESPACE = "kondo"


class PipelineStage(str, Enum):
    UNATTEMPTED = "unattempted"
    DEPS_RESOLVED = "deps_resolved"
    REGISTERED = "registered"
    INITIALIZED = "initialized"
    STORED = "stored"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Capability resolution
# ---------------------------------------------------------------------------


def resolve_capability(spec: str) -> Any | None:
    """Resolve ``"package.module:attr"`` to an object, or ``None`` if absent."""
    module_name, _, attr_path = spec.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except Exception as exc:
        log.debug("capability %s: import failed: %s", spec, exc)
        return None
    for part in [p for p in attr_path.split(".") if p]:
        target = getattr(target, part, None)
        if target is None:
            log.debug("capability %s: missing attribute %s", spec, part)
            return None
    return target


class HostProbe:
    """Looks up the host registry symbols kondo-mcp needs."""

    def __init__(
        self,
        symbols: Mapping[str, str] | None = None,
        contribute_symbol: str | None = CONTRIBUTE_SYMBOL,
        resolver: Callable[[str], Any | None] = resolve_capability,
    ) -> None:
        self.symbols = dict(DEFAULT_HOST_SYMBOLS if symbols is None else symbols)
        self.contribute_symbol = contribute_symbol
        self._resolver = resolver

    def require(self, name: str) -> Any:
        spec = self.symbols[name]
        resolved = self._resolver(spec)
        if resolved is None:
            raise HostCapabilityAbsent(spec)
        return resolved

    def resolve_all(self) -> dict[str, Any] | None:
        """Resolve every registry symbol, or ``None`` if any is missing."""
        resolved: dict[str, Any] = {}
        for name in self.symbols:
            try:
                resolved[name] = self.require(name)
            except HostCapabilityAbsent as exc:
                log.debug("dep resolution failed: %s -> %s", name, exc.capability)
                return None
        return resolved

    def contribute(self) -> Callable | None:
        if not self.contribute_symbol:
            return None
        return self._resolver(self.contribute_symbol)


# ---------------------------------------------------------------------------
# Addon state and addon
# ---------------------------------------------------------------------------


class AddonState:
    """Process-wide addon lifecycle: ``initialize()`` / ``shutdown()``.

    Constructed once by :class:`~kondo_mcp.api.KondoService` and passed to
    whatever needs it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._initialized = False
        self._handle: Any = None

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._initialized

    @property
    def handle(self) -> Any:
        with self._lock:
            return self._handle

    def initialize(self) -> bool:
        """Mark initialized.  Returns False if it already was."""
        with self._lock:
            if self._initialized:
                return False
            self._initialized = True
            return True

    def store(self, handle: Any) -> None:
        with self._lock:
            self._handle = handle

    def shutdown(self, cleanup: Callable[[], None] | None = None) -> bool:
        """Run *cleanup* and reset, if initialized.  Returns whether it did."""
        with self._lock:
            if not self._initialized:
                return False
            if cleanup is not None:
                cleanup()
            self._initialized = False
            self._handle = None
            return True


def contributed_commands(dispatcher: CommandDispatcher) -> dict[str, dict]:
    """Command map contributed to the host's composite analysis tool."""

    def _handler(command: str):
        return lambda params: dispatcher.dispatch(command, params)

    path = {"type": "string", "description": "Path to file or directory to analyze"}
    return {
        "lint": {
            "handler": _handler("lint"),
            "params": {
                "path": {"type": "string", "description": "Path to file or directory to lint"},
                "level": {
                    "type": "string",
                    "enum": ["error", "warning", "info"],
                    "description": "Minimum severity level",
                },
            },
            "description": "Run clj-kondo lint",
        },
        "analyze": {
            "handler": _handler("analyze"),
            "params": {"path": path},
            "description": "Analyze project structure",
        },
        "callers": {
            "handler": _handler("callers"),
            "params": {
                "path": path,
                "ns": {"type": "string", "description": "Namespace of the target function"},
                "var_name": {"type": "string", "description": "Name of the function"},
            },
            "description": "Find all call sites of a var",
        },
        "calls": {
            "handler": _handler("calls"),
            "params": {
                "path": path,
                "ns": {"type": "string", "description": "Namespace of the source function"},
                "var_name": {"type": "string", "description": "Name of the function"},
            },
            "description": "Find all vars called by a function",
        },
        "graph": {
            "handler": _handler("namespace_graph"),
            "params": {"path": path},
            "description": "Namespace dependency graph",
        },
        "find_var": {
            "handler": _handler("find_var"),
            "params": {
                "path": path,
                "var_name": {"type": "string", "description": "Name of the var"},
                "ns": {"type": "string", "description": "Namespace of the var"},
            },
            "description": "Find var definition",
        },
        "unused_vars": {
            "handler": _handler("unused_vars"),
            "params": {"path": path},
            "description": "Find unused private vars",
        },
    }


class KondoAddon:
    """The object registered with the host addon registry."""

    addon_id = ADDON_ID
    addon_type = "native"
    capabilities = frozenset({"tools"})

    def __init__(self, dispatcher: CommandDispatcher, state: AddonState, probe: HostProbe) -> None:
        self.dispatcher = dispatcher
        self.state = state
        self.probe = probe

    def initialize(self, config: Mapping | None = None) -> dict:
        if not self.state.initialize():
            return {"success": True, "already_initialized": True}
        contribute = self.probe.contribute()
        if contribute is not None:
            contribute(COMPOSITE_TOOL, COMPOSITE_NAMESPACE, contributed_commands(self.dispatcher))
        log.info("kondo-mcp addon initialized")
        return {"success": True, "errors": [], "metadata": {"tools": 0}}

    def shutdown(self) -> None:
        self.state.shutdown(self.dispatcher.invalidate_cache)

    def tools(self) -> list:
        # Commands go to the composite tool; no standalone tool in host mode.
        return []

    def schema_extensions(self) -> dict:
        return {}

    def health(self) -> dict:
        if self.state.initialized:
            return {"status": "ok", "details": {"cache": self.dispatcher.cache.stats()}}
        return {"status": "down", "details": {"reason": "not initialized"}}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _succeeded(result: Any) -> bool:
    if isinstance(result, Mapping):
        return bool(result.get("success", result.get("success?", False)))
    return bool(getattr(result, "success", False))


def step_resolve_deps(ctx: dict) -> dict | None:
    deps = ctx["probe"].resolve_all()
    if deps is None:
        return None
    return {**ctx, **deps, "stage": PipelineStage.DEPS_RESOLVED}


def step_register(ctx: dict) -> dict | None:
    result = ctx["register"](ctx["addon"])
    if not _succeeded(result):
        return None
    return {**ctx, "reg_result": result, "stage": PipelineStage.REGISTERED}


def step_init(ctx: dict) -> dict | None:
    result = ctx["init"](ctx["addon_id"](ctx["addon"]))
    if not _succeeded(result):
        return None
    return {**ctx, "init_result": result, "stage": PipelineStage.INITIALIZED}


def step_store(ctx: dict) -> dict | None:
    ctx["addon_state"].store(ctx["addon"])
    return {**ctx, "stage": PipelineStage.STORED}


ADDON_PIPELINE: tuple[Callable[[dict], dict | None], ...] = (
    step_resolve_deps,
    step_register,
    step_init,
    step_store,
)


def run_pipeline(ctx: dict, steps=ADDON_PIPELINE) -> dict | None:
    """Run *steps* in order; ``None`` from any step aborts the pipeline."""
    ctx = {"stage": PipelineStage.UNATTEMPTED, **ctx}
    for step in steps:
        try:
            result = step(ctx)
        except Exception as exc:
            log.debug("addon pipeline step %s raised: %s", step.__name__, exc)
            result = None
        if result is None:
            log.debug("addon pipeline aborted at %s (stage: %s)", step.__name__, ctx["stage"].value)
            return None
        ctx = result
    return ctx


# ---------------------------------------------------------------------------
# Integrations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistrationOutcome:
    mode: str
    registered: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.registered)

    def as_dict(self) -> dict:
        return {"mode": self.mode, "registered": list(self.registered), "total": self.total}


def register_tools() -> list[dict]:
    """Standalone tool registration. Returns tool definitions."""
    return [tool_def()]


class HostIntegration:
    """Registers the addon with the host registry through the pipeline."""

    mode = "host"

    def __init__(self, addon: KondoAddon) -> None:
        self.addon = addon

    def register(self) -> RegistrationOutcome | None:
        ctx = run_pipeline({
            "addon": self.addon,
            "probe": self.addon.probe,
            "addon_state": self.addon.state,
        })
        if ctx is None:
            return None
        return RegistrationOutcome(self.mode, [TOOL_NAME])


class StandaloneIntegration:
    """Registers the ``kondo`` tool directly, without a host."""

    mode = "standalone"

    def __init__(self, state: AddonState) -> None:
        self.state = state

    def register(self) -> RegistrationOutcome:
        self.state.initialize()
        return RegistrationOutcome(self.mode, [t["name"] for t in register_tools()])


def init_as_addon(
    dispatcher: CommandDispatcher,
    state: AddonState,
    probe: HostProbe | None = None,
) -> RegistrationOutcome:
    """Register with the host if present, else fall back to standalone."""
    addon = KondoAddon(dispatcher, state, probe or HostProbe())
    outcome = HostIntegration(addon).register()
    if outcome is not None:
        log.info("kondo-mcp registered as host addon")
        return outcome
    log.debug("host addon registry unavailable, falling back to standalone registration")
    return StandaloneIntegration(state).register()
