"""Tests for host-addon registration and the standalone fallback."""

from __future__ import annotations

import pytest

from kondo_mcp.output.formatter import envelope_payload
from kondo_mcp.plugins import (
    ADDON_ID,
    COMPOSITE_NAMESPACE,
    COMPOSITE_TOOL,
    DEFAULT_HOST_SYMBOLS,
    AddonState,
    HostProbe,
    KondoAddon,
    PipelineStage,
    contributed_commands,
    init_as_addon,
    resolve_capability,
    run_pipeline,
)


class FakeHost:
    """In-memory addon registry standing in for a real host."""

    def __init__(self, *, register_ok=True, init_ok=True, with_contribute=True, success_key="success"):
        self.registered = []
        self.initialized = []
        self.contributions = []
        self.register_ok = register_ok
        self.init_ok = init_ok
        self.success_key = success_key
        self.symbols = {
            DEFAULT_HOST_SYMBOLS["register"]: self.register_addon,
            DEFAULT_HOST_SYMBOLS["init"]: self.init_addon,
            DEFAULT_HOST_SYMBOLS["addon_id"]: lambda addon: addon.addon_id,
        }
        if with_contribute:
            self.symbols["hive_mcp.extensions.registry:contribute_commands"] = self.contribute

    def resolve(self, spec):
        return self.symbols.get(spec)

    def probe(self):
        return HostProbe(resolver=self.resolve)

    def register_addon(self, addon):
        self.registered.append(addon)
        return {self.success_key: self.register_ok}

    def init_addon(self, addon_id):
        self.initialized.append(addon_id)
        if not self.init_ok:
            return {self.success_key: False}
        addon = next(a for a in self.registered if a.addon_id == addon_id)
        return addon.initialize({})

    def contribute(self, tool, namespace, commands):
        self.contributions.append((tool, namespace, commands))


# ===========================================================================
# Capability resolution
# ===========================================================================


class TestResolveCapability:
    def test_resolves_stdlib_symbol(self):
        import json

        assert resolve_capability("json:dumps") is json.dumps

    def test_dotted_attribute(self):
        import os

        assert resolve_capability("os:path.join") is os.path.join

    def test_missing_module(self):
        assert resolve_capability("hive_mcp_definitely_absent.core:register") is None

    def test_missing_attribute(self):
        assert resolve_capability("json:no_such_function") is None


class TestHostProbe:
    def test_resolve_all_none_when_any_missing(self):
        host = FakeHost()
        del host.symbols[DEFAULT_HOST_SYMBOLS["init"]]
        assert host.probe().resolve_all() is None

    def test_resolve_all(self):
        deps = FakeHost().probe().resolve_all()
        assert set(deps) == {"register", "init", "addon_id"}

    def test_contribute_optional(self):
        assert FakeHost(with_contribute=False).probe().contribute() is None


# ===========================================================================
# Addon state
# ===========================================================================


class TestAddonState:
    def test_initialize_once(self):
        state = AddonState()
        assert state.initialize() is True
        assert state.initialize() is False
        assert state.initialized

    def test_shutdown_twice_is_noop(self):
        state = AddonState()
        calls = []
        state.initialize()
        state.store("handle")
        assert state.shutdown(lambda: calls.append(1)) is True
        assert state.shutdown(lambda: calls.append(1)) is False
        assert calls == [1]
        assert state.handle is None
        assert not state.initialized

    def test_shutdown_before_init(self):
        assert AddonState().shutdown() is False


# ===========================================================================
# Pipeline
# ===========================================================================


class TestPipeline:
    def test_short_circuits_on_none(self):
        seen = []

        def first(ctx):
            seen.append("first")
            return None

        def second(ctx):
            seen.append("second")
            return ctx

        assert run_pipeline({}, (first, second)) is None
        assert seen == ["first"]

    def test_raising_step_aborts(self):
        def boom(ctx):
            raise RuntimeError("host exploded")

        assert run_pipeline({}, (boom,)) is None

    def test_threads_context(self):
        def add(ctx):
            return {**ctx, "n": ctx.get("n", 0) + 1}

        ctx = run_pipeline({}, (add, add, add))
        assert ctx["n"] == 3
        assert ctx["stage"] == PipelineStage.UNATTEMPTED


# ===========================================================================
# init_as_addon
# ===========================================================================


class TestHostRegistration:
    def test_happy_path(self, dispatcher):
        host = FakeHost()
        state = AddonState()
        outcome = init_as_addon(dispatcher, state, host.probe())

        assert outcome.mode == "host"
        assert outcome.registered == ["kondo"]
        assert host.initialized == [ADDON_ID]
        assert state.initialized
        assert isinstance(state.handle, KondoAddon)

    def test_contributes_composite_commands(self, dispatcher, fake_engine):
        host = FakeHost()
        init_as_addon(dispatcher, AddonState(), host.probe())

        (tool, namespace, commands), = host.contributions
        assert tool == COMPOSITE_TOOL
        assert namespace == COMPOSITE_NAMESPACE
        assert set(commands) == {
            "lint", "analyze", "callers", "calls", "graph", "find_var", "unused_vars",
        }
        env = commands["graph"]["handler"]({"path": "src"})
        assert "isError" not in env
        assert fake_engine.count("namespace_graph") == 1

    def test_contributed_handler_accepts_ns_alias(self, dispatcher, fake_engine):
        commands = contributed_commands(dispatcher)
        commands["callers"]["handler"]({"path": "src", "ns": "app.core", "var_name": "main"})
        assert fake_engine.calls == [("find_callers", ("src", "app.core", "main"))]

    def test_legacy_success_key(self, dispatcher):
        host = FakeHost(success_key="success?")
        outcome = init_as_addon(dispatcher, AddonState(), host.probe())
        assert outcome.mode == "host"

    def test_without_contribute_symbol(self, dispatcher):
        host = FakeHost(with_contribute=False)
        outcome = init_as_addon(dispatcher, AddonState(), host.probe())
        assert outcome.mode == "host"
        assert host.contributions == []


class TestStandaloneFallback:
    @pytest.mark.parametrize("missing", sorted(DEFAULT_HOST_SYMBOLS))
    def test_absent_symbol_falls_back(self, dispatcher, missing):
        host = FakeHost()
        del host.symbols[DEFAULT_HOST_SYMBOLS[missing]]
        state = AddonState()
        outcome = init_as_addon(dispatcher, state, host.probe())

        assert outcome.mode == "standalone"
        assert outcome.registered == ["kondo"]
        assert outcome.total == 1
        assert host.registered == []
        assert state.initialized

    def test_no_host_installed(self, dispatcher):
        outcome = init_as_addon(dispatcher, AddonState())
        assert outcome.mode == "standalone"
        assert outcome.as_dict() == {"mode": "standalone", "registered": ["kondo"], "total": 1}

    def test_register_rejected(self, dispatcher):
        host = FakeHost(register_ok=False)
        outcome = init_as_addon(dispatcher, AddonState(), host.probe())
        assert outcome.mode == "standalone"
        assert host.initialized == []

    def test_init_rejected(self, dispatcher):
        host = FakeHost(init_ok=False)
        state = AddonState()
        outcome = init_as_addon(dispatcher, state, host.probe())
        assert outcome.mode == "standalone"
        assert state.handle is None

    def test_register_raises(self, dispatcher):
        host = FakeHost()

        def boom(addon):
            raise RuntimeError("registry locked")

        host.symbols[DEFAULT_HOST_SYMBOLS["register"]] = boom
        outcome = init_as_addon(dispatcher, AddonState(), host.probe())
        assert outcome.mode == "standalone"


# ===========================================================================
# Addon object
# ===========================================================================


class TestKondoAddon:
    def test_initialize_twice(self, dispatcher):
        host = FakeHost()
        addon = KondoAddon(dispatcher, AddonState(), host.probe())
        first = addon.initialize({})
        second = addon.initialize({})
        assert first["success"] is True
        assert first["errors"] == []
        assert second == {"success": True, "already_initialized": True}
        assert len(host.contributions) == 1

    def test_health(self, dispatcher):
        addon = KondoAddon(dispatcher, AddonState(), FakeHost().probe())
        assert addon.health()["status"] == "down"
        addon.initialize()
        health = addon.health()
        assert health["status"] == "ok"
        assert "cache" in health["details"]

    def test_no_standalone_tools_in_host_mode(self, dispatcher):
        addon = KondoAddon(dispatcher, AddonState(), FakeHost().probe())
        assert addon.tools() == []
        assert addon.schema_extensions() == {}

    def test_shutdown_clears_cache(self, dispatcher, fake_engine):
        addon = KondoAddon(dispatcher, AddonState(), FakeHost().probe())
        addon.initialize()
        dispatcher.dispatch("analyze", {"path": "src"})
        addon.shutdown()
        addon.shutdown()
        assert len(dispatcher.cache) == 0
        dispatcher.dispatch("analyze", {"path": "src"})
        assert fake_engine.count("analyze") == 2


# ===========================================================================
# Service lifecycle
# ===========================================================================


class TestServiceLifecycle:
    def test_injected_collaborators_are_kept(self, fake_engine, clock):
        from kondo_mcp.api import KondoService
        from kondo_mcp.cache import AnalysisCache
        from kondo_mcp.config import Settings

        settings = Settings(cache_ttl=60.0)
        cache = AnalysisCache(60, clock=clock)
        service = KondoService(settings, engine=fake_engine, cache=cache)
        assert service.cache is cache
        assert service.engine is fake_engine
        assert service.settings is settings
        assert service.dispatcher.cache is cache

        service.call("analyze", path="src")
        assert len(cache) == 1
        service.invalidate_cache()
        assert len(cache) == 0

    def test_start_is_idempotent(self, service):
        first = service.start(FakeHost().probe())
        second = service.start(FakeHost().probe())
        assert first is second

    def test_shutdown_twice(self, service, fake_engine):
        service.start()
        service.call("lint", path="src")
        assert service.shutdown() is True
        assert service.shutdown() is False
        assert service.cache_stats()["entries"] == 0

    def test_run_json_raises_on_error(self, service):
        from kondo_mcp.api import KondoAPIError

        with pytest.raises(KondoAPIError) as exc_info:
            service.run_json("lint")
        assert exc_info.value.payload["error_code"] == "MISSING_PARAMETER"
        assert exc_info.value.command == "lint"

    def test_run_json_returns_payload(self, service, fake_engine):
        assert service.run_json("analyze", path="src") == fake_engine.summary

    def test_status(self, service):
        status = service.status()
        assert status["initialized"] is False
        assert status["registration"] is None
        service.start()
        status = service.status()
        assert status["registration"]["mode"] == "standalone"
        assert status["settings"]["cache_ttl_s"] == 60.0

    def test_invalidate(self, service):
        assert service.invalidate_cache() == {"invalidated": True}

    def test_envelope_from_call(self, service):
        env = service.call("bogus")
        assert envelope_payload(env)["error"] == "Unknown command"
