"""Shared test fixtures for kondo-mcp tests.

Provides:
- FakeEngine: in-memory AnalysisEngine that records every call
- ManualClock: controllable monotonic clock for TTL tests
- service / dispatcher fixtures wired to the fake engine
- SAMPLE_REPORT: canned clj-kondo JSON report
"""

from __future__ import annotations

import threading
import time

import pytest

from kondo_mcp.api import KondoService
from kondo_mcp.cache import AnalysisCache
from kondo_mcp.config import Settings

# ===========================================================================
# Fakes
# ===========================================================================


class FakeEngine:
    """AnalysisEngine double.  Set the result attributes, then count calls."""

    def __init__(self):
        self._lock = threading.Lock()
        self.calls: list[tuple[str, tuple]] = []
        self.summary = {"definitions": 3, "usages": 5, "namespaces": 1}
        self.findings: list[dict] = []
        self.callers: list[dict] = []
        self.calls_result: list[dict] = []
        self.definitions: list[dict] = []
        self.graph = {"nodes": [], "edges": []}
        self.unused: list[dict] = []
        self.fail_with: Exception | None = None
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def _record(self, name, *args):
        with self._lock:
            self.calls.append((name, args))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail_with is not None:
            raise self.fail_with

    def count(self, name: str | None = None) -> int:
        with self._lock:
            return sum(1 for n, _ in self.calls if name is None or n == name)

    def analyze(self, path):
        self._record("analyze", path)
        return dict(self.summary)

    def lint(self, path, level):
        self._record("lint", path, level)
        return list(self.findings)

    def find_callers(self, path, namespace, var_name):
        self._record("find_callers", path, namespace, var_name)
        return list(self.callers)

    def find_calls(self, path, namespace, var_name):
        self._record("find_calls", path, namespace, var_name)
        return list(self.calls_result)

    def find_var(self, path, var_name, namespace=None):
        self._record("find_var", path, var_name, namespace)
        return self.definitions

    def namespace_graph(self, path):
        self._record("namespace_graph", path)
        return dict(self.graph)

    def unused_vars(self, path):
        self._record("unused_vars", path)
        return list(self.unused)


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_findings(n: int, level: str = "warning") -> list[dict]:
    return [
        {
            "filename": f"src/app/f{i}.clj",
            "row": i + 1,
            "col": 1,
            "level": level,
            "type": "unused-binding",
            "message": f"unused binding x{i}",
        }
        for i in range(n)
    ]


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


# ===========================================================================
# Fixtures
# ===========================================================================


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def service(fake_engine, clock):
    settings = Settings(cache_ttl=60.0, result_limit=200)
    return KondoService(
        settings,
        engine=fake_engine,
        cache=AnalysisCache(settings.cache_ttl, clock=clock),
    )


@pytest.fixture
def dispatcher(service):
    return service.dispatcher


# ===========================================================================
# Canned clj-kondo report
# ===========================================================================

SAMPLE_REPORT = {
    "findings": [
        {"filename": "src/app/core.clj", "row": 3, "col": 1, "level": "warning",
         "type": "unused-private-var", "message": "Unused private var app.core/helper"},
        {"filename": "src/app/core.clj", "row": 10, "col": 5, "level": "error",
         "type": "unresolved-symbol", "message": "Unresolved symbol: foo"},
        {"filename": "src/app/util.clj", "row": 1, "col": 1, "level": "info",
         "type": "missing-docstring", "message": "Missing docstring."},
    ],
    "summary": {"error": 1, "warning": 1, "info": 1, "type": "summary",
                "duration": 42, "files": 2},
    "analysis": {
        "namespace-definitions": [
            {"name": "app.core", "filename": "src/app/core.clj", "lang": "clj"},
            {"name": "app.util", "filename": "src/app/util.clj"},
        ],
        "namespace-usages": [
            {"from": "app.core", "to": "app.util", "filename": "src/app/core.clj"},
            {"from": "app.core", "to": "app.util", "filename": "src/app/core.clj"},
            {"from": "app.core", "to": "clojure.string", "filename": "src/app/core.clj"},
        ],
        "var-definitions": [
            {"ns": "app.core", "name": "main", "filename": "src/app/core.clj", "row": 5, "col": 1},
            {"ns": "app.core", "name": "helper", "private": True,
             "filename": "src/app/core.clj", "row": 3, "col": 1},
            {"ns": "app.core", "name": "used-helper", "private": True,
             "filename": "src/app/core.clj", "row": 4, "col": 1},
            {"ns": "app.util", "name": "fmt", "filename": "src/app/util.clj", "row": 2, "col": 1},
            {"ns": "app.util", "name": "loop-it", "private": True,
             "filename": "src/app/util.clj", "row": 8, "col": 1},
        ],
        "var-usages": [
            {"from": "app.core", "from-var": "main", "to": "app.util", "name": "fmt",
             "filename": "src/app/core.clj", "row": 6, "col": 3, "arity": 1},
            {"from": "app.core", "from-var": "main", "to": "app.core", "name": "used-helper",
             "filename": "src/app/core.clj", "row": 7, "col": 3, "arity": 0},
            {"from": "app.core", "from-var": "main", "to": "clojure.core", "name": "println",
             "filename": "src/app/core.clj", "row": 8, "col": 3, "arity": 1},
            {"from": "app.util", "from-var": "loop-it", "to": "app.util", "name": "loop-it",
             "filename": "src/app/util.clj", "row": 9, "col": 5, "arity": 1},
        ],
    },
}
