"""clj-kondo engine adapter.

Runs the ``clj-kondo`` binary with JSON output and analysis enabled and
projects its output into the shapes the MCP handlers return.  Each public
method is one full clj-kondo run; callers are expected to go through
:class:`~kondo_mcp.cache.AnalysisCache`.

clj-kondo exit codes: 0 = no findings, 2 = warnings, 3 = errors.  All three
carry valid JSON on stdout.  Anything else is treated as a failure.
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from typing import Protocol

from kondo_mcp.exit_codes import EngineFailureError
from kondo_mcp.graph import build_namespace_graph, graph_payload

log = logging.getLogger(__name__)

_SUCCESS_CODES = {0, 2, 3}

_KONDO_CONFIG = (
    "{:output {:format :json :canonical-paths true}"
    " :analysis {:arglists true}}"
)

# Minimum-severity filter: each level includes everything more severe.
_LEVEL_RANK = {"error": 0, "warning": 1, "info": 2}


class AnalysisEngine(Protocol):
    """Operations the dispatch layer needs from an analysis engine."""

    def analyze(self, path: str) -> dict: ...

    def lint(self, path: str, level: str) -> list[dict]: ...

    def find_callers(self, path: str, namespace: str, var_name: str) -> list[dict]: ...

    def find_calls(self, path: str, namespace: str, var_name: str) -> list[dict]: ...

    def find_var(self, path: str, var_name: str, namespace: str | None = None) -> list[dict]: ...

    def namespace_graph(self, path: str) -> dict: ...

    def unused_vars(self, path: str) -> list[dict]: ...


class KondoEngine:
    """Subprocess-backed :class:`AnalysisEngine` for the clj-kondo CLI."""

    def __init__(self, kondo_bin: str = "clj-kondo", timeout: float | None = None):
        self.kondo_bin = kondo_bin
        self.timeout = timeout

    # -- raw invocation ------------------------------------------------

    def run(self, path: str) -> dict:
        """Lint *path* and return clj-kondo's parsed JSON report."""
        cmd = [self.kondo_bin, "--lint", path, "--parallel", "--config", _KONDO_CONFIG]
        started = time.perf_counter()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise EngineFailureError(
                f"clj-kondo executable not found: {self.kondo_bin}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise EngineFailureError(
                f"clj-kondo timed out after {self.timeout}s on {path}"
            ) from exc
        elapsed = time.perf_counter() - started
        log.debug("clj-kondo %s exited %d in %.2fs", path, result.returncode, elapsed)

        stderr = (result.stderr or "").strip()
        if result.returncode not in _SUCCESS_CODES:
            raise EngineFailureError(
                stderr or f"clj-kondo exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return parse_report(result.stdout)

    # -- projections ---------------------------------------------------

    def analyze(self, path: str) -> dict:
        return summarize(self.run(path))

    def lint(self, path: str, level: str) -> list[dict]:
        return filter_findings(self.run(path).get("findings") or [], level)

    def find_callers(self, path: str, namespace: str, var_name: str) -> list[dict]:
        return callers_of(_analysis(self.run(path)), namespace, var_name)

    def find_calls(self, path: str, namespace: str, var_name: str) -> list[dict]:
        return calls_from(_analysis(self.run(path)), namespace, var_name)

    def find_var(self, path: str, var_name: str, namespace: str | None = None) -> list[dict]:
        return var_definitions(_analysis(self.run(path)), var_name, namespace)

    def namespace_graph(self, path: str) -> dict:
        return graph_payload(build_namespace_graph(_analysis(self.run(path))))

    def unused_vars(self, path: str) -> list[dict]:
        return unused_private_vars(_analysis(self.run(path)))


# ---------------------------------------------------------------------------
# Report parsing and projections (pure functions over the JSON report)
# ---------------------------------------------------------------------------


def parse_report(stdout: str) -> dict:
    """Parse clj-kondo JSON stdout, rejecting anything that isn't an object."""
    text = (stdout or "").strip()
    if not text:
        raise EngineFailureError("clj-kondo produced no output")
    try:
        report = json.loads(text)
    except json.JSONDecodeError as exc:
        raise EngineFailureError(f"Failed to parse clj-kondo output: {exc}") from exc
    if not isinstance(report, dict):
        raise EngineFailureError("clj-kondo output is not a JSON object")
    return report


def _analysis(report: dict) -> dict:
    analysis = report.get("analysis")
    if not isinstance(analysis, dict):
        raise EngineFailureError("clj-kondo report has no analysis data")
    return analysis


def summarize(report: dict) -> dict:
    analysis = report.get("analysis") or {}
    summary = report.get("summary") or {}
    findings = report.get("findings") or []
    counts = {level: 0 for level in _LEVEL_RANK}
    for finding in findings:
        level = finding.get("level")
        if level in counts:
            counts[level] += 1
    namespaces = sorted({
        d.get("name") for d in analysis.get("namespace-definitions") or [] if d.get("name")
    })
    return {
        "definitions": len(analysis.get("var-definitions") or []),
        "usages": len(analysis.get("var-usages") or []),
        "namespaces": len(namespaces),
        "namespace_names": namespaces,
        "findings_summary": {**counts, "total": len(findings)},
        "files": summary.get("files"),
        "duration_ms": summary.get("duration"),
    }


def filter_findings(findings: list[dict], level: str) -> list[dict]:
    """Keep findings at *level* or more severe, in engine order."""
    threshold = _LEVEL_RANK.get(level, _LEVEL_RANK["warning"])
    return [
        f for f in findings
        if _LEVEL_RANK.get(f.get("level"), len(_LEVEL_RANK)) <= threshold
    ]


def callers_of(analysis: dict, namespace: str, var_name: str) -> list[dict]:
    """Call sites of ``namespace/var_name``."""
    out = []
    for usage in analysis.get("var-usages") or []:
        if usage.get("to") == namespace and usage.get("name") == var_name:
            out.append({
                "ns": usage.get("from"),
                "var": usage.get("from-var"),
                "filename": usage.get("filename"),
                "row": usage.get("row"),
                "col": usage.get("col"),
                "arity": usage.get("arity"),
            })
    return out


def calls_from(analysis: dict, namespace: str, var_name: str) -> list[dict]:
    """Vars referenced from inside the body of ``namespace/var_name``."""
    out = []
    for usage in analysis.get("var-usages") or []:
        if usage.get("from") == namespace and usage.get("from-var") == var_name:
            out.append({
                "ns": usage.get("to"),
                "var": usage.get("name"),
                "filename": usage.get("filename"),
                "row": usage.get("row"),
                "col": usage.get("col"),
                "arity": usage.get("arity"),
            })
    return out


def var_definitions(analysis: dict, var_name: str, namespace: str | None = None) -> list[dict]:
    """Raw var-definition records named *var_name*, optionally in *namespace*."""
    return [
        d for d in analysis.get("var-definitions") or []
        if d.get("name") == var_name and (namespace is None or d.get("ns") == namespace)
    ]


def unused_private_vars(analysis: dict) -> list[dict]:
    """Private var definitions never referenced outside their own body."""
    used = set()
    for usage in analysis.get("var-usages") or []:
        target = (usage.get("to"), usage.get("name"))
        if target == (usage.get("from"), usage.get("from-var")):
            continue  # recursion
        used.add(target)
    out = []
    for d in analysis.get("var-definitions") or []:
        if not d.get("private"):
            continue
        if (d.get("ns"), d.get("name")) in used:
            continue
        out.append({
            "ns": d.get("ns"),
            "var": d.get("name"),
            "filename": d.get("filename"),
            "row": d.get("row"),
            "col": d.get("col"),
        })
    return out
