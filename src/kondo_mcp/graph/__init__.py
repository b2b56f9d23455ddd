"""Namespace graph construction."""

from kondo_mcp.graph.builder import build_namespace_graph, graph_payload

__all__ = [
    "build_namespace_graph",
    "graph_payload",
]
