"""Build NetworkX graphs from clj-kondo analysis data."""

from __future__ import annotations

import networkx as nx


def build_namespace_graph(analysis: dict) -> nx.DiGraph:
    """Build a directed namespace dependency graph.

    Nodes are namespaces defined in the analyzed tree, with ``filename``
    and ``lang`` attributes.  An edge ``a -> b`` means namespace ``a``
    requires ``b``; requires of namespaces outside the tree (libraries,
    clojure.core) are dropped.  Repeated requires collapse into one edge
    whose ``count`` attribute records how often it was seen.
    """
    G = nx.DiGraph()

    for ns_def in analysis.get("namespace-definitions") or []:
        name = ns_def.get("name")
        if not name or name in G:
            continue
        G.add_node(name, filename=ns_def.get("filename"), lang=ns_def.get("lang"))

    for usage in analysis.get("namespace-usages") or []:
        src, tgt = usage.get("from"), usage.get("to")
        if src not in G or tgt not in G or src == tgt:
            continue
        if G.has_edge(src, tgt):
            G[src][tgt]["count"] += 1
        else:
            G.add_edge(src, tgt, count=1)

    return G


def graph_payload(G: nx.DiGraph) -> dict:
    """Serialize a namespace graph into sorted ``nodes`` / ``edges`` lists."""
    nodes = [
        {"ns": name, "filename": attrs.get("filename")}
        for name, attrs in sorted(G.nodes(data=True), key=lambda item: item[0])
    ]
    edges = [
        {"from": src, "to": tgt}
        for src, tgt in sorted(G.edges())
    ]
    return {"nodes": nodes, "edges": edges}
