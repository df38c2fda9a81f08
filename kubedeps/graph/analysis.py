"""Read-only queries over a finished ``DependencyGraph``."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any

from kubedeps.graph.models import DependencyGraph, GraphEdge, Strength


def graph_statistics(graph: DependencyGraph) -> dict[str, Any]:
    """Totals and breakdowns used by the report export and the API."""
    nodes_by_kind = Counter(n.kind for n in graph.nodes)
    edges_by_type = Counter(e.type.value for e in graph.edges)
    strengths = Counter(e.strength for e in graph.edges)
    namespaces = sorted({n.namespace for n in graph.nodes if n.namespace})
    return {
        "totalNodes": graph.node_count,
        "totalEdges": graph.edge_count,
        "kinds": sorted(nodes_by_kind),
        "dependencyTypes": sorted(edges_by_type),
        "namespaces": namespaces,
        "strongDependencies": strengths[Strength.STRONG],
        "weakDependencies": strengths[Strength.WEAK],
        "nodesByKind": dict(sorted(nodes_by_kind.items())),
        "edgesByType": dict(sorted(edges_by_type.items())),
    }


def node_degrees(graph: DependencyGraph) -> dict[str, int]:
    """Connection count (in + out) for every node of *graph*."""
    degrees = {n.id: 0 for n in graph.nodes}
    for edge in graph.edges:
        degrees[edge.source] = degrees.get(edge.source, 0) + 1
        degrees[edge.target] = degrees.get(edge.target, 0) + 1
    return degrees



def connected_subgraph(graph: DependencyGraph, node_id: str, max_depth: int = 2) -> DependencyGraph:
    """Neighbourhood of *node_id* within *max_depth* hops, ignoring edge direction.

    Returns an empty graph when *node_id* is not part of *graph*.
    """
    nodes = {n.id: n for n in graph.nodes}
    if node_id not in nodes:
        return DependencyGraph(metadata={"root": node_id, "maxDepth": max_depth})

    adjacency: dict[str, list[tuple[str, GraphEdge]]] = defaultdict(list)
    for edge in graph.edges:
        adjacency[edge.source].append((edge.target, edge))
        adjacency[edge.target].append((edge.source, edge))

    visited: set[str] = {node_id}
    kept_edges: dict[str, GraphEdge] = {}
    current_level = [node_id]
    depth = 0
    while current_level and depth < max_depth:
        next_level: list[str] = []
        for current in current_level:
            for neighbor, edge in adjacency.get(current, []):
                kept_edges.setdefault(edge.id, edge)
                if neighbor not in visited:
                    visited.add(neighbor)
                    next_level.append(neighbor)
        current_level = next_level
        depth += 1

    # Edges seen from the last level may point one hop further out.
    edges = [e for e in kept_edges.values() if e.source in visited and e.target in visited]
    return DependencyGraph(
        nodes=[n for n in graph.nodes if n.id in visited],
        edges=edges,
        metadata={"root": node_id, "maxDepth": max_depth},
    )
