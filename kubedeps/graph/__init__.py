"""Resource dependency graph.

Builds a deduplicated node/edge graph of live cluster objects under the
limits of a ``PerformanceGovernor`` and answers single-resource
relationship queries. The builder lives in ``kubedeps.graph.builder``.
"""

from kubedeps.graph.analysis import connected_subgraph, graph_statistics
from kubedeps.graph.models import (
    CandidateEdge,
    DependencyGraph,
    GraphEdge,
    GraphNode,
    RelationshipType,
    ResourceDependencies,
    ResourceReport,
    Strength,
)

__all__ = [
    "CandidateEdge",
    "DependencyGraph",
    "GraphEdge",
    "GraphNode",
    "RelationshipType",
    "ResourceDependencies",
    "ResourceReport",
    "Strength",
    "connected_subgraph",
    "graph_statistics",
]
