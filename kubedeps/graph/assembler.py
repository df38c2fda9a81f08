"""Idempotent graph assembly.

Nodes are keyed by their derived id, edges by their derived edge id. Adding
something twice is a silent no-op and the first-seen version wins, so
repeated fetches or repeated rule runs never duplicate graph elements.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from kubedeps.graph.models import (
    PROVIDER_TYPES,
    CandidateEdge,
    DependencyGraph,
    GraphEdge,
    GraphNode,
    edge_id,
    node_id,
    parse_node_id,
)
from kubedeps.models.resources import KubeResource

_STATUS_KEYS = ("phase", "replicas", "readyReplicas", "availableReplicas", "succeeded", "failed", "active")


def summarize_status(resource: KubeResource) -> dict[str, Any]:
    """Small, render-friendly subset of ``status``."""
    summary = {k: resource.status[k] for k in _STATUS_KEYS if k in resource.status}
    if isinstance(resource.status.get("active"), list):
        summary["active"] = len(resource.status["active"])
    return summary


def node_from_resource(resource: KubeResource) -> GraphNode:
    namespace = resource.namespace or None
    return GraphNode(
        id=node_id(resource.kind, resource.name, namespace),
        kind=resource.kind,
        name=resource.name,
        namespace=namespace,
        labels=dict(resource.labels),
        creation_timestamp=resource.creation_timestamp,
        status=summarize_status(resource),
    )


class GraphAssembler:
    """Accumulates nodes and edges for one computation."""

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}
        self._edges: dict[str, GraphEdge] = {}
        self.reverse_edge_count = 0
        self.placeholder_count = 0

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def has_node(self, node_id_: str) -> bool:
        return node_id_ in self._nodes

    def get_node(self, node_id_: str) -> GraphNode | None:
        return self._nodes.get(node_id_)

    def nodes(self, kind: str | None = None) -> list[GraphNode]:
        if kind is None:
            return list(self._nodes.values())
        return [n for n in self._nodes.values() if n.kind == kind]

    def edges(self) -> list[GraphEdge]:
        return list(self._edges.values())

    def add_node(self, node: GraphNode) -> bool:
        """Add *node*; returns False if a node with the same id already exists."""
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        return True

    def add_resource(self, resource: KubeResource) -> GraphNode:
        """Add the node for *resource* and return the node held by the graph."""
        node = node_from_resource(resource)
        self.add_node(node)
        return self._nodes[node.id]

    def add_edge(self, edge: GraphEdge) -> bool:
        """Add *edge*; returns False if its derived id is already present."""
        if edge.id in self._edges:
            return False
        self._edges[edge.id] = edge
        return True

    def add_candidate(self, source: str, candidate: CandidateEdge) -> bool:
        """Place a concrete candidate edge emitted for the node *source*."""
        if candidate.target is None:
            raise ValueError("selector placeholders must be resolved before assembly")
        return self.add_edge(
            GraphEdge(
                id=edge_id(source, candidate.target, candidate.type),
                source=source,
                target=candidate.target,
                type=candidate.type,
                strength=candidate.strength,
                metadata=candidate.metadata(),
            )
        )

    def synthesize_reverse_edges(self, max_edges: int) -> int:
        """Invert forward edges of provider types, at most *max_edges* of them.

        Forward edges are visited in insertion order, which keeps the chosen
        subset deterministic for a given input. Returns the number added.
        """
        added = 0
        for edge in list(self._edges.values()):
            if added >= max_edges:
                break
            if edge.type not in PROVIDER_TYPES or edge.metadata.get("reverse"):
                continue
            reverse = GraphEdge(
                id=edge_id(edge.target, edge.source, edge.type, reverse=True),
                source=edge.target,
                target=edge.source,
                type=edge.type,
                strength=edge.strength,
                metadata={
                    "field": edge.metadata.get("field", ""),
                    "reason": f"{edge.target} is consumed by {edge.source}",
                    "reverse": True,
                    "inverseOf": edge.id,
                },
            )
            if self.add_edge(reverse):
                added += 1
        self.reverse_edge_count += added
        return added

    def drop_edges_touching(self, node_ids: Iterable[str]) -> int:
        """Remove every edge with an endpoint in *node_ids*; returns the number removed."""
        dropped = set(node_ids)
        if not dropped:
            return 0
        doomed = [k for k, e in self._edges.items() if e.source in dropped or e.target in dropped]
        for key in doomed:
            del self._edges[key]
        return len(doomed)

    def materialize_missing_endpoints(self, admit: Callable[[str, bool], bool] | None = None) -> int:
        """Add placeholder nodes for edge endpoints that were never fetched.

        Keeps the graph well-formed: every edge endpoint exists in ``nodes``.
        Placeholders are marked ``status={"unresolved": True}``. When *admit*
        is given it is asked ``admit(node_id, cluster_scoped)`` for each
        placeholder; edges to a refused placeholder are dropped instead.
        """
        added = 0
        refused: set[str] = set()
        for edge in list(self._edges.values()):
            for endpoint in (edge.source, edge.target):
                if endpoint in self._nodes or endpoint in refused:
                    continue
                kind, name, namespace = parse_node_id(endpoint)
                if admit is not None and not admit(endpoint, namespace is None):
                    refused.add(endpoint)
                    continue
                self._nodes[endpoint] = GraphNode(
                    id=endpoint,
                    kind=kind,
                    name=name,
                    namespace=namespace,
                    status={"unresolved": True},
                )
                added += 1
        self.drop_edges_touching(refused)
        self.placeholder_count += added
        return added

    def build(self, metadata: dict[str, Any] | None = None) -> DependencyGraph:
        return DependencyGraph(
            nodes=list(self._nodes.values()),
            edges=list(self._edges.values()),
            metadata=dict(metadata or {}),
        )


def filter_graph(
    graph: DependencyGraph,
    resource_types: Iterable[str] | None = None,
    dependency_types: Iterable[str] | None = None,
) -> DependencyGraph:
    """Prune *graph* to the given node kinds and edge types.

    Edges whose endpoints were pruned are dropped. An empty or ``None``
    filter keeps everything for that dimension.
    """
    kinds = {k for k in (resource_types or []) if k}
    types = {t for t in (dependency_types or []) if t}
    nodes = [n for n in graph.nodes if not kinds or n.kind in kinds]
    kept = {n.id for n in nodes}
    edges = [
        e
        for e in graph.edges
        if e.source in kept and e.target in kept and (not types or e.type.value in types)
    ]
    metadata = dict(graph.metadata)
    if kinds or types:
        metadata["filters"] = {
            **metadata.get("filters", {}),
            "resourceTypes": sorted(kinds),
            "dependencyTypes": sorted(types),
        }
    return DependencyGraph(nodes=nodes, edges=edges, metadata=metadata)
