"""Data structures for the resource dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RelationshipType(StrEnum):
    """Types of relationships between Kubernetes resources (closed set)."""

    OWNER = "owner"
    VOLUME = "volume"
    CONFIG_MAP = "configMap"
    SECRET = "secret"
    SERVICE_ACCOUNT = "serviceAccount"
    IMAGE_PULL_SECRET = "imagePullSecret"
    ENVIRONMENT = "environment"
    SERVICE = "service"
    NETWORK = "network"
    SCHEDULING = "scheduling"
    CUSTOM = "custom"


class Strength(StrEnum):
    """strong = explicit structural reference, weak = heuristic or selector inference."""

    STRONG = "strong"
    WEAK = "weak"


# Relationship types whose reverse ("what consumes me") edges are synthesized.
PROVIDER_TYPES: frozenset[RelationshipType] = frozenset(
    {
        RelationshipType.CONFIG_MAP,
        RelationshipType.SECRET,
        RelationshipType.SERVICE_ACCOUNT,
        RelationshipType.ENVIRONMENT,
    }
)


def node_id(kind: str, name: str, namespace: str | None = None) -> str:
    """Derive the canonical node id ``<kind>/<name>[@<namespace>]``."""
    return f"{kind}/{name}@{namespace}" if namespace else f"{kind}/{name}"


def parse_node_id(value: str) -> tuple[str, str, str | None]:
    """Split a node id back into ``(kind, name, namespace)``."""
    kind_name, _, namespace = value.partition("@")
    kind, _, name = kind_name.partition("/")
    return kind, name, namespace or None


def edge_id(source: str, target: str, rel_type: RelationshipType | str, reverse: bool = False) -> str:
    """Derive the deduplication key for an edge.

    Forward edges use ``source->target:type``; synthesized reverse edges carry
    a ``<-`` marker so they never collide with a forward edge between the same
    pair of nodes.
    """
    arrow = "<-" if reverse else "->"
    return f"{source}{arrow}{target}:{rel_type}"


@dataclass(frozen=True)
class GraphNode:
    """A node in the dependency graph representing a resource (or a schema kind)."""

    id: str
    kind: str
    name: str
    namespace: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    creation_timestamp: str | None = None
    status: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "labels": dict(self.labels),
            "status": dict(self.status),
        }
        if self.namespace:
            data["namespace"] = self.namespace
        if self.creation_timestamp:
            data["creationTimestamp"] = self.creation_timestamp
        return data


@dataclass(frozen=True)
class GraphEdge:
    """A typed, deduplicated edge between two graph nodes."""

    id: str
    source: str
    target: str
    type: RelationshipType
    strength: Strength
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def reason(self) -> str:
        return str(self.metadata.get("reason", ""))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "strength": self.strength.value,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class CandidateEdge:
    """A relationship emitted by a rule before it is placed in a graph.

    ``target`` is a node id. Selector placeholders have no target yet: they
    carry the raw ``selector`` map and the ``target_kind`` it applies to and
    are turned into concrete edges by the selector resolver.
    """

    type: RelationshipType
    strength: Strength
    field: str
    reason: str
    target: str | None = None
    selector: dict[str, str] | None = None
    target_kind: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.target is None and self.selector is not None

    def metadata(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "reason": self.reason}
        data.update(self.context)
        if self.selector is not None:
            data["selector"] = dict(self.selector)
        return data

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "strength": self.strength.value,
            "metadata": self.metadata(),
        }
        if self.target is not None:
            data["target"] = self.target
        if self.target_kind is not None:
            data["targetKind"] = self.target_kind
        return data


@dataclass
class ResourceDependencies:
    """Rule engine output for one resource."""

    outgoing: list[CandidateEdge] = field(default_factory=list)
    incoming: list[CandidateEdge] = field(default_factory=list)
    related: list[CandidateEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "outgoing": [e.to_dict() for e in self.outgoing],
            "incoming": [e.to_dict() for e in self.incoming],
            "related": [e.to_dict() for e in self.related],
        }


@dataclass
class DependencyGraph:
    """The canonical graph produced by one computation, independent of export format."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def to_dict(self) -> dict[str, Any]:
        metadata = dict(self.metadata)
        metadata["nodeCount"] = self.node_count
        metadata["edgeCount"] = self.edge_count
        return {
            "metadata": metadata,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass
class ResourceReport:
    """Relationship report for one resource."""

    resource: GraphNode
    dependencies: ResourceDependencies
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource.to_dict(),
            "dependencies": self.dependencies.to_dict(),
            "metadata": dict(self.metadata),
        }
