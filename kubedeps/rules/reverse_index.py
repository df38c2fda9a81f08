"""Bounded reverse index for "what consumes me" lookups.

Only built for single-resource reports on provider kinds. The index is fed
an explicit, already-capped list of consumer resources and inverts their
outgoing edges; it never triggers a fetch of its own.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from kubedeps.graph.models import CandidateEdge, node_id
from kubedeps.models.resources import KubeResource, ResourceKind

if TYPE_CHECKING:
    from kubedeps.rules.base import RelationshipRuleEngine

PROVIDER_KINDS: frozenset[ResourceKind] = frozenset(
    {
        ResourceKind.CONFIG_MAP,
        ResourceKind.SECRET,
        ResourceKind.SERVICE_ACCOUNT,
        ResourceKind.PERSISTENT_VOLUME_CLAIM,
    }
)


class ReverseIndex:
    """Maps a provider node id to the incoming edges of its consumers."""

    def __init__(
        self,
        engine: RelationshipRuleEngine,
        consumers: Iterable[KubeResource],
        max_entries: int = 50,
    ) -> None:
        self._max_entries = max_entries
        self._index: dict[str, list[CandidateEdge]] = defaultdict(list)
        self.consumers_scanned = 0
        for consumer in consumers:
            self.consumers_scanned += 1
            consumer_id = node_id(consumer.kind, consumer.name, consumer.namespace or None)
            for edge in engine.analyze(consumer).outgoing:
                if edge.target is None:
                    continue
                self._index[edge.target].append(
                    CandidateEdge(
                        type=edge.type,
                        strength=edge.strength,
                        field=edge.field,
                        reason=edge.reason,
                        target=consumer_id,
                        context={**edge.context, "direction": "incoming"},
                    )
                )

    def incoming_for(self, resource: KubeResource) -> list[CandidateEdge]:
        """Incoming edges for *resource*; empty unless it is a provider kind."""
        if resource.known_kind not in PROVIDER_KINDS:
            return []
        key = node_id(resource.kind, resource.name, resource.namespace or None)
        return self._index.get(key, [])[: self._max_entries]
