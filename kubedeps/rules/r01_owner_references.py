"""R01 OwnerReferences -- applies to every kind.

Each ``metadata.ownerReferences`` entry becomes a strong ``owner`` edge from
the owned object to its owner.
"""

from __future__ import annotations

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource
from kubedeps.rules.base import RelationshipRule, target_id


class OwnerReferenceRule(RelationshipRule):
    """Ownership via ``metadata.ownerReferences``."""

    rule_id = "R01_owner_references"
    display_name = "Owner references"

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        edges: list[CandidateEdge] = []
        for i, ref in enumerate(resource.owner_references):
            edges.append(
                CandidateEdge(
                    type=RelationshipType.OWNER,
                    strength=Strength.STRONG,
                    field=f"metadata.ownerReferences[{i}]",
                    reason=f"{resource.kind} {resource.name} is owned by {ref.kind} {ref.name}",
                    target=target_id(ref.kind, ref.name, resource.namespace),
                    context={"controller": ref.controller},
                )
            )
        return edges
