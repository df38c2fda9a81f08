"""R05 Scheduling -- Pod only.

``spec.nodeName`` of a scheduled Pod becomes a strong ``scheduling`` edge to
the Node.
"""

from __future__ import annotations

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, target_id


class SchedulingRule(RelationshipRule):
    rule_id = "R05_scheduling"
    display_name = "Pod node assignment"
    kinds = frozenset({ResourceKind.POD})

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        node_name = str(resource.spec.get("nodeName") or "")
        if not node_name:
            return []
        return [
            CandidateEdge(
                type=RelationshipType.SCHEDULING,
                strength=Strength.STRONG,
                field="spec.nodeName",
                reason=f"Pod {resource.name} is scheduled on Node {node_name}",
                target=target_id(ResourceKind.NODE, node_name, resource.namespace),
            )
        ]
