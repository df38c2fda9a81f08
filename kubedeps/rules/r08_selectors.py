"""R08 LabelSelectors -- Service and NetworkPolicy.

Selectors cannot be resolved from one object alone: the pods they match may
not have been seen yet. The rule emits a placeholder carrying the raw
selector map; ``SelectorResolver`` turns it into concrete edges once every
node of the computation is known. Empty selectors emit nothing.
"""

from __future__ import annotations

from typing import Any

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule


def _label_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


class LabelSelectorRule(RelationshipRule):
    rule_id = "R08_selectors"
    display_name = "Label selectors"
    kinds = frozenset({ResourceKind.SERVICE, ResourceKind.NETWORK_POLICY})

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        if resource.known_kind is ResourceKind.SERVICE:
            selector = _label_map(resource.spec.get("selector"))
            rel_type, field_path = RelationshipType.SERVICE, "spec.selector"
            verb = "routes traffic to"
        else:
            pod_selector = resource.spec.get("podSelector")
            selector = _label_map(pod_selector.get("matchLabels")) if isinstance(pod_selector, dict) else {}
            rel_type, field_path = RelationshipType.NETWORK, "spec.podSelector.matchLabels"
            verb = "applies to"
        if not selector:
            return []
        rendered = ",".join(f"{k}={v}" for k, v in sorted(selector.items()))
        return [
            CandidateEdge(
                type=rel_type,
                strength=Strength.WEAK,
                field=field_path,
                reason=f"{resource.kind} {resource.name} {verb} pods matching {rendered}",
                selector=selector,
                target_kind=ResourceKind.POD.value,
            )
        ]
