"""R04 PodIdentity -- applies to Pods and every pod-template-bearing workload.

A non-default ``serviceAccountName`` becomes a strong ``serviceAccount``
edge; each ``imagePullSecrets`` entry a strong ``imagePullSecret`` edge.
"""

from __future__ import annotations

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import POD_SPEC_PATHS, KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, dict_items, target_id

_DEFAULT_SERVICE_ACCOUNT = "default"


class PodIdentityRule(RelationshipRule):
    """Service account and image pull credentials of a pod spec."""

    rule_id = "R04_pod_identity"
    display_name = "Pod identity and pull credentials"
    kinds = frozenset(POD_SPEC_PATHS)

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        found = resource.pod_spec()
        if found is None:
            return []
        pod_spec, path = found
        edges: list[CandidateEdge] = []

        # serviceAccount is the deprecated alias of serviceAccountName
        sa_field = "serviceAccountName" if pod_spec.get("serviceAccountName") else "serviceAccount"
        sa_name = str(pod_spec.get(sa_field) or "")
        if sa_name and sa_name != _DEFAULT_SERVICE_ACCOUNT:
            edges.append(
                CandidateEdge(
                    type=RelationshipType.SERVICE_ACCOUNT,
                    strength=Strength.STRONG,
                    field=f"{path}.{sa_field}",
                    reason=f"{resource.kind} {resource.name} runs as ServiceAccount {sa_name}",
                    target=target_id(ResourceKind.SERVICE_ACCOUNT, sa_name, resource.namespace),
                )
            )

        for i, ref in dict_items(pod_spec.get("imagePullSecrets")):
            name = str(ref.get("name") or "")
            if not name:
                continue
            edges.append(
                CandidateEdge(
                    type=RelationshipType.IMAGE_PULL_SECRET,
                    strength=Strength.STRONG,
                    field=f"{path}.imagePullSecrets[{i}]",
                    reason=f"{resource.kind} {resource.name} pulls images with Secret {name}",
                    target=target_id(ResourceKind.SECRET, name, resource.namespace),
                )
            )
        return edges
