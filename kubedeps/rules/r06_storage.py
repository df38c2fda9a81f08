"""R06 Storage -- PersistentVolumeClaim and PersistentVolume.

Claim -> bound PersistentVolume (``spec.volumeName``) and claim or volume ->
StorageClass (``spec.storageClassName``) become strong ``volume`` edges.
"""

from __future__ import annotations

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, target_id


class StorageBindingRule(RelationshipRule):
    """Volume binding and storage class references."""

    rule_id = "R06_storage"
    display_name = "Storage bindings"
    kinds = frozenset({ResourceKind.PERSISTENT_VOLUME_CLAIM, ResourceKind.PERSISTENT_VOLUME})

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        edges: list[CandidateEdge] = []
        if resource.known_kind is ResourceKind.PERSISTENT_VOLUME_CLAIM:
            volume_name = str(resource.spec.get("volumeName") or "")
            if volume_name:
                edges.append(
                    CandidateEdge(
                        type=RelationshipType.VOLUME,
                        strength=Strength.STRONG,
                        field="spec.volumeName",
                        reason=f"Claim {resource.name} is bound to PersistentVolume {volume_name}",
                        target=target_id(ResourceKind.PERSISTENT_VOLUME, volume_name, resource.namespace),
                    )
                )

        class_name = str(resource.spec.get("storageClassName") or "")
        if class_name:
            edges.append(
                CandidateEdge(
                    type=RelationshipType.VOLUME,
                    strength=Strength.STRONG,
                    field="spec.storageClassName",
                    reason=f"{resource.kind} {resource.name} is provisioned by StorageClass {class_name}",
                    target=target_id(ResourceKind.STORAGE_CLASS, class_name, resource.namespace),
                )
            )
        return edges
