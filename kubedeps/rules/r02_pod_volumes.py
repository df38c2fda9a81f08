"""R02 PodVolumes -- applies to Pods and every pod-template-bearing workload.

Volumes backed by a ConfigMap, a Secret or a PersistentVolumeClaim become
strong ``configMap`` / ``secret`` / ``volume`` edges. Projected volume
sources are unpacked the same way.
"""

from __future__ import annotations

from typing import Any

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import POD_SPEC_PATHS, KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, dict_items, ref_name, target_id


class PodVolumeRule(RelationshipRule):
    """ConfigMap, Secret and claim volumes of a pod spec."""

    rule_id = "R02_pod_volumes"
    display_name = "Pod volumes"
    kinds = frozenset(POD_SPEC_PATHS)

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        found = resource.pod_spec()
        if found is None:
            return []
        pod_spec, path = found
        edges: list[CandidateEdge] = []
        for i, volume in dict_items(pod_spec.get("volumes")):
            vol_path = f"{path}.volumes[{i}]"
            vol_name = str(volume.get("name", ""))

            cm_name = ref_name(volume.get("configMap"))
            if cm_name:
                edges.append(self._edge(resource, RelationshipType.CONFIG_MAP, ResourceKind.CONFIG_MAP,
                                        cm_name, f"{vol_path}.configMap.name", vol_name))

            secret_name = ref_name(volume.get("secret"), "secretName")
            if secret_name:
                edges.append(self._edge(resource, RelationshipType.SECRET, ResourceKind.SECRET,
                                        secret_name, f"{vol_path}.secret.secretName", vol_name))

            claim_name = ref_name(volume.get("persistentVolumeClaim"), "claimName")
            if claim_name:
                edges.append(self._edge(resource, RelationshipType.VOLUME, ResourceKind.PERSISTENT_VOLUME_CLAIM,
                                        claim_name, f"{vol_path}.persistentVolumeClaim.claimName", vol_name))

            edges.extend(self._projected(resource, volume.get("projected"), vol_path, vol_name))
        return edges

    def _projected(
        self,
        resource: KubeResource,
        projected: Any,
        vol_path: str,
        vol_name: str,
    ) -> list[CandidateEdge]:
        if not isinstance(projected, dict):
            return []
        edges: list[CandidateEdge] = []
        for j, source in dict_items(projected.get("sources")):
            src_path = f"{vol_path}.projected.sources[{j}]"
            cm_name = ref_name(source.get("configMap"))
            if cm_name:
                edges.append(self._edge(resource, RelationshipType.CONFIG_MAP, ResourceKind.CONFIG_MAP,
                                        cm_name, f"{src_path}.configMap.name", vol_name))
            secret_name = ref_name(source.get("secret"))
            if secret_name:
                edges.append(self._edge(resource, RelationshipType.SECRET, ResourceKind.SECRET,
                                        secret_name, f"{src_path}.secret.name", vol_name))
        return edges

    @staticmethod
    def _edge(
        resource: KubeResource,
        rel_type: RelationshipType,
        target_kind: ResourceKind,
        target_name: str,
        field_path: str,
        volume_name: str,
    ) -> CandidateEdge:
        return CandidateEdge(
            type=rel_type,
            strength=Strength.STRONG,
            field=field_path,
            reason=f"Volume {volume_name or '<unnamed>'} mounts {target_kind} {target_name}",
            target=target_id(target_kind, target_name, resource.namespace),
            context={"volume": volume_name},
        )
