"""R03 PodEnvironment -- applies to Pods and every pod-template-bearing workload.

``env[].valueFrom.configMapKeyRef|secretKeyRef`` and
``envFrom[].configMapRef|secretRef`` of containers and init containers become
strong ``environment`` edges. Every (container, env index) pair produces its
own candidate with its own reason; candidates pointing at the same target
collapse later under one derived edge id.
"""

from __future__ import annotations

from typing import Any

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import POD_SPEC_PATHS, KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, dict_items, ref_name, target_id

_CONTAINER_LISTS = ("initContainers", "containers")


class PodEnvironmentRule(RelationshipRule):
    """Environment variables sourced from ConfigMaps and Secrets."""

    rule_id = "R03_pod_environment"
    display_name = "Pod environment sources"
    kinds = frozenset(POD_SPEC_PATHS)

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        found = resource.pod_spec()
        if found is None:
            return []
        pod_spec, path = found
        edges: list[CandidateEdge] = []
        for list_key in _CONTAINER_LISTS:
            for ci, container in dict_items(pod_spec.get(list_key)):
                c_path = f"{path}.{list_key}[{ci}]"
                c_name = str(container.get("name") or f"#{ci}")
                edges.extend(self._env(resource, container.get("env"), c_path, c_name))
                edges.extend(self._env_from(resource, container.get("envFrom"), c_path, c_name))
        return edges

    def _env(self, resource: KubeResource, env: Any, c_path: str, c_name: str) -> list[CandidateEdge]:
        edges: list[CandidateEdge] = []
        for ei, var in dict_items(env):
            value_from = var.get("valueFrom")
            if not isinstance(value_from, dict):
                continue
            var_name = str(var.get("name", ""))
            for ref_key, kind in (("configMapKeyRef", ResourceKind.CONFIG_MAP), ("secretKeyRef", ResourceKind.SECRET)):
                ref = value_from.get(ref_key)
                name = ref_name(ref)
                if not name:
                    continue
                key = ref.get("key", "") if isinstance(ref, dict) else ""
                edges.append(
                    CandidateEdge(
                        type=RelationshipType.ENVIRONMENT,
                        strength=Strength.STRONG,
                        field=f"{c_path}.env[{ei}].valueFrom.{ref_key}",
                        reason=f"Container {c_name} env {var_name} reads key {key or '?'} from {kind} {name}",
                        target=target_id(kind, name, resource.namespace),
                        context={"container": c_name, "variable": var_name},
                    )
                )
        return edges

    def _env_from(self, resource: KubeResource, env_from: Any, c_path: str, c_name: str) -> list[CandidateEdge]:
        edges: list[CandidateEdge] = []
        for fi, source in dict_items(env_from):
            for ref_key, kind in (("configMapRef", ResourceKind.CONFIG_MAP), ("secretRef", ResourceKind.SECRET)):
                name = ref_name(source.get(ref_key))
                if not name:
                    continue
                edges.append(
                    CandidateEdge(
                        type=RelationshipType.ENVIRONMENT,
                        strength=Strength.STRONG,
                        field=f"{c_path}.envFrom[{fi}].{ref_key}",
                        reason=f"Container {c_name} imports all keys of {kind} {name}",
                        target=target_id(kind, name, resource.namespace),
                        context={"container": c_name},
                    )
                )
        return edges
