"""Static catalog of well-known core resource kinds.

Read-only and shared by every CRD analysis. Each entry names the kind's API
group, preferred version, plural, scope, the field-name aliases that count
as a reference to it, and the relationship type such a reference implies.
"""

from __future__ import annotations

from dataclasses import dataclass

from kubedeps.graph.models import RelationshipType, node_id


@dataclass(frozen=True)
class CoreKind:
    kind: str
    group: str
    version: str
    plural: str
    scope: str
    relationship: RelationshipType
    aliases: tuple[str, ...] = ()

    @property
    def api_group(self) -> str:
        return self.group or "core"

    @property
    def node_id(self) -> str:
        return schema_node_id(self.kind, self.plural, self.group)

    @property
    def match_names(self) -> tuple[str, ...]:
        """Lower-cased field-name stems that refer to this kind."""
        return (self.kind.lower(), *(a.lower() for a in self.aliases))


def schema_node_id(kind: str, plural: str, group: str) -> str:
    """Id of a schema node; the name part is the ``<plural>.<group>`` resource name."""
    return node_id(kind, f"{plural}.{group}" if group else plural)


_R = RelationshipType

CORE_KINDS: tuple[CoreKind, ...] = (
    CoreKind("ConfigMap", "", "v1", "configmaps", "Namespaced", _R.CONFIG_MAP),
    CoreKind("Secret", "", "v1", "secrets", "Namespaced", _R.SECRET),
    CoreKind("ServiceAccount", "", "v1", "serviceaccounts", "Namespaced", _R.SERVICE_ACCOUNT),
    CoreKind(
        "PersistentVolumeClaim",
        "",
        "v1",
        "persistentvolumeclaims",
        "Namespaced",
        _R.VOLUME,
        ("claim", "pvc", "volumeClaim"),
    ),
    CoreKind("PersistentVolume", "", "v1", "persistentvolumes", "Cluster", _R.VOLUME),
    CoreKind("StorageClass", "storage.k8s.io", "v1", "storageclasses", "Cluster", _R.VOLUME),
    CoreKind("Service", "", "v1", "services", "Namespaced", _R.SERVICE),
    CoreKind("Ingress", "networking.k8s.io", "v1", "ingresses", "Namespaced", _R.SERVICE),
    CoreKind("NetworkPolicy", "networking.k8s.io", "v1", "networkpolicies", "Namespaced", _R.NETWORK),
    CoreKind("Node", "", "v1", "nodes", "Cluster", _R.SCHEDULING),
    CoreKind("Namespace", "", "v1", "namespaces", "Cluster", _R.CUSTOM),
    CoreKind("Pod", "", "v1", "pods", "Namespaced", _R.CUSTOM),
    CoreKind("Deployment", "apps", "v1", "deployments", "Namespaced", _R.CUSTOM),
    CoreKind("StatefulSet", "apps", "v1", "statefulsets", "Namespaced", _R.CUSTOM),
    CoreKind("DaemonSet", "apps", "v1", "daemonsets", "Namespaced", _R.CUSTOM),
    CoreKind("ReplicaSet", "apps", "v1", "replicasets", "Namespaced", _R.CUSTOM),
    CoreKind("Job", "batch", "v1", "jobs", "Namespaced", _R.CUSTOM),
    CoreKind("CronJob", "batch", "v1", "cronjobs", "Namespaced", _R.CUSTOM),
)
