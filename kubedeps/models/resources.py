"""Typed view over loosely-shaped Kubernetes objects.

Raw objects coming back from the cluster are ``kind``-tagged dictionaries.
``parse_resource`` converts each one into a ``KubeResource`` exactly once;
beyond this module nothing inspects raw metadata by string probing. Kinds
outside ``ResourceKind`` are still represented, with ``known_kind`` set to
``None`` (custom resources and anything else the cluster returns).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ResourceKind(StrEnum):
    """Kinds the relationship rules understand."""

    POD = "Pod"
    SERVICE = "Service"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    SERVICE_ACCOUNT = "ServiceAccount"
    PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
    PERSISTENT_VOLUME = "PersistentVolume"
    STORAGE_CLASS = "StorageClass"
    NODE = "Node"
    NAMESPACE = "Namespace"
    DEPLOYMENT = "Deployment"
    REPLICA_SET = "ReplicaSet"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    JOB = "Job"
    CRON_JOB = "CronJob"
    INGRESS = "Ingress"
    NETWORK_POLICY = "NetworkPolicy"


CLUSTER_SCOPED_KINDS: frozenset[str] = frozenset(
    {
        ResourceKind.NODE,
        ResourceKind.NAMESPACE,
        ResourceKind.PERSISTENT_VOLUME,
        ResourceKind.STORAGE_CLASS,
    }
)

# Where the pod spec lives for every kind that carries one.
POD_SPEC_PATHS: dict[ResourceKind, tuple[str, ...]] = {
    ResourceKind.POD: ("spec",),
    ResourceKind.DEPLOYMENT: ("spec", "template", "spec"),
    ResourceKind.REPLICA_SET: ("spec", "template", "spec"),
    ResourceKind.STATEFUL_SET: ("spec", "template", "spec"),
    ResourceKind.DAEMON_SET: ("spec", "template", "spec"),
    ResourceKind.JOB: ("spec", "template", "spec"),
    ResourceKind.CRON_JOB: ("spec", "jobTemplate", "spec", "template", "spec"),
}

_KIND_ALIASES: dict[str, ResourceKind] = {
    "po": ResourceKind.POD,
    "pods": ResourceKind.POD,
    "svc": ResourceKind.SERVICE,
    "services": ResourceKind.SERVICE,
    "cm": ResourceKind.CONFIG_MAP,
    "configmaps": ResourceKind.CONFIG_MAP,
    "secrets": ResourceKind.SECRET,
    "sa": ResourceKind.SERVICE_ACCOUNT,
    "serviceaccounts": ResourceKind.SERVICE_ACCOUNT,
    "pvc": ResourceKind.PERSISTENT_VOLUME_CLAIM,
    "persistentvolumeclaims": ResourceKind.PERSISTENT_VOLUME_CLAIM,
    "pv": ResourceKind.PERSISTENT_VOLUME,
    "persistentvolumes": ResourceKind.PERSISTENT_VOLUME,
    "sc": ResourceKind.STORAGE_CLASS,
    "storageclasses": ResourceKind.STORAGE_CLASS,
    "no": ResourceKind.NODE,
    "nodes": ResourceKind.NODE,
    "ns": ResourceKind.NAMESPACE,
    "namespaces": ResourceKind.NAMESPACE,
    "deploy": ResourceKind.DEPLOYMENT,
    "deployments": ResourceKind.DEPLOYMENT,
    "rs": ResourceKind.REPLICA_SET,
    "replicasets": ResourceKind.REPLICA_SET,
    "sts": ResourceKind.STATEFUL_SET,
    "statefulsets": ResourceKind.STATEFUL_SET,
    "ds": ResourceKind.DAEMON_SET,
    "daemonsets": ResourceKind.DAEMON_SET,
    "jobs": ResourceKind.JOB,
    "cj": ResourceKind.CRON_JOB,
    "cronjobs": ResourceKind.CRON_JOB,
    "ing": ResourceKind.INGRESS,
    "ingresses": ResourceKind.INGRESS,
    "netpol": ResourceKind.NETWORK_POLICY,
    "networkpolicies": ResourceKind.NETWORK_POLICY,
}


class UnsupportedKindError(ValueError):
    """Raised when a request names a kind that is not a known resource kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unsupported resource kind: {kind!r}")
        self.kind = kind


def canonical_kind(value: str) -> ResourceKind:
    """Resolve a kind name, plural or short name to its ``ResourceKind``.

    Matching is case-insensitive. Raises ``UnsupportedKindError`` otherwise.
    """
    lowered = value.strip().lower()
    for kind in ResourceKind:
        if kind.value.lower() == lowered:
            return kind
    try:
        return _KIND_ALIASES[lowered]
    except KeyError:
        raise UnsupportedKindError(value) from None


def is_cluster_scoped(kind: str) -> bool:
    return kind in CLUSTER_SCOPED_KINDS


@dataclass(frozen=True)
class OwnerReference:
    """One entry of ``metadata.ownerReferences``."""

    kind: str
    name: str
    uid: str = ""
    controller: bool = False


@dataclass(frozen=True)
class KubeResource:
    """Immutable view of one live cluster object."""

    kind: str
    name: str
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: tuple[OwnerReference, ...] = ()
    creation_timestamp: str | None = None
    spec: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)
    cluster_scoped: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def known_kind(self) -> ResourceKind | None:
        """The ``ResourceKind`` variant, or ``None`` for the unknown-kind fallback."""
        try:
            return ResourceKind(self.kind)
        except ValueError:
            return None

    def pod_spec(self) -> tuple[dict[str, Any], str] | None:
        """Return the nested pod spec and its dotted path, if this kind has one."""
        kind = self.known_kind
        if kind is None or kind not in POD_SPEC_PATHS:
            return None
        path = POD_SPEC_PATHS[kind]
        current: Any = {"spec": self.spec}
        for segment in path:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
        if not isinstance(current, dict):
            return None
        return current, ".".join(path)


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def _owner_refs(value: Any) -> tuple[OwnerReference, ...]:
    if not isinstance(value, list):
        return ()
    refs: list[OwnerReference] = []
    for ref in value:
        if not isinstance(ref, dict):
            continue
        kind = ref.get("kind")
        name = ref.get("name")
        if not kind or not name:
            continue
        refs.append(
            OwnerReference(
                kind=str(kind),
                name=str(name),
                uid=str(ref.get("uid") or ""),
                controller=bool(ref.get("controller", False)),
            )
        )
    return tuple(refs)


def parse_resource(
    raw: dict[str, Any],
    kind: str | None = None,
    cluster_scoped: bool | None = None,
) -> KubeResource:
    """Build a ``KubeResource`` from a raw API object.

    ``kind`` overrides the object's own ``kind`` field; list responses from
    the API server omit it on the individual items. ``cluster_scoped``
    overrides the built-in scope table, for custom kinds whose CRD declares
    ``scope: Cluster``.

    Raises ``ValueError`` if the object has no usable kind or name.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"resource must be a mapping, got {type(raw).__name__}")
    resolved_kind = kind or raw.get("kind")
    metadata = raw.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    name = metadata.get("name")
    if not resolved_kind or not name:
        raise ValueError("resource is missing kind or metadata.name")

    spec = raw.get("spec")
    status = raw.get("status")
    created = metadata.get("creationTimestamp")
    if cluster_scoped is None:
        cluster_scoped = is_cluster_scoped(str(resolved_kind))
    return KubeResource(
        kind=str(resolved_kind),
        name=str(name),
        namespace="" if cluster_scoped else str(metadata.get("namespace") or ""),
        uid=str(metadata.get("uid") or ""),
        labels=_str_map(metadata.get("labels")),
        annotations=_str_map(metadata.get("annotations")),
        owner_references=_owner_refs(metadata.get("ownerReferences")),
        creation_timestamp=str(created) if created else None,
        spec=spec if isinstance(spec, dict) else {},
        status=status if isinstance(status, dict) else {},
        cluster_scoped=cluster_scoped,
        raw=raw,
    )


class ResourceNotFoundError(LookupError):
    """Raised when a single-resource report names an object the cluster does not have."""

    def __init__(self, kind: str, name: str, namespace: str = "") -> None:
        where = f" in namespace {namespace!r}" if namespace else ""
        super().__init__(f"{kind} {name!r} not found{where}")
        self.kind = kind
        self.name = name
        self.namespace = namespace
