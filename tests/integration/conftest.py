"""Shared fixtures for kubedeps integration tests.

Provides an in-memory cluster client seeded with a realistic namespace (a
Deployment with its ReplicaSet and Pods, a Service, an Ingress, config and
storage objects) and the components wired on top of it, so integration tests
can exercise full pipelines without touching real Kubernetes clusters.
"""

from __future__ import annotations

import copy
from collections import Counter, defaultdict
from typing import Any

import pytest

from kubedeps.graph.builder import DependencyGraphBuilder
from kubedeps.models.config import GovernorConfig, KubeDepsConfig
from kubedeps.schema.service import CRDAnalysisService

# ---------------------------------------------------------------------------
# Fake cluster client
# ---------------------------------------------------------------------------


class FakeClusterClient:
    """In-memory ``ClusterClient``; records every list call it serves."""

    def __init__(self) -> None:
        self.objects: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.crds: list[dict[str, Any]] = []
        self.custom_objects: dict[tuple[str, str, str], list[dict[str, Any]]] = defaultdict(list)
        self.failing_kinds: set[str] = set()
        self.calls: Counter[tuple[str, str]] = Counter()

    def add(self, kind: str, obj: dict[str, Any]) -> None:
        self.objects[kind].append(obj)

    async def list_resources(
        self,
        kind: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.calls[(kind, namespace or "")] += 1
        if kind in self.failing_kinds:
            raise RuntimeError(f"list {kind} failed")
        items = [
            copy.deepcopy(obj)
            for obj in self.objects.get(kind, [])
            if namespace is None or obj["metadata"].get("namespace") == namespace
        ]
        return items[:limit] if limit else items

    async def list_custom_resource_definitions(self) -> list[dict[str, Any]]:
        self.calls[("CustomResourceDefinition", "")] += 1
        return copy.deepcopy(self.crds)

    async def list_custom_objects(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        items = [
            copy.deepcopy(obj)
            for obj in self.custom_objects.get((group, version, plural), [])
            if namespace is None or obj["metadata"].get("namespace") == namespace
        ]
        return items[:limit] if limit else items


# ---------------------------------------------------------------------------
# Object factories
# ---------------------------------------------------------------------------


def make_object(
    name: str,
    namespace: str | None = "default",
    labels: dict[str, str] | None = None,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    owners: list[tuple[str, str]] | None = None,
) -> dict[str, Any]:
    """Create a raw API object (list items carry no ``kind``)."""
    metadata: dict[str, Any] = {
        "name": name,
        "uid": f"uid-{name}",
        "labels": labels or {},
        "creationTimestamp": "2026-01-10T08:00:00Z",
    }
    if namespace:
        metadata["namespace"] = namespace
    if owners:
        metadata["ownerReferences"] = [
            {"kind": kind, "name": owner, "uid": f"uid-{owner}", "controller": True} for kind, owner in owners
        ]
    return {"metadata": metadata, "spec": spec or {}, "status": status or {}}


def pod_spec(
    config_map: str = "web-config",
    secret: str = "web-tls",
    claim: str = "web-data",
    service_account: str = "web",
) -> dict[str, Any]:
    return {
        "serviceAccountName": service_account,
        "containers": [
            {
                "name": "web",
                "image": "nginx:1.27",
                "envFrom": [{"configMapRef": {"name": config_map}}],
                "env": [{"name": "TOKEN", "valueFrom": {"secretKeyRef": {"name": secret, "key": "token"}}}],
            }
        ],
        "volumes": [
            {"name": "data", "persistentVolumeClaim": {"claimName": claim}},
            {"name": "config", "configMap": {"name": config_map}},
        ],
    }


def make_crd(
    kind: str,
    group: str,
    properties: dict[str, Any] | None = None,
    scope: str = "Namespaced",
    versions: tuple[str, ...] = ("v1",),
) -> dict[str, Any]:
    plural = f"{kind.lower()}s"
    return {
        "metadata": {"name": f"{plural}.{group}"},
        "spec": {
            "group": group,
            "scope": scope,
            "names": {"kind": kind, "plural": plural, "shortNames": [kind[:2].lower()]},
            "versions": [
                {
                    "name": v,
                    "served": True,
                    "storage": i == 0,
                    "schema": {
                        "openAPIV3Schema": {
                            "type": "object",
                            "properties": {"spec": {"type": "object", "properties": properties or {}}},
                        }
                    },
                }
                for i, v in enumerate(versions)
            ],
        },
    }


def _seed_namespace(client: FakeClusterClient) -> None:
    client.add("Deployment", make_object("web", labels={"app": "web"}, spec={"template": {"spec": pod_spec()}}))
    client.add(
        "ReplicaSet",
        make_object(
            "web-7d4b9c",
            labels={"app": "web"},
            spec={"template": {"spec": pod_spec()}},
            owners=[("Deployment", "web")],
        ),
    )
    for suffix in ("a1", "b2"):
        spec = pod_spec()
        spec["nodeName"] = "node-1"
        client.add(
            "Pod",
            make_object(
                f"web-7d4b9c-{suffix}",
                labels={"app": "web"},
                spec=spec,
                status={"phase": "Running"},
                owners=[("ReplicaSet", "web-7d4b9c")],
            ),
        )
    client.add("Pod", make_object("worker-0", labels={"app": "worker"}, spec={"containers": [{"name": "w"}]}))
    client.add("Service", make_object("web", spec={"selector": {"app": "web"}}))
    client.add(
        "Ingress",
        make_object(
            "web",
            spec={
                "rules": [
                    {
                        "host": "web.example.com",
                        "http": {"paths": [{"path": "/", "backend": {"service": {"name": "web"}}}]},
                    }
                ],
                "tls": [{"secretName": "web-tls"}],
            },
        ),
    )
    client.add("ConfigMap", make_object("web-config"))
    client.add("Secret", make_object("web-tls"))
    client.add("ServiceAccount", make_object("web"))
    client.add(
        "PersistentVolumeClaim",
        make_object("web-data", spec={"volumeName": "pv-web", "storageClassName": "standard"}),
    )
    client.add("PersistentVolume", make_object("pv-web", namespace=None, spec={"storageClassName": "standard"}))
    client.add("PersistentVolume", make_object("pv-unused", namespace=None))
    client.add("StorageClass", make_object("standard", namespace=None))
    client.add("Node", make_object("node-1", namespace=None))

    # A second namespace that must not leak into "default" graphs.
    client.add("ConfigMap", make_object("other-config", namespace="other"))
    client.add("Pod", make_object("other-pod", namespace="other", labels={"app": "web"}))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_client() -> FakeClusterClient:
    client = FakeClusterClient()
    _seed_namespace(client)
    client.crds = [
        make_crd(
            "Database",
            "db.example.com",
            {
                "credentialsSecretRef": {"type": "object", "properties": {"name": {"type": "string"}}},
                "storageClassName": {"type": "string"},
            },
        ),
        make_crd(
            "Backup",
            "backup.example.com",
            {
                "databaseRef": {"type": "object", "description": "The Database to back up."},
                "schedule": {"type": "string"},
            },
        ),
    ]
    client.custom_objects[("db.example.com", "v1", "databases")].append(
        make_object("orders", spec={"credentialsSecretRef": {"name": "web-tls"}}, owners=[("Deployment", "web")])
    )
    return client


@pytest.fixture()
def config() -> KubeDepsConfig:
    return KubeDepsConfig(cluster_id="test-cluster")


@pytest.fixture()
def builder(fake_client: FakeClusterClient, config: KubeDepsConfig) -> DependencyGraphBuilder:
    return DependencyGraphBuilder(fake_client, config)


@pytest.fixture()
def expired_builder(fake_client: FakeClusterClient) -> DependencyGraphBuilder:
    """Builder whose deadline has already passed when the first resource is processed."""
    ticks = iter(range(0, 10_000))

    def clock() -> float:
        return float(next(ticks))

    config = KubeDepsConfig(governor=GovernorConfig(deadline_seconds=0.5))
    return DependencyGraphBuilder(fake_client, config, clock=clock)


@pytest.fixture()
def crd_service(fake_client: FakeClusterClient, config: KubeDepsConfig) -> CRDAnalysisService:
    return CRDAnalysisService(fake_client, config)
