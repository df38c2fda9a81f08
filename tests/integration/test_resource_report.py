"""Integration tests for single-resource relationship reports."""

from __future__ import annotations

import pytest

from kubedeps.graph.builder import DependencyGraphBuilder
from kubedeps.graph.models import RelationshipType
from kubedeps.models.config import GovernorConfig, KubeDepsConfig
from kubedeps.models.resources import ResourceNotFoundError, UnsupportedKindError

pytestmark = pytest.mark.integration


class TestProviderReports:
    async def test_config_map_lists_its_consumers(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("configmap", "web-config", "default")
        incoming = report.dependencies.incoming

        assert report.resource.id == "ConfigMap/web-config@default"
        assert report.metadata["reverseIndex"] is True
        assert {e.target for e in incoming} == {
            "Deployment/web@default",
            "ReplicaSet/web-7d4b9c@default",
            "Pod/web-7d4b9c-a1@default",
            "Pod/web-7d4b9c-b2@default",
        }
        # Each consumer mounts the ConfigMap and imports it into its environment.
        assert len(incoming) == 8
        assert {e.type for e in incoming} == {RelationshipType.CONFIG_MAP, RelationshipType.ENVIRONMENT}
        assert all(e.context["direction"] == "incoming" for e in incoming)
        assert report.dependencies.outgoing == []

    async def test_secret_consumers_include_ingress_tls(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("Secret", "web-tls", "default")
        by_target = {e.target: e for e in report.dependencies.incoming}

        assert by_target["Ingress/web@default"].type is RelationshipType.SECRET
        assert "Pod/web-7d4b9c-a1@default" in by_target

    async def test_incoming_edges_are_capped(self, fake_client) -> None:
        config = KubeDepsConfig(governor=GovernorConfig(max_reverse_edges=2))
        report = await DependencyGraphBuilder(fake_client, config).describe_resource("cm", "web-config", "default")

        assert len(report.dependencies.incoming) == 2

    async def test_consumer_scan_is_namespace_scoped(self, fake_client, builder) -> None:
        await builder.describe_resource("configmap", "web-config", "default")

        assert fake_client.calls[("Pod", "default")] == 1
        assert fake_client.calls[("Pod", "")] == 0


class TestConsumerReports:
    async def test_pod_outgoing_edges(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("pod", "web-7d4b9c-a1", "default")
        targets = {e.target for e in report.dependencies.outgoing}

        assert report.metadata["reverseIndex"] is False
        assert report.dependencies.incoming == []
        assert {
            "ReplicaSet/web-7d4b9c@default",
            "ConfigMap/web-config@default",
            "Secret/web-tls@default",
            "ServiceAccount/web@default",
            "PersistentVolumeClaim/web-data@default",
            "Node/node-1",
        } <= targets

    async def test_service_related_pods_are_resolved(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("svc", "web", "default")
        related = report.dependencies.related

        assert report.dependencies.outgoing == []
        assert sorted(e.target for e in related) == ["Pod/web-7d4b9c-a1@default", "Pod/web-7d4b9c-b2@default"]
        assert all(e.type is RelationshipType.SERVICE for e in related)

    async def test_cluster_scoped_lookup_ignores_namespace(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("pv", "pv-web", "ignored")

        assert report.resource.id == "PersistentVolume/pv-web"
        assert [e.target for e in report.dependencies.outgoing] == ["StorageClass/standard"]


class TestReportErrors:
    async def test_unknown_kind(self, builder: DependencyGraphBuilder) -> None:
        with pytest.raises(UnsupportedKindError):
            await builder.describe_resource("Widget", "x", "default")

    async def test_missing_object(self, builder: DependencyGraphBuilder) -> None:
        with pytest.raises(ResourceNotFoundError, match="ghost"):
            await builder.describe_resource("pod", "ghost", "default")

    async def test_object_in_other_namespace_is_not_found(self, builder: DependencyGraphBuilder) -> None:
        with pytest.raises(ResourceNotFoundError):
            await builder.describe_resource("configmap", "other-config", "default")

    async def test_report_serializes(self, builder: DependencyGraphBuilder) -> None:
        report = await builder.describe_resource("configmap", "web-config", "default")
        data = report.to_dict()

        assert data["resource"]["kind"] == "ConfigMap"
        assert len(data["dependencies"]["incoming"]) == 8
        assert data["metadata"]["consumersScanned"] >= 4
