"""Integration tests: CRD listing -> schema analysis -> export."""

from __future__ import annotations

import csv
import io
import json
from datetime import UTC, datetime

import pytest

from kubedeps.export.base import ExportFormat
from kubedeps.export.crd_export import CRDExporter
from kubedeps.graph.models import RelationshipType, Strength
from kubedeps.models.config import KubeDepsConfig, SchemaConfig
from kubedeps.schema.service import CRDAnalysisService

pytestmark = pytest.mark.integration

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

_DATABASE = "Database/databases.db.example.com"
_BACKUP = "Backup/backups.backup.example.com"


class TestCRDAnalysis:
    async def test_schema_graph(self, crd_service: CRDAnalysisService) -> None:
        analysis = await crd_service.analyze()
        graph = analysis.graph
        edges = {(e.source, e.target): e for e in graph.edges}

        assert {n.id for n in graph.nodes} == {
            _DATABASE,
            _BACKUP,
            "Secret/secrets",
            "StorageClass/storageclasses.storage.k8s.io",
        }
        assert edges[(_DATABASE, "Secret/secrets")].type is RelationshipType.SECRET
        assert edges[(_DATABASE, "StorageClass/storageclasses.storage.k8s.io")].strength is Strength.STRONG
        backup = edges[(_BACKUP, _DATABASE)]
        assert backup.type is RelationshipType.CUSTOM
        assert backup.strength is Strength.STRONG
        assert len(graph.edges) == 3

    async def test_metadata(self, crd_service: CRDAnalysisService) -> None:
        graph = (await crd_service.analyze(depth="shallow")).graph

        assert graph.metadata["namespace"] == "cluster"
        assert graph.metadata["crdCount"] == 2
        assert graph.metadata["dependencyCount"] == 3
        assert graph.metadata["apiGroups"] == ["backup.example.com", "db.example.com"]
        assert graph.metadata["analysisOptions"]["depth"] == 3
        assert graph.metadata["truncated"] is False

    async def test_api_group_filter(self, crd_service: CRDAnalysisService) -> None:
        analysis = await crd_service.analyze(api_groups=["db.example.com"])

        assert [c.kind for c in analysis.crds] == ["Database"]
        assert _BACKUP not in {n.id for n in analysis.graph.nodes}

    async def test_include_native_false(self, crd_service: CRDAnalysisService) -> None:
        graph = (await crd_service.analyze(include_native=False)).graph

        assert {n.id for n in graph.nodes} == {_DATABASE, _BACKUP}
        assert [(e.source, e.target) for e in graph.edges] == [(_BACKUP, _DATABASE)]

    async def test_max_crds_cap(self, fake_client) -> None:
        config = KubeDepsConfig(schema=SchemaConfig(max_crds=1))
        graph = (await CRDAnalysisService(fake_client, config).analyze()).graph

        assert graph.metadata["crdCount"] == 1
        assert graph.metadata["truncated"] is True
        assert graph.metadata["truncationReasons"] == ["max_crds"]

    async def test_invalid_depth(self, crd_service: CRDAnalysisService) -> None:
        with pytest.raises(ValueError):
            await crd_service.analyze(depth="bottomless")

    async def test_api_groups_inventory(self, crd_service: CRDAnalysisService) -> None:
        groups = await crd_service.api_groups()

        assert [g["group"] for g in groups] == ["backup.example.com", "db.example.com"]
        assert groups[1]["crds"][0]["kind"] == "Database"
        assert groups[1]["versions"] == ["v1"]

    async def test_instance_counts_sample_namespaces(self, fake_client, crd_service) -> None:
        fake_client.add("Namespace", {"metadata": {"name": "default"}})
        fake_client.add("Namespace", {"metadata": {"name": "other"}})
        analysis = await crd_service.analyze()

        counts = await crd_service.instance_counts(analysis.crds)

        assert counts["sampledNamespaces"] == ["default", "other"]
        assert counts["counts"] == {"databases.db.example.com": 1, "backups.backup.example.com": 0}


class TestCRDExport:
    async def test_json_export(self, crd_service: CRDAnalysisService) -> None:
        analysis = await crd_service.analyze()
        result = CRDExporter().export(analysis, ExportFormat.JSON, include_raw_graph=True, now=_NOW)
        payload = json.loads(result.content)

        assert result.filename == "crd-analysis-20260301T120000Z.json"
        stats = payload["statistics"]
        assert stats["crdNodes"] == 2
        assert stats["coreResourceNodes"] == 2
        assert stats["strongDependencies"] == 3
        assert stats["complexityMetrics"]["circularDependencies"] == 0
        groups = {g["name"]: g["dependencies"] for g in payload["apiGroups"]}
        assert groups["db.example.com"] == {"incoming": 1, "outgoing": 2, "internal": 0}
        assert groups["backup.example.com"] == {"incoming": 0, "outgoing": 1, "internal": 0}
        assert len(payload["rawGraph"]["edges"]) == 3

    async def test_csv_export_with_instance_counts(self, fake_client, crd_service) -> None:
        fake_client.add("Namespace", {"metadata": {"name": "default"}})
        analysis = await crd_service.analyze()
        counts = await crd_service.instance_counts(analysis.crds)

        content = CRDExporter().export(analysis, ExportFormat.CSV, instance_counts=counts, now=_NOW).content
        rows = list(csv.reader(io.StringIO(content)))
        summary = {row[0]: row for row in rows[2:4]}

        assert rows[0] == ["# CRD Summary"]
        assert summary["databases.db.example.com"][5] == "1"
        assert summary["databases.db.example.com"][6:] == ["1", "2"]
        assert ["# Dependencies"] in rows
        assert ["# API Groups"] in rows

    async def test_schema_details_section(self, crd_service) -> None:
        analysis = await crd_service.analyze()
        payload = CRDExporter().build_payload(
            analysis,
            ExportFormat.JSON,
            include_schema_details=True,
            instance_counts={"counts": {"databases.db.example.com": 4}, "sampledNamespaces": ["default"]},
            now=_NOW,
        )

        assert payload["metadata"]["sampledNamespaces"] == ["default"]
        assert {s["name"] for s in payload["crdSchemas"]} == {
            "databases.db.example.com",
            "backups.backup.example.com",
        }

    async def test_markdown_export(self, crd_service: CRDAnalysisService) -> None:
        analysis = await crd_service.analyze()
        content = CRDExporter().export(analysis, ExportFormat.MARKDOWN, now=_NOW).content

        assert content.startswith("# CRD Dependency Analysis")
        assert "| db.example.com | 1 | v1 | 1 | 2 | 0 |" in content
        assert "```mermaid" in content
