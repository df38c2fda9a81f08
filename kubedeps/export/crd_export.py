"""CRD analysis export: statistics, per-group summaries, dependency details.

Optional sections are the raw schema graph (``includeRawGraph``) and a dump
of every CRD version with its OpenAPI schema and sampled instance count
(``includeSchemaDetails``).
"""

from __future__ import annotations

import csv
import io
from collections import Counter, defaultdict
from datetime import UTC, datetime
from typing import Any

from kubedeps.export.base import ExportError, ExportFormat, ExportResult, dump_json, export_filename
from kubedeps.export.mermaid import render_mermaid
from kubedeps.graph.models import DependencyGraph, GraphNode, Strength
from kubedeps.observability.logging import get_logger
from kubedeps.observability.metrics import exports_total
from kubedeps.schema.analyzer import crd_node_id
from kubedeps.schema.crd import CustomResourceDefinition
from kubedeps.schema.service import CRDAnalysis

_logger = get_logger("export.crd")

CRD_NODE = "crd-definition"
CORE_NODE = "core-resource-type"


def _crd_ids(graph: DependencyGraph) -> set[str]:
    return {n.id for n in graph.nodes if n.labels.get("nodeType") == CRD_NODE}


def crds_on_cycles(graph: DependencyGraph) -> set[str]:
    """Ids of CRD nodes that can reach themselves through CRD-to-CRD edges."""
    crd_ids = _crd_ids(graph)
    adjacency: dict[str, set[str]] = defaultdict(set)
    for edge in graph.edges:
        if edge.source in crd_ids and edge.target in crd_ids:
            adjacency[edge.source].add(edge.target)

    on_cycle: set[str] = set()
    for start in crd_ids:
        stack = list(adjacency.get(start, ()))
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == start:
                on_cycle.add(start)
                break
            if current in seen:
                continue
            seen.add(current)
            stack.extend(adjacency.get(current, ()))
    return on_cycle


def crd_statistics(graph: DependencyGraph) -> dict[str, Any]:
    crd_ids = _crd_ids(graph)
    outgoing = Counter(e.source for e in graph.edges if e.source in crd_ids)
    connected = {e.source for e in graph.edges} | {e.target for e in graph.edges}
    strengths = Counter(e.strength for e in graph.edges)
    per_crd = [outgoing.get(node_id, 0) for node_id in crd_ids]
    return {
        "totalNodes": graph.node_count,
        "totalEdges": graph.edge_count,
        "crdNodes": len(crd_ids),
        "coreResourceNodes": sum(1 for n in graph.nodes if n.labels.get("nodeType") == CORE_NODE),
        "strongDependencies": strengths[Strength.STRONG],
        "weakDependencies": strengths[Strength.WEAK],
        "apiGroupCount": len({n.labels.get("group", "") for n in graph.nodes if n.id in crd_ids}),
        "nodesByType": dict(sorted(Counter(n.labels.get("nodeType", "unknown") for n in graph.nodes).items())),
        "edgesByType": dict(sorted(Counter(e.type.value for e in graph.edges).items())),
        "complexityMetrics": {
            "averageDependenciesPerCRD": round(sum(per_crd) / len(per_crd), 2) if per_crd else 0.0,
            "maxDependenciesPerCRD": max(per_crd, default=0),
            "circularDependencies": len(crds_on_cycles(graph)),
            "isolatedCRDs": len(crd_ids - connected),
        },
    }


def api_group_summaries(graph: DependencyGraph, crds: list[CustomResourceDefinition]) -> list[dict[str, Any]]:
    """Per-group CRD inventory with incoming, outgoing and internal dependency counts."""
    group_of = {n.id: n.labels.get("group", "") for n in graph.nodes}
    summaries: dict[str, dict[str, Any]] = {}
    for crd in crds:
        entry = summaries.setdefault(
            crd.group,
            {
                "name": crd.group,
                "crdCount": 0,
                "versions": set(),
                "crds": [],
                "dependencies": {"incoming": 0, "outgoing": 0, "internal": 0},
            },
        )
        served = [v.name for v in crd.served_versions]
        entry["crdCount"] += 1
        entry["versions"].update(served)
        entry["crds"].append({**crd.summary(), "versions": served})

    for edge in graph.edges:
        source_group = group_of.get(edge.source, "")
        target_group = group_of.get(edge.target, "")
        if source_group == target_group:
            if source_group in summaries:
                summaries[source_group]["dependencies"]["internal"] += 1
            continue
        if source_group in summaries:
            summaries[source_group]["dependencies"]["outgoing"] += 1
        if target_group in summaries:
            summaries[target_group]["dependencies"]["incoming"] += 1

    return [{**entry, "versions": sorted(entry["versions"])} for _, entry in sorted(summaries.items())]


def _endpoint(node: GraphNode | None, node_id: str) -> dict[str, Any]:
    if node is None:
        return {"name": node_id, "kind": ""}
    return {
        "name": node.name,
        "kind": node.kind,
        "group": node.labels.get("group", ""),
        "version": node.labels.get("versions", "").split(",")[0],
    }


def dependency_details(graph: DependencyGraph, include_metadata: bool = True) -> list[dict[str, Any]]:
    nodes = {n.id: n for n in graph.nodes}
    details = []
    for edge in graph.edges:
        entry: dict[str, Any] = {
            "id": edge.id,
            "source": _endpoint(nodes.get(edge.source), edge.source),
            "target": _endpoint(nodes.get(edge.target), edge.target),
            "type": edge.type.value,
            "strength": edge.strength.value,
            "reason": edge.reason,
            "field": edge.metadata.get("field", ""),
        }
        if include_metadata:
            entry["metadata"] = dict(edge.metadata)
        details.append(entry)
    return details


def schema_details(
    crds: list[CustomResourceDefinition],
    instance_counts: dict[str, int] | None = None,
) -> list[dict[str, Any]]:
    counts = instance_counts or {}
    return [
        {
            "name": crd.name,
            "kind": crd.kind,
            "group": crd.group,
            "scope": crd.scope,
            "shortNames": list(crd.short_names),
            "categories": list(crd.categories),
            "instanceCount": counts.get(crd.name, 0),
            "versions": [
                {
                    "name": v.name,
                    "served": v.served,
                    "storage": v.storage,
                    "schema": {"openAPIV3Schema": v.schema},
                }
                for v in crd.versions
            ],
        }
        for crd in crds
    ]


class CRDExporter:
    """CRD analysis renderer; the markdown diagram uses the report limits."""

    def __init__(self, max_nodes: int = 25, max_edges: int = 50) -> None:
        self.max_nodes = max_nodes
        self.max_edges = max_edges

    def export(
        self,
        analysis: CRDAnalysis,
        fmt: ExportFormat,
        include_raw_graph: bool = False,
        include_schema_details: bool = False,
        include_dependency_metadata: bool = True,
        instance_counts: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ExportResult:
        moment = now or datetime.now(UTC)
        try:
            payload = self.build_payload(
                analysis,
                fmt,
                include_raw_graph=include_raw_graph,
                include_schema_details=include_schema_details,
                include_dependency_metadata=include_dependency_metadata,
                instance_counts=instance_counts,
                now=moment,
            )
            if fmt is ExportFormat.JSON:
                content = dump_json(payload)
            elif fmt is ExportFormat.CSV:
                content = self.to_csv(payload, analysis, instance_counts)
            else:
                content = self.to_markdown(payload, analysis.graph)
        except ExportError:
            raise
        except Exception as exc:
            _logger.error("export_failed", format=fmt.value, error=str(exc))
            raise ExportError(f"Failed to render {fmt.value} CRD export: {exc}", status_code=500) from exc
        exports_total.labels(format=fmt.value).inc()
        return ExportResult(content=content, format=fmt, filename=export_filename("crd-analysis", fmt, moment))

    def build_payload(
        self,
        analysis: CRDAnalysis,
        fmt: ExportFormat,
        include_raw_graph: bool = False,
        include_schema_details: bool = False,
        include_dependency_metadata: bool = True,
        instance_counts: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        graph = analysis.graph
        moment = now or datetime.now(UTC)
        payload: dict[str, Any] = {
            "metadata": {
                "exportTimestamp": moment.isoformat(),
                "exportFormat": fmt.value,
                "analysisTimestamp": graph.metadata.get("timestamp", ""),
                "nodeCount": graph.node_count,
                "edgeCount": graph.edge_count,
            },
            "analysisOptions": dict(graph.metadata.get("analysisOptions", {})),
            "statistics": crd_statistics(graph),
            "apiGroups": api_group_summaries(graph, analysis.crds),
            "dependencies": dependency_details(graph, include_dependency_metadata),
        }
        if include_schema_details:
            counts = (instance_counts or {}).get("counts", {})
            payload["crdSchemas"] = schema_details(analysis.crds, counts)
            payload["metadata"]["sampledNamespaces"] = (instance_counts or {}).get("sampledNamespaces", [])
        if include_raw_graph:
            payload["rawGraph"] = {
                "nodes": [n.to_dict() for n in graph.nodes],
                "edges": [e.to_dict() for e in graph.edges],
            }
        return payload

    def to_csv(
        self,
        payload: dict[str, Any],
        analysis: CRDAnalysis,
        instance_counts: dict[str, Any] | None = None,
    ) -> str:
        graph = analysis.graph
        counts = (instance_counts or {}).get("counts", {})
        incoming = Counter(e.target for e in graph.edges)
        outgoing = Counter(e.source for e in graph.edges)
        nodes = {n.id: n for n in graph.nodes}

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["# CRD Summary"])
        writer.writerow(
            [
                "name",
                "kind",
                "group",
                "versions",
                "scope",
                "instanceCount",
                "incomingDependencies",
                "outgoingDependencies",
            ]
        )
        for crd in analysis.crds:
            node_id = crd_node_id(crd)
            writer.writerow(
                [
                    crd.name,
                    crd.kind,
                    crd.group,
                    ";".join(v.name for v in crd.served_versions),
                    crd.scope,
                    counts.get(crd.name, 0),
                    incoming.get(node_id, 0),
                    outgoing.get(node_id, 0),
                ]
            )

        writer.writerow([])
        writer.writerow(["# Dependencies"])
        writer.writerow(
            [
                "sourceKind",
                "sourceName",
                "sourceGroup",
                "targetKind",
                "targetName",
                "targetGroup",
                "dependencyType",
                "strength",
                "reason",
            ]
        )
        for edge in graph.edges:
            source = _endpoint(nodes.get(edge.source), edge.source)
            target = _endpoint(nodes.get(edge.target), edge.target)
            writer.writerow(
                [
                    source["kind"],
                    source["name"],
                    source.get("group", ""),
                    target["kind"],
                    target["name"],
                    target.get("group", ""),
                    edge.type.value,
                    edge.strength.value,
                    edge.reason,
                ]
            )

        writer.writerow([])
        writer.writerow(["# API Groups"])
        writer.writerow(["name", "crdCount", "versions", "incoming", "outgoing", "internal"])
        for group in payload["apiGroups"]:
            deps = group["dependencies"]
            writer.writerow(
                [
                    group["name"],
                    group["crdCount"],
                    ";".join(group["versions"]),
                    deps["incoming"],
                    deps["outgoing"],
                    deps["internal"],
                ]
            )
        return buffer.getvalue()

    def to_markdown(self, payload: dict[str, Any], graph: DependencyGraph) -> str:
        stats = payload["statistics"]
        complexity = stats["complexityMetrics"]
        lines = [
            "# CRD Dependency Analysis",
            "",
            f"- **Generated:** {payload['metadata']['exportTimestamp']}",
            f"- **CRDs analyzed:** {stats['crdNodes']}",
            f"- **Core resource types referenced:** {stats['coreResourceNodes']}",
            f"- **Dependencies:** {stats['totalEdges']} ({stats['strongDependencies']} strong, "
            f"{stats['weakDependencies']} weak)",
            f"- **API groups:** {stats['apiGroupCount']}",
            "",
            "## Complexity",
            "",
            f"- Average dependencies per CRD: {complexity['averageDependenciesPerCRD']}",
            f"- Maximum dependencies of one CRD: {complexity['maxDependenciesPerCRD']}",
            f"- CRDs on dependency cycles: {complexity['circularDependencies']}",
            f"- Isolated CRDs: {complexity['isolatedCRDs']}",
            "",
            "## API Groups",
            "",
            "| Group | CRDs | Versions | Incoming | Outgoing | Internal |",
            "| --- | ---: | --- | ---: | ---: | ---: |",
        ]
        for group in payload["apiGroups"]:
            deps = group["dependencies"]
            lines.append(
                f"| {group['name']} | {group['crdCount']} | {', '.join(group['versions'])} | "
                f"{deps['incoming']} | {deps['outgoing']} | {deps['internal']} |"
            )

        lines += [
            "",
            "## Dependencies",
            "",
            "| Source | Target | Type | Strength | Reason |",
            "| --- | --- | --- | --- | --- |",
        ]
        for dep in payload["dependencies"]:
            reason = dep["reason"].replace("|", "\\|")
            lines.append(
                f"| {dep['source']['kind']} | {dep['target']['kind']} | {dep['type']} | {dep['strength']} | {reason} |"
            )

        lines += [
            "",
            "## Dependency Diagram",
            "",
            "```mermaid",
            render_mermaid(graph, self.max_nodes, self.max_edges),
            "```",
            "",
        ]
        return "\n".join(lines)
