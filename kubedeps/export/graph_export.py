"""Renders a canonical ``DependencyGraph`` to JSON, two-section CSV or a Markdown report.

Counts reported in export metadata always describe the graph handed to the
exporter (after filters), never the size-limited diagram.
"""

from __future__ import annotations

import csv
import io
from datetime import UTC, datetime
from typing import Any

from kubedeps.export.base import ExportError, ExportFormat, ExportResult, dump_json, export_filename
from kubedeps.export.mermaid import render_mermaid, select_for_diagram
from kubedeps.graph.analysis import graph_statistics
from kubedeps.graph.models import DependencyGraph, RelationshipType
from kubedeps.graph.theme import RELATIONSHIP_DESCRIPTIONS, RELATIONSHIP_GLYPHS, kind_glyph
from kubedeps.observability.logging import get_logger
from kubedeps.observability.metrics import exports_total

_logger = get_logger("export.graph")

NODE_COLUMNS = ("id", "kind", "name", "namespace", "labelCount", "creationTimestamp")
EDGE_COLUMNS = ("source", "target", "type", "strength", "reason")


def export_metadata(graph: DependencyGraph, fmt: ExportFormat, now: datetime) -> dict[str, Any]:
    metadata = dict(graph.metadata)
    metadata.update(
        {
            "nodeCount": graph.node_count,
            "edgeCount": graph.edge_count,
            "exportTimestamp": now.isoformat(),
            "exportFormat": fmt.value,
        }
    )
    return metadata


class GraphExporter:
    """Graph renderer; the report diagram is bounded by *max_nodes* / *max_edges*."""

    def __init__(self, max_nodes: int = 25, max_edges: int = 50) -> None:
        self.max_nodes = max_nodes
        self.max_edges = max_edges

    def export(self, graph: DependencyGraph, fmt: ExportFormat, now: datetime | None = None) -> ExportResult:
        moment = now or datetime.now(UTC)
        renderers = {
            ExportFormat.JSON: self.to_json,
            ExportFormat.CSV: self.to_csv,
            ExportFormat.MARKDOWN: self.to_markdown,
        }
        try:
            content = renderers[fmt](graph, moment)
        except ExportError:
            raise
        except Exception as exc:
            _logger.error("export_failed", format=fmt.value, error=str(exc))
            raise ExportError(f"Failed to render {fmt.value} export: {exc}", status_code=500) from exc
        exports_total.labels(format=fmt.value).inc()
        return ExportResult(content=content, format=fmt, filename=export_filename("dependency-graph", fmt, moment))

    def to_json(self, graph: DependencyGraph, now: datetime) -> str:
        return dump_json(
            {
                "metadata": export_metadata(graph, ExportFormat.JSON, now),
                "statistics": graph_statistics(graph),
                "nodes": [n.to_dict() for n in graph.nodes],
                "edges": [e.to_dict() for e in graph.edges],
            }
        )

    def to_csv(self, graph: DependencyGraph, now: datetime) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["# Nodes"])
        writer.writerow(NODE_COLUMNS)
        for node in graph.nodes:
            writer.writerow(
                [node.id, node.kind, node.name, node.namespace or "", len(node.labels), node.creation_timestamp or ""]
            )
        writer.writerow([])
        writer.writerow(["# Edges"])
        writer.writerow(EDGE_COLUMNS)
        for edge in graph.edges:
            writer.writerow([edge.source, edge.target, edge.type.value, edge.strength.value, edge.reason])
        return buffer.getvalue()

    def to_markdown(self, graph: DependencyGraph, now: datetime) -> str:
        stats = graph_statistics(graph)
        metadata = graph.metadata
        shown_nodes, shown_edges = select_for_diagram(graph, self.max_nodes, self.max_edges)

        lines = [
            "# Resource Dependency Report",
            "",
            f"- **Generated:** {now.isoformat()}",
            f"- **Namespace:** {metadata.get('namespace', 'all')}",
            f"- **Resources:** {graph.node_count}",
            f"- **Dependencies:** {graph.edge_count}",
            "",
            "## Summary",
            "",
            (
                f"The graph contains {graph.node_count} resources of {len(stats['kinds'])} kinds "
                f"connected by {graph.edge_count} dependencies "
                f"({stats['strongDependencies']} strong, {stats['weakDependencies']} weak)."
            ),
        ]
        if metadata.get("truncated"):
            reasons = ", ".join(metadata.get("truncationReasons", [])) or "limits"
            lines += ["", f"> Partial result: computation was limited by {reasons}."]
        if metadata.get("filters"):
            filters = metadata["filters"]
            lines += [
                "",
                f"> Filters: resource types {filters.get('resourceTypes') or 'all'}, "
                f"dependency types {filters.get('dependencyTypes') or 'all'}.",
            ]

        lines += ["", "## Resources by Kind", "", "| Kind | Count |", "| --- | ---: |"]
        for kind, count in stats["nodesByKind"].items():
            lines.append(f"| {kind_glyph(kind)} {kind} | {count} |")

        lines += ["", "## Dependencies by Type", "", "| Type | Count | Description |", "| --- | ---: | --- |"]
        for type_name, count in stats["edgesByType"].items():
            rel = RelationshipType(type_name)
            lines.append(f"| {RELATIONSHIP_GLYPHS[rel]} {type_name} | {count} | {RELATIONSHIP_DESCRIPTIONS[rel]} |")

        lines += [
            "",
            "## Dependency Diagram",
            "",
            (
                f"Showing {len(shown_nodes)} of {graph.node_count} resources (most connected first) "
                f"and {len(shown_edges)} of {graph.edge_count} dependencies."
            ),
            "",
            "```mermaid",
            render_mermaid(graph, self.max_nodes, self.max_edges),
            "```",
            "",
        ]
        return "\n".join(lines)
