"""Size-limited Mermaid diagram of a dependency graph."""

from __future__ import annotations

from kubedeps.graph.analysis import node_degrees
from kubedeps.graph.models import DependencyGraph, GraphEdge, GraphNode, Strength
from kubedeps.graph.theme import RELATIONSHIP_COLORS, RELATIONSHIP_GLYPHS, kind_glyph

EMPTY_DIAGRAM = 'graph LR\n    empty["No dependency data available"]'


def select_for_diagram(
    graph: DependencyGraph,
    max_nodes: int = 25,
    max_edges: int = 50,
) -> tuple[list[GraphNode], list[GraphEdge]]:
    """Pick the most-connected nodes and the edges among them.

    Nodes are ranked by degree (ties broken by id); at most *max_edges*
    edges whose endpoints are both selected are kept, in graph order.
    """
    degrees = node_degrees(graph)
    ranked = sorted(graph.nodes, key=lambda n: (-degrees.get(n.id, 0), n.id))
    nodes = ranked[: max(max_nodes, 0)]
    selected = {n.id for n in nodes}
    edges = [e for e in graph.edges if e.source in selected and e.target in selected][: max(max_edges, 0)]
    return nodes, edges


def _label(text: str) -> str:
    return text.replace('"', "#quot;")


def render_mermaid(graph: DependencyGraph, max_nodes: int = 25, max_edges: int = 50) -> str:
    """Render *graph* as a ``graph LR`` block, or the no-data placeholder."""
    nodes, edges = select_for_diagram(graph, max_nodes, max_edges)
    if not nodes or not edges:
        return EMPTY_DIAGRAM

    aliases = {node.id: f"n{i}" for i, node in enumerate(nodes)}
    lines = ["graph LR"]
    for node in nodes:
        lines.append(f'    {aliases[node.id]}["{_label(f"{kind_glyph(node.kind)} {node.kind}/{node.name}")}"]')
    for edge in edges:
        arrow = "-->" if edge.strength is Strength.STRONG else "-.->"
        label = _label(f"{RELATIONSHIP_GLYPHS[edge.type]} {edge.type.value}")
        lines.append(f'    {aliases[edge.source]} {arrow}|"{label}"| {aliases[edge.target]}')
    for index, edge in enumerate(edges):
        lines.append(f"    linkStyle {index} stroke:{RELATIONSHIP_COLORS[edge.type]},stroke-width:2px")
    return "\n".join(lines)
