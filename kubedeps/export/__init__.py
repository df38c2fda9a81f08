"""Graph and CRD analysis exporters.

Submodules:
    base          -- Formats, export results, filenames and errors.
    mermaid       -- Degree-prioritised, size-limited Mermaid diagram.
    graph_export  -- Resource graph to JSON / two-section CSV / Markdown report.
    crd_export    -- CRD analysis to JSON / three-section CSV / Markdown report.
"""

from kubedeps.export.base import ExportError, ExportFormat, ExportResult, parse_format
from kubedeps.export.crd_export import CRDExporter
from kubedeps.export.graph_export import GraphExporter

__all__ = [
    "CRDExporter",
    "ExportError",
    "ExportFormat",
    "ExportResult",
    "GraphExporter",
    "parse_format",
]
