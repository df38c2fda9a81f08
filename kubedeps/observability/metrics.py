"""Prometheus metrics for graph computation, CRD analysis and export."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

graph_computations_total = Counter(
    "kubedeps_graph_computations_total",
    "Resource dependency graph computations by outcome.",
    ["outcome"],
)

graph_computation_seconds = Histogram(
    "kubedeps_graph_computation_seconds",
    "Wall-clock duration of one resource dependency graph computation.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

graph_truncations_total = Counter(
    "kubedeps_graph_truncations_total",
    "Graph computations cut short by the performance governor, by reason.",
    ["reason"],
)

fetch_failures_total = Counter(
    "kubedeps_fetch_failures_total",
    "Cluster list calls that failed and were treated as empty, by kind.",
    ["kind"],
)

crd_analyses_total = Counter(
    "kubedeps_crd_analyses_total",
    "CRD schema relationship analyses.",
)

exports_total = Counter(
    "kubedeps_exports_total",
    "Rendered exports by format.",
    ["format"],
)
