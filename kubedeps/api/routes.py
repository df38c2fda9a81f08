"""REST routes for kubedeps.

All routes are mounted under ``/api/v1`` by ``create_app``. The static
``/dependencies/graph*`` and ``/dependencies/crd/*`` paths are declared
before ``/dependencies/{kind}/{name}`` so they are never captured by it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubedeps.api.schemas import APIGroupsResponse, ErrorResponse, HealthResponse
from kubedeps.export.base import ExportFormat, ExportResult, parse_format
from kubedeps.graph.analysis import connected_subgraph
from kubedeps.graph.assembler import filter_graph
from kubedeps.graph.models import DependencyGraph
from kubedeps.schema.service import CRDAnalysis

_log = structlog.get_logger(component="api.routes")

router = APIRouter()
metrics_router = APIRouter()


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


def _download(result: ExportResult) -> Response:
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": result.content_disposition},
    )


async def _graph(
    request: Request,
    namespace: str | None,
    include_custom: bool,
    max_nodes: int | None,
    resource_types: str | None,
    dependency_types: str | None,
    focus: str | None = None,
    focus_depth: int = 2,
) -> DependencyGraph:
    graph = await request.app.state.builder.build_graph(
        namespace=namespace or None,
        include_custom=include_custom,
        max_nodes=max_nodes,
    )
    kinds, types = _split(resource_types), _split(dependency_types)
    if kinds or types:
        graph = filter_graph(graph, kinds, types)
    if focus:
        neighbourhood = connected_subgraph(graph, focus, max_depth=focus_depth)
        graph = DependencyGraph(
            nodes=neighbourhood.nodes,
            edges=neighbourhood.edges,
            metadata={**graph.metadata, "focus": neighbourhood.metadata},
        )
    return graph


async def _crd_analysis(
    request: Request,
    api_groups: str | None,
    max_crds: int | None,
    include_native: bool,
    depth: str | None,
) -> CRDAnalysis:
    analysis: CRDAnalysis = await request.app.state.crd_service.analyze(
        api_groups=_split(api_groups),
        max_crds=max_crds,
        include_native=include_native,
        depth=depth,
    )
    return analysis


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from kubedeps import __version__

    return HealthResponse(
        version=__version__,
        cluster_id=request.app.state.cluster_id,
        timestamp=datetime.now(UTC).isoformat(),
    )


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Resource graph
# ---------------------------------------------------------------------------


@router.get("/dependencies/graph")
async def dependency_graph(
    request: Request,
    namespace: str | None = Query(None),
    include_custom: bool = Query(False, alias="includeCustom"),
    max_nodes: int | None = Query(None, alias="maxNodes", ge=1),
    resource_types: str | None = Query(None, alias="resourceTypes"),
    dependency_types: str | None = Query(None, alias="dependencyTypes"),
    focus: str | None = Query(None),
    focus_depth: int = Query(2, alias="focusDepth", ge=1, le=10),
) -> dict[str, Any]:
    graph = await _graph(
        request, namespace, include_custom, max_nodes, resource_types, dependency_types, focus, focus_depth
    )
    return graph.to_dict()


@router.get("/dependencies/graph/export")
async def export_dependency_graph(
    request: Request,
    format: str | None = Query(None),  # noqa: A002
    namespace: str | None = Query(None),
    include_custom: bool = Query(False, alias="includeCustom"),
    max_nodes: int | None = Query(None, alias="maxNodes", ge=1),
    resource_types: str | None = Query(None, alias="resourceTypes"),
    dependency_types: str | None = Query(None, alias="dependencyTypes"),
    focus: str | None = Query(None),
    focus_depth: int = Query(2, alias="focusDepth", ge=1, le=10),
) -> Response:
    fmt = parse_format(format)
    graph = await _graph(
        request, namespace, include_custom, max_nodes, resource_types, dependency_types, focus, focus_depth
    )
    result = request.app.state.graph_exporter.export(graph, fmt)
    _log.info("graph_exported", format=fmt.value, nodes=graph.node_count, edges=graph.edge_count)
    return _download(result)


# ---------------------------------------------------------------------------
# CRD analysis
# ---------------------------------------------------------------------------


@router.get("/dependencies/crd/enhanced", response_model=None)
async def crd_dependency_graph(
    request: Request,
    api_groups: str | None = Query(None, alias="apiGroups"),
    max_crds: int | None = Query(None, alias="maxCRDs", ge=1),
    include_native: bool = Query(True, alias="includeNative"),
    depth: str | None = Query(None),
) -> dict[str, Any] | JSONResponse:
    try:
        analysis = await _crd_analysis(request, api_groups, max_crds, include_native, depth)
    except ValueError as exc:
        return _error(400, "INVALID_PARAMETER", str(exc))
    return analysis.graph.to_dict()


@router.get("/dependencies/crd/export")
async def export_crd_analysis(
    request: Request,
    format: str | None = Query(None),  # noqa: A002
    api_groups: str | None = Query(None, alias="apiGroups"),
    max_crds: int | None = Query(None, alias="maxCRDs", ge=1),
    include_native: bool = Query(True, alias="includeNative"),
    depth: str | None = Query(None),
    include_raw_graph: bool = Query(False, alias="includeRawGraph"),
    include_schema_details: bool = Query(False, alias="includeSchemaDetails"),
    include_dependency_metadata: bool = Query(True, alias="includeDependencyMetadata"),
) -> Response:
    fmt = parse_format(format)
    try:
        analysis = await _crd_analysis(request, api_groups, max_crds, include_native, depth)
    except ValueError as exc:
        return _error(400, "INVALID_PARAMETER", str(exc))

    instance_counts = None
    if include_schema_details or fmt is ExportFormat.CSV:
        instance_counts = await request.app.state.crd_service.instance_counts(analysis.crds)
    result = request.app.state.crd_exporter.export(
        analysis,
        fmt,
        include_raw_graph=include_raw_graph,
        include_schema_details=include_schema_details,
        include_dependency_metadata=include_dependency_metadata,
        instance_counts=instance_counts,
    )
    _log.info("crd_analysis_exported", format=fmt.value, crds=len(analysis.crds))
    return _download(result)


@router.get("/dependencies/crd/apigroups", response_model=APIGroupsResponse)
async def crd_api_groups(request: Request) -> APIGroupsResponse:
    groups = await request.app.state.crd_service.api_groups()
    return APIGroupsResponse(
        apiGroups=groups,
        totalGroups=len(groups),
        totalCRDs=sum(g["crdCount"] for g in groups),
    )


# ---------------------------------------------------------------------------
# Single resource
# ---------------------------------------------------------------------------


@router.get("/dependencies/{kind}/{name}")
async def resource_dependencies(
    request: Request,
    kind: str,
    name: str,
    namespace: str | None = Query(None),
) -> dict[str, Any]:
    report = await request.app.state.builder.describe_resource(kind, name, namespace or None)
    return report.to_dict()
