"""FastAPI application factory for kubedeps.

Usage::

    from kubedeps.api.app import create_app

    app = create_app(client=cluster_client, config=config)

The factory is designed for use by both the production bootstrap
(``kubedeps.app``) and unit tests.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kubedeps.api.routes import metrics_router, router
from kubedeps.api.schemas import ErrorResponse
from kubedeps.cluster.client import ClusterClient
from kubedeps.export.base import ExportError
from kubedeps.export.crd_export import CRDExporter
from kubedeps.export.graph_export import GraphExporter
from kubedeps.graph.builder import DependencyGraphBuilder
from kubedeps.models.config import KubeDepsConfig
from kubedeps.models.resources import ResourceNotFoundError, UnsupportedKindError
from kubedeps.schema.service import CRDAnalysisService

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    client: ClusterClient,
    config: KubeDepsConfig | None = None,
    builder: DependencyGraphBuilder | None = None,
    crd_service: CRDAnalysisService | None = None,
) -> FastAPI:
    """Create and configure the kubedeps FastAPI application.

    Args:
        client:      Cluster API access shared by every request.
        config:      KubeDepsConfig. Defaults apply when omitted.
        builder:     Optional pre-built graph builder (tests).
        crd_service: Optional pre-built CRD analysis service (tests).

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubedeps import __version__

    config = config or KubeDepsConfig()

    app = FastAPI(
        title="kubedeps",
        summary="Kubernetes resource dependency graph API",
        version=__version__,
        description=(
            "kubedeps discovers relationships among live cluster objects and "
            "among custom resource schemas, and exports them as JSON, CSV or "
            "Markdown reports."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    # Store dependencies in app.state so route handlers can access them
    # without module-level globals.
    app.state.config = config
    app.state.cluster_id = config.cluster_id or ""
    app.state.builder = builder or DependencyGraphBuilder(client, config)
    app.state.crd_service = crd_service or CRDAnalysisService(client, config)
    app.state.graph_exporter = GraphExporter(config.export.report_max_nodes, config.export.report_max_edges)
    app.state.crd_exporter = CRDExporter(config.export.report_max_nodes, config.export.report_max_edges)

    app.include_router(router, prefix=_API_PREFIX)
    app.include_router(metrics_router)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map request validation errors to the error envelope."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            # locs is a tuple like ("query", "maxNodes")
            field = str(locs[-1]) if locs else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_PARAMETER", detail=detail).model_dump(),
        )

    @app.exception_handler(UnsupportedKindError)
    async def unsupported_kind_handler(_request: Request, exc: UnsupportedKindError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="UNSUPPORTED_KIND", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(ResourceNotFoundError)
    async def not_found_handler(_request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="RESOURCE_NOT_FOUND", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
        if exc.status_code >= 500:
            _log.error("export_failed", path=str(request.url.path), error=str(exc))
        error = "UNSUPPORTED_FORMAT" if exc.status_code < 500 else "EXPORT_FAILED"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=error, detail=str(exc)).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=error, detail=str(exc.detail)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
