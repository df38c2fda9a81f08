"""Pydantic models for the kubedeps REST API envelopes.

Graph payloads are produced by the ``to_dict`` methods of the graph models
and returned as-is; only the fixed-shape envelopes are modelled here.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    cluster_id: str = ""
    timestamp: str


class CRDSummary(BaseModel):
    name: str
    kind: str
    scope: str


class APIGroupSummary(BaseModel):
    group: str
    crdCount: int  # noqa: N815
    crds: list[CRDSummary] = Field(default_factory=list)
    versions: list[str] = Field(default_factory=list)


class APIGroupsResponse(BaseModel):
    apiGroups: list[APIGroupSummary] = Field(default_factory=list)  # noqa: N815
    totalGroups: int = 0  # noqa: N815
    totalCRDs: int = 0  # noqa: N815
