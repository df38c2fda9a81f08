"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GovernorConfig:
    """Performance governor limits for one graph computation."""

    max_resources_per_type: int = 500
    max_namespaces: int = 20
    max_cluster_scoped_nodes: int = 100
    max_reverse_edges: int = 50
    max_nodes: int = 1000
    deadline_seconds: float = 10.0


@dataclass
class SchemaConfig:
    """CRD schema relationship analysis configuration."""

    max_crds: int = 50
    max_depth: int = 10


@dataclass
class ExportConfig:
    """Report diagram size limits."""

    report_max_nodes: int = 25
    report_max_edges: int = 50


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeDepsConfig:
    """Top-level kubedeps configuration."""

    cluster_id: str = ""
    governor: GovernorConfig = field(default_factory=GovernorConfig)
    schema: SchemaConfig = field(default_factory=SchemaConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
