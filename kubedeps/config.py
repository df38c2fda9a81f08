"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubedeps.models.config import (
    APIConfig,
    ExportConfig,
    GovernorConfig,
    KubeDepsConfig,
    LogConfig,
    SchemaConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEDEPS_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeDepsConfig:
    """Load configuration from KUBEDEPS_* environment variables."""
    return KubeDepsConfig(
        cluster_id=_env("CLUSTER_ID", ""),
        governor=GovernorConfig(
            max_resources_per_type=_env_int("MAX_RESOURCES_PER_TYPE", 500, min_val=1, max_val=10_000),
            max_namespaces=_env_int("MAX_NAMESPACES", 20, min_val=1, max_val=1_000),
            max_cluster_scoped_nodes=_env_int("MAX_CLUSTER_SCOPED_NODES", 100, min_val=0, max_val=10_000),
            max_reverse_edges=_env_int("MAX_REVERSE_EDGES", 50, min_val=0, max_val=10_000),
            max_nodes=_env_int("MAX_NODES", 1000, min_val=1, max_val=50_000),
            deadline_seconds=_env_float("DEADLINE_SECONDS", 10.0, min_val=0.0),
        ),
        schema=SchemaConfig(
            max_crds=_env_int("MAX_CRDS", 50, min_val=1, max_val=1_000),
            max_depth=_env_int("SCHEMA_MAX_DEPTH", 10, min_val=1, max_val=50),
        ),
        export=ExportConfig(
            report_max_nodes=_env_int("REPORT_MAX_NODES", 25, min_val=1, max_val=500),
            report_max_edges=_env_int("REPORT_MAX_EDGES", 50, min_val=1, max_val=2_000),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
