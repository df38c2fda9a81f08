"""Core data structures for kubedeps."""

from kubedeps.models.config import KubeDepsConfig
from kubedeps.models.resources import (
    KubeResource,
    OwnerReference,
    ResourceKind,
    ResourceNotFoundError,
    UnsupportedKindError,
    canonical_kind,
    parse_resource,
)

__all__ = [
    "KubeDepsConfig",
    "KubeResource",
    "OwnerReference",
    "ResourceKind",
    "ResourceNotFoundError",
    "UnsupportedKindError",
    "canonical_kind",
    "parse_resource",
]
