"""Typed view over CustomResourceDefinition documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CRDVersion:
    name: str
    served: bool = True
    storage: bool = False
    schema: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class CustomResourceDefinition:
    """The parts of a CRD the analyzer and the graph builder use."""

    name: str
    group: str
    kind: str
    plural: str
    scope: str = "Namespaced"
    versions: tuple[CRDVersion, ...] = ()
    short_names: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()

    @property
    def served_versions(self) -> list[CRDVersion]:
        return [v for v in self.versions if v.served]

    @property
    def storage_version(self) -> CRDVersion | None:
        """The storage version, else the first served one."""
        for version in self.versions:
            if version.storage:
                return version
        served = self.served_versions
        return served[0] if served else None

    @property
    def namespaced(self) -> bool:
        return self.scope != "Cluster"

    def summary(self) -> dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "scope": self.scope}


def _version(raw: Any) -> CRDVersion | None:
    if not isinstance(raw, dict) or not raw.get("name"):
        return None
    schema = raw.get("schema")
    open_api = schema.get("openAPIV3Schema") if isinstance(schema, dict) else None
    return CRDVersion(
        name=str(raw["name"]),
        served=bool(raw.get("served", True)),
        storage=bool(raw.get("storage", False)),
        schema=open_api if isinstance(open_api, dict) else {},
    )


def parse_crd(raw: dict[str, Any]) -> CustomResourceDefinition:
    """Build a ``CustomResourceDefinition`` from a raw API object.

    Raises ``ValueError`` when the document lacks a name, group or kind.
    """
    metadata = raw.get("metadata") if isinstance(raw, dict) else None
    spec = raw.get("spec") if isinstance(raw, dict) else None
    if not isinstance(metadata, dict) or not isinstance(spec, dict):
        raise ValueError("CRD is missing metadata or spec")
    names = spec.get("names") if isinstance(spec.get("names"), dict) else {}
    name = metadata.get("name")
    group = spec.get("group")
    kind = names.get("kind")
    if not name or not group or not kind:
        raise ValueError("CRD is missing metadata.name, spec.group or spec.names.kind")

    versions = tuple(v for v in (_version(item) for item in spec.get("versions") or []) if v is not None)
    return CustomResourceDefinition(
        name=str(name),
        group=str(group),
        kind=str(kind),
        plural=str(names.get("plural") or str(name).split(".", 1)[0]),
        scope=str(spec.get("scope") or "Namespaced"),
        versions=versions,
        short_names=tuple(str(s) for s in names.get("shortNames") or []),
        categories=tuple(str(c) for c in names.get("categories") or []),
    )
