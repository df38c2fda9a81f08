"""Schema relationship analyzer.

Walks the OpenAPI v3 schema of every served CRD version and infers which
other kinds a custom resource refers to:

* ``$ref`` pointers naming a known kind are explicit structural
  references (strong).
* A field whose own name is a kind name, optionally followed by one of
  ``REFERENCE_SUFFIXES`` (``configMapRef``, ``secretName``,
  ``podSelector``), is a strong reference.
* A field whose description merely mentions a kind is a weak reference.

CRD-to-CRD relationships use the same field matching against the kinds of
the other CRDs, then fall back to a weak substring search of the serialized
schema for the other CRD's kind, resource name or API group.

Every walk is bounded by ``max_depth``; nesting through ``properties``,
``items``, ``additionalProperties`` and ``allOf``/``anyOf``/``oneOf`` each
consumes one level, so arbitrarily deep or self-referential input always
terminates.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from kubedeps.graph.models import (
    DependencyGraph,
    GraphEdge,
    GraphNode,
    RelationshipType,
    Strength,
    edge_id,
)
from kubedeps.observability.logging import get_logger
from kubedeps.schema.catalog import CORE_KINDS, CoreKind, schema_node_id
from kubedeps.schema.crd import CustomResourceDefinition

_logger = get_logger("schema.analyzer")

REFERENCE_SUFFIXES: tuple[str, ...] = ("Ref", "Name", "Selector", "Template", "Spec")

# Absolute ceiling on schema recursion, whatever the caller asks for.
HARD_MAX_DEPTH = 50

SHALLOW_DEPTH = 3

_COMPOSITION_KEYS = ("allOf", "anyOf", "oneOf")
_MAX_FIELDS_PER_EDGE = 10


@dataclass(frozen=True)
class SchemaField:
    """One property visited by ``walk_schema``."""

    path: str
    name: str
    depth: int
    description: str = ""
    ref: str = ""


def walk_schema(schema: Any, max_depth: int, _path: str = "", _depth: int = 0) -> Iterator[SchemaField]:
    """Yield every property of *schema* down to *max_depth* levels.

    Top-level properties are at depth 1. ``$ref`` pointers are reported on
    the property that holds them and are never dereferenced.
    """
    limit = min(max_depth, HARD_MAX_DEPTH)
    if _depth >= limit or not isinstance(schema, dict):
        return

    properties = schema.get("properties")
    if isinstance(properties, dict):
        for name, sub in properties.items():
            path = f"{_path}.{name}" if _path else str(name)
            sub_schema = sub if isinstance(sub, dict) else {}
            yield SchemaField(
                path=path,
                name=str(name),
                depth=_depth + 1,
                description=str(sub_schema.get("description") or ""),
                ref=_ref_of(sub_schema),
            )
            yield from walk_schema(sub_schema, limit, path, _depth + 1)

    items = schema.get("items")
    if isinstance(items, dict):
        yield from walk_schema(items, limit, f"{_path}[]", _depth + 1)

    additional = schema.get("additionalProperties")
    if isinstance(additional, dict):
        yield from walk_schema(additional, limit, f"{_path}.*", _depth + 1)

    for key in _COMPOSITION_KEYS:
        branches = schema.get(key)
        if isinstance(branches, list):
            for branch in branches:
                yield from walk_schema(branch, limit, _path, _depth + 1)


def _ref_of(schema: dict[str, Any]) -> str:
    ref = schema.get("$ref")
    if isinstance(ref, str):
        return ref
    items = schema.get("items")
    if isinstance(items, dict) and isinstance(items.get("$ref"), str):
        return items["$ref"]
    return ""


def resolve_depth(depth: str | int | None, max_depth: int) -> int:
    """Turn a ``depth`` request parameter into a walk depth.

    ``shallow`` is 3 levels, ``deep`` (and None) the configured maximum, an
    integer is clamped to ``[1, max_depth]``. Raises ``ValueError`` otherwise.
    """
    if depth is None or depth == "":
        return max_depth
    if isinstance(depth, str):
        lowered = depth.strip().lower()
        if lowered == "shallow":
            return min(SHALLOW_DEPTH, max_depth)
        if lowered == "deep":
            return max_depth
        try:
            depth = int(lowered)
        except ValueError:
            raise ValueError(f"depth must be 'shallow', 'deep' or an integer, got {depth!r}") from None
    return max(1, min(int(depth), max_depth))


@dataclass(frozen=True)
class _Target:
    """A kind the analyzer can recognise references to."""

    kind: str
    node_id: str
    relationship: RelationshipType
    stems: tuple[str, ...]
    mention: re.Pattern[str]


@dataclass
class SchemaReference:
    """Aggregated references from one CRD to one target kind."""

    source: str
    target: str
    target_kind: str
    relationship: RelationshipType
    strength: Strength
    reason: str
    fields: list[str] = field(default_factory=list)
    versions: list[str] = field(default_factory=list)
    matched_by: str = ""

    def merge(self, other: SchemaReference) -> None:
        if other.strength is Strength.STRONG and self.strength is Strength.WEAK:
            self.strength = Strength.STRONG
            self.reason = other.reason
            self.matched_by = other.matched_by
            self.fields = [*other.fields, *(p for p in self.fields if p not in other.fields)]
        for path in other.fields:
            if path not in self.fields:
                self.fields.append(path)
        del self.fields[_MAX_FIELDS_PER_EDGE:]
        for version in other.versions:
            if version not in self.versions:
                self.versions.append(version)

    def to_edge(self) -> GraphEdge:
        metadata: dict[str, Any] = {
            "field": self.fields[0] if self.fields else "",
            "reason": self.reason,
            "fields": list(self.fields),
            "versions": list(self.versions),
            "matchedBy": self.matched_by,
            "targetKind": self.target_kind,
        }
        return GraphEdge(
            id=edge_id(self.source, self.target, self.relationship),
            source=self.source,
            target=self.target,
            type=self.relationship,
            strength=self.strength,
            metadata=metadata,
        )


def _core_target(core: CoreKind) -> _Target:
    return _Target(
        kind=core.kind,
        node_id=core.node_id,
        relationship=core.relationship,
        stems=core.match_names,
        mention=re.compile(rf"\b{re.escape(core.kind)}s?\b"),
    )


def _crd_target(crd: CustomResourceDefinition) -> _Target:
    return _Target(
        kind=crd.kind,
        node_id=crd_node_id(crd),
        relationship=RelationshipType.CUSTOM,
        stems=(crd.kind.lower(),),
        mention=re.compile(rf"\b{re.escape(crd.kind)}s?\b"),
    )


def crd_node_id(crd: CustomResourceDefinition) -> str:
    return schema_node_id(crd.kind, crd.plural, crd.group)


def crd_node(crd: CustomResourceDefinition) -> GraphNode:
    return GraphNode(
        id=crd_node_id(crd),
        kind=crd.kind,
        name=crd.name,
        labels={
            "group": crd.group,
            "versions": ",".join(v.name for v in crd.served_versions),
            "scope": crd.scope,
            "nodeType": "crd-definition",
            "plural": crd.plural,
        },
    )


def core_node(core: CoreKind) -> GraphNode:
    return GraphNode(
        id=core.node_id,
        kind=core.kind,
        name=f"{core.plural}.{core.group}" if core.group else core.plural,
        labels={
            "group": core.api_group,
            "versions": core.version,
            "scope": core.scope,
            "nodeType": "core-resource-type",
            "plural": core.plural,
        },
    )


def _stem_match(name: str, target: _Target) -> int:
    """Length of the longest stem of *target* that *name* refers to, 0 for none."""
    lowered = name.lower()
    best = 0
    for stem in target.stems:
        if lowered == stem or any(lowered.endswith(stem + s.lower()) for s in REFERENCE_SUFFIXES):
            best = max(best, len(stem))
    return best


def _ref_matches(ref: str, target: _Target) -> bool:
    # "#/definitions/io.k8s.api.core.v1.ConfigMap" -> "ConfigMap"
    tail = re.split(r"[./]", ref)[-1]
    return tail == target.kind


class SchemaRelationshipAnalyzer:
    """Infers schema-level relationships between CRDs and well-known kinds.

    Args:
        max_depth:  Walk depth for every schema (clamped to ``HARD_MAX_DEPTH``).
        core_kinds: Catalog of well-known kinds to match against.
    """

    def __init__(self, max_depth: int = 10, core_kinds: Sequence[CoreKind] = CORE_KINDS) -> None:
        self.max_depth = max(1, min(max_depth, HARD_MAX_DEPTH))
        self._core_kinds = tuple(core_kinds)
        self._core_targets = [_core_target(c) for c in self._core_kinds]

    def field_references(
        self,
        crd: CustomResourceDefinition,
        targets: Iterable[_Target] | None = None,
    ) -> list[SchemaReference]:
        """References from *crd* to *targets* (core kinds by default), one per target."""
        source = crd_node_id(crd)
        candidates = [t for t in (targets if targets is not None else self._core_targets) if t.node_id != source]
        found: dict[str, SchemaReference] = {}
        for version in crd.served_versions:
            for schema_field in walk_schema(version.schema, self.max_depth):
                stems = {t.node_id: _stem_match(schema_field.name, t) for t in candidates}
                longest = max(stems.values(), default=0)
                for target in candidates:
                    named = longest > 0 and stems[target.node_id] == longest
                    ref = self._match_field(source, schema_field, target, version.name, named)
                    if ref is None:
                        continue
                    if target.node_id in found:
                        found[target.node_id].merge(ref)
                    else:
                        found[target.node_id] = ref
        return list(found.values())

    def _match_field(
        self,
        source: str,
        schema_field: SchemaField,
        target: _Target,
        version: str,
        named: bool,
    ) -> SchemaReference | None:
        if schema_field.ref and _ref_matches(schema_field.ref, target):
            strength, matched_by = Strength.STRONG, "$ref"
            reason = f"{schema_field.path} references {target.kind} via $ref"
        elif named:
            strength, matched_by = Strength.STRONG, "field-name"
            reason = f"Field {schema_field.path} names a {target.kind}"
        elif schema_field.description and target.mention.search(schema_field.description):
            strength, matched_by = Strength.WEAK, "description"
            reason = f"Description of {schema_field.path} mentions {target.kind}"
        else:
            return None
        return SchemaReference(
            source=source,
            target=target.node_id,
            target_kind=target.kind,
            relationship=target.relationship,
            strength=strength,
            reason=reason,
            fields=[schema_field.path],
            versions=[version],
            matched_by=matched_by,
        )

    def crd_references(self, crds: Sequence[CustomResourceDefinition]) -> list[SchemaReference]:
        """CRD-to-CRD references among *crds*."""
        targets = [_crd_target(c) for c in crds]
        references: list[SchemaReference] = []
        for crd in crds:
            try:
                discovered = {r.target: r for r in self.field_references(crd, targets)}
                serialized = ""
                for other in crds:
                    other_id = crd_node_id(other)
                    if other_id == crd_node_id(crd):
                        continue
                    if other_id in discovered:
                        references.append(discovered[other_id])
                        continue
                    if not serialized:
                        serialized = json.dumps([v.schema for v in crd.served_versions], sort_keys=True)
                    mention = self._mention(serialized, crd, other)
                    if mention:
                        references.append(
                            SchemaReference(
                                source=crd_node_id(crd),
                                target=other_id,
                                target_kind=other.kind,
                                relationship=RelationshipType.CUSTOM,
                                strength=Strength.WEAK,
                                reason=f"Schema of {crd.kind} mentions {mention}",
                                versions=[v.name for v in crd.served_versions],
                                matched_by="schema-text",
                            )
                        )
            except Exception as exc:
                _logger.warning("crd_analysis_failed", crd=crd.name, error=str(exc))
        return references

    @staticmethod
    def _mention(serialized: str, crd: CustomResourceDefinition, other: CustomResourceDefinition) -> str:
        if re.search(rf"\b{re.escape(other.kind)}\b", serialized):
            return f"kind {other.kind}"
        if other.name in serialized:
            return f"resource {other.name}"
        if other.group != crd.group and other.group in serialized:
            return f"API group {other.group}"
        return ""

    def analyze(
        self,
        crds: Sequence[CustomResourceDefinition],
        include_native: bool = True,
    ) -> DependencyGraph:
        """Build the schema relationship graph of *crds*.

        Core kinds appear as nodes only when some CRD refers to them and
        *include_native* is set. Strong edges are listed before weak ones.
        """
        nodes: dict[str, GraphNode] = {}
        edges: dict[str, GraphEdge] = {}
        for crd in crds:
            nodes.setdefault(crd_node_id(crd), crd_node(crd))

        references: list[SchemaReference] = []
        if include_native:
            for crd in crds:
                try:
                    references.extend(self.field_references(crd))
                except Exception as exc:
                    _logger.warning("crd_analysis_failed", crd=crd.name, error=str(exc))
        references.extend(self.crd_references(crds))

        core_by_id = {c.node_id: c for c in self._core_kinds}
        for reference in sorted(references, key=lambda r: r.strength is not Strength.STRONG):
            if reference.target in core_by_id:
                nodes.setdefault(reference.target, core_node(core_by_id[reference.target]))
            edge = reference.to_edge()
            edges.setdefault(edge.id, edge)

        return DependencyGraph(nodes=list(nodes.values()), edges=list(edges.values()))
