"""Relationship rule base class and rule engine.

A rule inspects one ``KubeResource`` and emits candidate edges. Rules are
pure: they never fetch, never block, and never see more than the object they
are given. The engine sorts a rule's output into the three lists of
``ResourceDependencies``:

    outgoing -- this resource depends on the target
    related  -- selector placeholders, resolved once all nodes are known
    incoming -- consumers of a provider kind, only when a bounded
                ``ReverseIndex`` is supplied by the caller
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from kubedeps.graph.models import CandidateEdge, ResourceDependencies, node_id
from kubedeps.models.resources import KubeResource, ResourceKind, is_cluster_scoped
from kubedeps.observability.logging import get_logger

if TYPE_CHECKING:
    from kubedeps.rules.reverse_index import ReverseIndex

_logger = get_logger("rules.engine")


def target_id(kind: str, name: str, namespace: str) -> str:
    """Node id of a referenced object living next to the referencing one."""
    return node_id(kind, name, None if is_cluster_scoped(kind) else namespace or None)


def ref_name(value: Any, key: str = "name") -> str:
    """Return ``value[key]`` as a string when *value* is a mapping with a non-empty entry."""
    if not isinstance(value, dict):
        return ""
    name = value.get(key)
    return str(name) if name else ""


def dict_items(value: Any) -> list[tuple[int, dict[str, Any]]]:
    """Enumerate the mapping entries of a list field, skipping malformed entries."""
    if not isinstance(value, list):
        return []
    return [(i, item) for i, item in enumerate(value) if isinstance(item, dict)]


class RelationshipRule(ABC):
    """One family of relationships the engine can infer."""

    rule_id: str = ""
    display_name: str = ""
    # None means the rule applies to every kind, including unknown ones.
    kinds: frozenset[ResourceKind] | None = None

    def applies_to(self, resource: KubeResource) -> bool:
        if self.kinds is None:
            return True
        return resource.known_kind in self.kinds

    @abstractmethod
    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        """Return every candidate edge this rule finds on *resource*."""


class RelationshipRuleEngine:
    """Runs all registered rules against a resource."""

    def __init__(self, rules: Sequence[RelationshipRule] | None = None) -> None:
        if rules is None:
            from kubedeps.rules import default_rules

            rules = default_rules()
        self._rules: list[RelationshipRule] = list(rules)

    @property
    def rules(self) -> list[RelationshipRule]:
        return list(self._rules)

    def analyze(
        self,
        resource: KubeResource,
        reverse_index: ReverseIndex | None = None,
    ) -> ResourceDependencies:
        """Run every applicable rule against *resource*.

        A rule that raises on a malformed object is logged and skipped; the
        other rules still contribute.
        """
        deps = ResourceDependencies()
        for rule in self._rules:
            if not rule.applies_to(resource):
                continue
            try:
                candidates = rule.extract(resource)
            except Exception as exc:
                _logger.warning(
                    "rule_failed",
                    rule_id=rule.rule_id,
                    kind=resource.kind,
                    name=resource.name,
                    namespace=resource.namespace,
                    error=str(exc),
                )
                continue
            for candidate in candidates:
                if candidate.is_placeholder:
                    deps.related.append(candidate)
                else:
                    deps.outgoing.append(candidate)

        if reverse_index is not None:
            deps.incoming.extend(reverse_index.incoming_for(resource))
        return deps
