"""Second-pass resolution of label-selector placeholders.

Discovery order is unspecified: a Service may be processed before the Pods
it selects. Placeholders are therefore parked here and matched against the
complete node set at the end of a computation.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace

from kubedeps.graph.models import CandidateEdge, GraphNode, RelationshipType, Strength

# Concrete strength of a resolved placeholder, by relationship type.
_RESOLVED_STRENGTH: dict[RelationshipType, Strength] = {
    RelationshipType.SERVICE: Strength.STRONG,
}


def matches_selector(selector: Mapping[str, str], labels: Mapping[str, str]) -> bool:
    """True iff every selector key maps to an identical label value.

    A missing key or a differing value disqualifies. An empty selector
    matches nothing.
    """
    if not selector:
        return False
    return all(labels.get(key) == value for key, value in selector.items())


@dataclass(frozen=True)
class PendingSelector:
    source: str
    namespace: str
    candidate: CandidateEdge


class SelectorResolver:
    """Collects selector placeholders and resolves them in one pass."""

    def __init__(self) -> None:
        self._pending: list[PendingSelector] = []

    def __len__(self) -> int:
        return len(self._pending)

    def defer(self, source: str, namespace: str, candidate: CandidateEdge) -> None:
        if not candidate.is_placeholder:
            raise ValueError("only selector placeholders can be deferred")
        self._pending.append(PendingSelector(source=source, namespace=namespace, candidate=candidate))

    def resolve(self, nodes: Iterable[GraphNode]) -> list[tuple[str, CandidateEdge]]:
        """Match every parked placeholder against *nodes*.

        Returns ``(source_id, concrete_candidate)`` pairs. Only nodes of the
        placeholder's target kind in the same namespace are considered.
        Placeholders without a match are discarded.
        """
        by_kind_ns: dict[tuple[str, str], list[GraphNode]] = defaultdict(list)
        for node in nodes:
            by_kind_ns[(node.kind, node.namespace or "")].append(node)

        resolved: list[tuple[str, CandidateEdge]] = []
        for pending in self._pending:
            candidate = pending.candidate
            assert candidate.selector is not None
            target_kind = candidate.target_kind or "Pod"
            for node in by_kind_ns.get((target_kind, pending.namespace), []):
                if not matches_selector(candidate.selector, node.labels):
                    continue
                resolved.append(
                    (
                        pending.source,
                        replace(
                            candidate,
                            target=node.id,
                            strength=_RESOLVED_STRENGTH.get(candidate.type, candidate.strength),
                            reason=f"{candidate.reason}: {node.name}",
                        ),
                    )
                )
        self._pending.clear()
        return resolved
