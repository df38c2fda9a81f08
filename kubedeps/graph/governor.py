"""Performance governor: wall-clock deadline and cardinality caps.

The deadline is cooperative. The graph builder asks ``expired()`` before
each resource; once it returns True the loop stops and the computation
returns whatever it has assembled so far. Requests already in flight to the
cluster are not interrupted.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from kubedeps.graph.models import node_id
from kubedeps.models.config import GovernorConfig
from kubedeps.models.resources import KubeResource


class TruncationReason(StrEnum):
    DEADLINE = "deadline"
    MAX_NODES = "max_nodes"
    MAX_RESOURCES_PER_TYPE = "max_resources_per_type"
    MAX_CLUSTER_SCOPED_NODES = "max_cluster_scoped_nodes"
    MAX_CRDS = "max_crds"
    MAX_NAMESPACES = "max_namespaces"


class PerformanceGovernor:
    """Enforces the limits of one computation.

    Args:
        limits: Effective limits (already narrowed by request parameters).
        clock:  Monotonic clock, injectable for tests.
    """

    def __init__(self, limits: GovernorConfig, clock: Callable[[], float] = time.monotonic) -> None:
        self.limits = limits
        self._clock = clock
        self._started_at: float | None = None
        self._per_kind: Counter[str] = Counter()
        self._cluster_scoped = 0
        self._admitted = 0
        self._reasons: list[TruncationReason] = []
        self._rejected: set[str] = set()

    def start(self) -> None:
        self._started_at = self._clock()

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    @property
    def truncated(self) -> bool:
        return bool(self._reasons)

    @property
    def reasons(self) -> list[str]:
        return [r.value for r in self._reasons]

    def note(self, reason: TruncationReason) -> None:
        """Record that *reason* reduced the scope of the computation (once per reason)."""
        if reason not in self._reasons:
            self._reasons.append(reason)

    def expired(self) -> bool:
        """True once the deadline has passed; records the truncation."""
        if self._started_at is None:
            self.start()
        if self.elapsed_seconds >= self.limits.deadline_seconds:
            self.note(TruncationReason.DEADLINE)
            return True
        return False

    def admit(self, resource: KubeResource) -> bool:
        """Decide whether *resource* may become a node of the graph.

        Rejected objects are remembered so edges pointing at them can be
        dropped instead of being turned into placeholder nodes.
        """
        rid = node_id(resource.kind, resource.name, resource.namespace or None)
        full = self._admitted >= self.limits.max_nodes
        if not full and self._per_kind[resource.kind] >= self.limits.max_resources_per_type:
            self.note(TruncationReason.MAX_RESOURCES_PER_TYPE)
            self._rejected.add(rid)
            return False
        if not self.admit_id(rid, resource.cluster_scoped):
            return False
        self._per_kind[resource.kind] += 1
        return True

    def admit_id(self, node_id_: str, cluster_scoped: bool) -> bool:
        """Count one node against ``max_nodes`` and the cluster-scoped cap.

        Used directly for placeholder nodes, which have no per-kind budget.
        """
        if self._admitted >= self.limits.max_nodes:
            self.note(TruncationReason.MAX_NODES)
            self._rejected.add(node_id_)
            return False
        if cluster_scoped:
            if self._cluster_scoped >= self.limits.max_cluster_scoped_nodes:
                self.note(TruncationReason.MAX_CLUSTER_SCOPED_NODES)
                self._rejected.add(node_id_)
                return False
            self._cluster_scoped += 1
        self._admitted += 1
        return True

    @property
    def rejected(self) -> frozenset[str]:
        """Ids of every node refused by a cap so far."""
        return frozenset(self._rejected)

    def cap(self, items: list[Any], limit: int, reason: TruncationReason) -> list[Any]:
        """Return at most *limit* items of *items*, recording *reason* when cut."""
        if len(items) > limit:
            self.note(reason)
            return items[:limit]
        return items

    def describe(self) -> dict[str, Any]:
        return {
            "maxResourcesPerType": self.limits.max_resources_per_type,
            "maxNamespaces": self.limits.max_namespaces,
            "maxClusterScopedNodes": self.limits.max_cluster_scoped_nodes,
            "maxReverseEdges": self.limits.max_reverse_edges,
            "maxNodes": self.limits.max_nodes,
            "deadlineSeconds": self.limits.deadline_seconds,
        }
