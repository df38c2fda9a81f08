"""Resource dependency graph computation.

One call to ``build_graph`` is one computation:

    fetch (concurrent, memoized) -> rules per resource under the governor
    -> selector second pass -> capped placeholder nodes -> bounded reverse edges

Edges to objects the governor refused are dropped rather than kept as
placeholders, so the node caps hold for the finished graph.

Each computation gets its own ``ResourceCache``; nothing fetched for one
request is visible to another.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from kubedeps.cache.resource_cache import ResourceCache
from kubedeps.cluster.client import ClusterClient
from kubedeps.graph.assembler import GraphAssembler, node_from_resource
from kubedeps.graph.governor import PerformanceGovernor, TruncationReason
from kubedeps.graph.models import CandidateEdge, DependencyGraph, GraphNode, ResourceReport, node_id
from kubedeps.graph.selector import SelectorResolver
from kubedeps.models.config import GovernorConfig, KubeDepsConfig
from kubedeps.models.resources import (
    POD_SPEC_PATHS,
    KubeResource,
    ResourceKind,
    ResourceNotFoundError,
    canonical_kind,
    is_cluster_scoped,
)
from kubedeps.observability.logging import get_logger
from kubedeps.observability.metrics import (
    graph_computation_seconds,
    graph_computations_total,
    graph_truncations_total,
)
from kubedeps.rules import PROVIDER_KINDS, RelationshipRuleEngine, ReverseIndex
from kubedeps.schema.service import list_crds

_logger = get_logger("graph.builder")

# Processing order. Namespaced kinds come first so that cluster-scoped
# objects can be kept only when something in the namespace references them.
GRAPH_KINDS: tuple[ResourceKind, ...] = (
    ResourceKind.DEPLOYMENT,
    ResourceKind.STATEFUL_SET,
    ResourceKind.DAEMON_SET,
    ResourceKind.REPLICA_SET,
    ResourceKind.CRON_JOB,
    ResourceKind.JOB,
    ResourceKind.POD,
    ResourceKind.SERVICE,
    ResourceKind.INGRESS,
    ResourceKind.NETWORK_POLICY,
    ResourceKind.CONFIG_MAP,
    ResourceKind.SECRET,
    ResourceKind.SERVICE_ACCOUNT,
    ResourceKind.PERSISTENT_VOLUME_CLAIM,
    ResourceKind.PERSISTENT_VOLUME,
    ResourceKind.STORAGE_CLASS,
    ResourceKind.NODE,
)

# Kinds scanned when building the reverse index of a provider.
_CONSUMER_KINDS: tuple[ResourceKind, ...] = (*POD_SPEC_PATHS, ResourceKind.INGRESS)


def narrow_limits(limits: GovernorConfig, max_nodes: int | None = None) -> GovernorConfig:
    """Apply a request-level ``maxNodes``; it can only lower the configured cap."""
    if max_nodes is None or max_nodes <= 0 or max_nodes >= limits.max_nodes:
        return limits
    return dataclasses.replace(limits, max_nodes=max_nodes)


class DependencyGraphBuilder:
    """Computes resource dependency graphs and single-resource reports.

    Args:
        client: Cluster API access.
        config: Service configuration; only the governor limits are used here.
        engine: Rule engine, defaults to all built-in rules.
        clock:  Monotonic clock for the governor deadline.
    """

    def __init__(
        self,
        client: ClusterClient,
        config: KubeDepsConfig | None = None,
        engine: RelationshipRuleEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = config or KubeDepsConfig()
        self._engine = engine or RelationshipRuleEngine()
        self._clock = clock

    @property
    def limits(self) -> GovernorConfig:
        return self._config.governor

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    async def build_graph(
        self,
        namespace: str | None = None,
        include_custom: bool = False,
        max_nodes: int | None = None,
    ) -> DependencyGraph:
        """Compute the dependency graph of *namespace*, or of the cluster when None.

        Never raises for cluster-side failures: failed list calls count as
        empty and a deadline overrun returns the partial graph, flagged in
        ``metadata.truncated``.
        """
        limits = narrow_limits(self.limits, max_nodes)
        governor = PerformanceGovernor(limits, clock=self._clock)
        governor.start()
        cache = ResourceCache(self._client)
        assembler = GraphAssembler()
        resolver = SelectorResolver()
        outcome = "error"

        try:
            async with cache.scope():
                resources = await self._fetch_all(cache, namespace, limits)
                if include_custom:
                    resources.extend(await self._fetch_custom(cache, namespace, limits, governor))
                resources = self._limit_namespaces(resources, namespace, governor)
                self._process(resources, namespace, assembler, resolver, governor)
                cache_stats = cache.stats()

            for source, candidate in resolver.resolve(assembler.nodes()):
                assembler.add_candidate(source, candidate)
            assembler.drop_edges_touching(governor.rejected)
            assembler.materialize_missing_endpoints(admit=governor.admit_id)
            assembler.synthesize_reverse_edges(limits.max_reverse_edges)
            outcome = "partial" if governor.truncated else "complete"
        finally:
            graph_computations_total.labels(outcome=outcome).inc()
            graph_computation_seconds.observe(governor.elapsed_seconds)

        if governor.truncated:
            for reason in governor.reasons:
                graph_truncations_total.labels(reason=reason).inc()
            _logger.info(
                "graph_truncated",
                namespace=namespace or "all",
                reasons=governor.reasons,
                nodes=assembler.node_count,
                edges=assembler.edge_count,
            )

        graph = assembler.build(
            {
                "namespace": namespace or "all",
                "timestamp": datetime.now(UTC).isoformat(),
                "truncated": governor.truncated,
                "truncationReasons": governor.reasons,
                "elapsedMs": round(governor.elapsed_seconds * 1000, 1),
                "includeCustom": include_custom,
                "limits": governor.describe(),
                "cache": cache_stats,
                "reverseEdges": assembler.reverse_edge_count,
                "unresolvedNodes": assembler.placeholder_count,
            }
        )
        _logger.info(
            "graph_computed",
            namespace=namespace or "all",
            nodes=graph.node_count,
            edges=graph.edge_count,
            elapsed_ms=graph.metadata["elapsedMs"],
        )
        return graph

    async def _fetch_all(
        self,
        cache: ResourceCache,
        namespace: str | None,
        limits: GovernorConfig,
    ) -> list[KubeResource]:
        """List every graph kind concurrently; results keep ``GRAPH_KINDS`` order."""
        batches = await asyncio.gather(
            *(
                cache.list(
                    kind.value,
                    None if is_cluster_scoped(kind) else namespace,
                    limit=limits.max_resources_per_type,
                )
                for kind in GRAPH_KINDS
            )
        )
        return [resource for batch in batches for resource in batch]

    async def _fetch_custom(
        self,
        cache: ResourceCache,
        namespace: str | None,
        limits: GovernorConfig,
        governor: PerformanceGovernor,
    ) -> list[KubeResource]:
        """List instances of every CRD's storage version, at most ``max_crds`` CRDs."""
        crds = await list_crds(self._client)
        crds = governor.cap(crds, self._config.schema.max_crds, TruncationReason.MAX_CRDS)
        batches = await asyncio.gather(
            *(cache.list_custom(crd, namespace, limit=limits.max_resources_per_type) for crd in crds)
        )
        return [resource for batch in batches for resource in batch]

    def _limit_namespaces(
        self,
        resources: list[KubeResource],
        namespace: str | None,
        governor: PerformanceGovernor,
    ) -> list[KubeResource]:
        """Cluster-wide graphs cover at most ``max_namespaces`` namespaces (sorted by name)."""
        if namespace:
            return resources
        namespaces = sorted({r.namespace for r in resources if r.namespace})
        allowed = set(governor.cap(namespaces, governor.limits.max_namespaces, TruncationReason.MAX_NAMESPACES))
        return [r for r in resources if not r.namespace or r.namespace in allowed]

    def _process(
        self,
        resources: Iterable[KubeResource],
        namespace: str | None,
        assembler: GraphAssembler,
        resolver: SelectorResolver,
        governor: PerformanceGovernor,
    ) -> None:
        referenced: set[str] = set()
        for resource in resources:
            if governor.expired():
                break
            source = node_id(resource.kind, resource.name, resource.namespace or None)
            if assembler.has_node(source):
                continue
            if namespace and resource.cluster_scoped and source not in referenced:
                continue
            if not governor.admit(resource):
                continue
            try:
                deps = self._engine.analyze(resource)
                assembler.add_resource(resource)
                for candidate in deps.outgoing:
                    assembler.add_candidate(source, candidate)
                    if candidate.target is not None:
                        referenced.add(candidate.target)
                for candidate in deps.related:
                    resolver.defer(source, resource.namespace, candidate)
            except Exception as exc:
                _logger.warning("resource_analysis_failed", resource_id=source, error=str(exc))

    # ------------------------------------------------------------------
    # Single resource
    # ------------------------------------------------------------------

    async def describe_resource(self, kind: str, name: str, namespace: str | None = None) -> ResourceReport:
        """Relationship report for one object.

        Raises:
            UnsupportedKindError:  *kind* is not a known resource kind.
            ResourceNotFoundError: the object does not exist.
        """
        resolved = canonical_kind(kind)
        ns = "" if is_cluster_scoped(resolved) else (namespace or "default")
        limits = self.limits
        cache = ResourceCache(self._client)

        async with cache.scope():
            candidates = await cache.list(resolved.value, ns or None)
            resource = next((r for r in candidates if r.name == name), None)
            if resource is None:
                raise ResourceNotFoundError(resolved.value, name, ns)

            reverse_index: ReverseIndex | None = None
            if resolved in PROVIDER_KINDS:
                batches = await asyncio.gather(
                    *(cache.list(k.value, ns, limit=limits.max_resources_per_type) for k in _CONSUMER_KINDS)
                )
                consumers = [r for batch in batches for r in batch[: limits.max_resources_per_type]]
                reverse_index = ReverseIndex(self._engine, consumers, max_entries=limits.max_reverse_edges)

            deps = self._engine.analyze(resource, reverse_index)
            if deps.related:
                deps.related = await self._resolve_related(cache, resource, deps.related)
            cache_stats = cache.stats()

        metadata: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "reverseIndex": reverse_index is not None,
            "cache": cache_stats,
        }
        if reverse_index is not None:
            metadata["consumersScanned"] = reverse_index.consumers_scanned
        return ResourceReport(resource=node_from_resource(resource), dependencies=deps, metadata=metadata)

    async def _resolve_related(
        self,
        cache: ResourceCache,
        resource: KubeResource,
        placeholders: list[CandidateEdge],
    ) -> list[CandidateEdge]:
        source = node_id(resource.kind, resource.name, resource.namespace or None)
        resolver = SelectorResolver()
        target_kinds: set[str] = set()
        for candidate in placeholders:
            resolver.defer(source, resource.namespace, candidate)
            target_kinds.add(candidate.target_kind or ResourceKind.POD.value)
        nodes: list[GraphNode] = []
        for target_kind in sorted(target_kinds):
            targets = await cache.list(
                target_kind,
                resource.namespace or None,
                limit=self.limits.max_resources_per_type,
            )
            nodes.extend(node_from_resource(t) for t in targets)
        return [candidate for _, candidate in resolver.resolve(nodes)]

