"""CRD analysis service: fetch, filter and cap CRDs, then analyze them."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from kubedeps.cluster.client import ClusterClient
from kubedeps.graph.models import DependencyGraph
from kubedeps.models.config import KubeDepsConfig
from kubedeps.observability.logging import get_logger
from kubedeps.observability.metrics import crd_analyses_total
from kubedeps.schema.analyzer import SchemaRelationshipAnalyzer, resolve_depth
from kubedeps.schema.crd import CustomResourceDefinition, parse_crd

_logger = get_logger("schema.service")


async def list_crds(client: ClusterClient) -> list[CustomResourceDefinition]:
    """All parseable CRDs of the cluster, sorted by name; a failed listing counts as none."""
    try:
        raw_items = await client.list_custom_resource_definitions()
    except Exception as exc:
        _logger.warning("fetch_failed", kind="CustomResourceDefinition", error=str(exc))
        return []
    crds: list[CustomResourceDefinition] = []
    for raw in raw_items:
        try:
            crds.append(parse_crd(raw))
        except ValueError as exc:
            _logger.warning("crd_skipped", error=str(exc))
    return sorted(crds, key=lambda c: c.name)


def parse_api_groups(value: str | Iterable[str] | None) -> list[str]:
    """Normalise an ``apiGroups`` parameter (comma-separated or repeated)."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else [p for v in value for p in v.split(",")]
    return sorted({p.strip() for p in parts if p.strip()})


@dataclass
class CRDAnalysis:
    """Result of one CRD analysis: the schema graph and the CRDs it covers."""

    graph: DependencyGraph
    crds: list[CustomResourceDefinition] = field(default_factory=list)
    depth: int = 10
    include_native: bool = True


class CRDAnalysisService:
    """Runs schema relationship analyses against the cluster's CRDs.

    Args:
        client: Cluster API access.
        config: Service configuration (schema caps and namespace sampling).
        clock:  Monotonic clock used for ``analysisTime``.
    """

    def __init__(
        self,
        client: ClusterClient,
        config: KubeDepsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = config or KubeDepsConfig()
        self._clock = clock

    async def analyze(
        self,
        api_groups: Iterable[str] | None = None,
        max_crds: int | None = None,
        include_native: bool = True,
        depth: str | int | None = None,
    ) -> CRDAnalysis:
        """Analyze the (filtered, capped) CRDs of the cluster.

        Raises ``ValueError`` for an unparseable *depth*.
        """
        started = self._clock()
        walk_depth = resolve_depth(depth, self._config.schema.max_depth)
        groups = parse_api_groups(api_groups)
        limit = self._config.schema.max_crds
        if max_crds is not None and 0 < max_crds < limit:
            limit = max_crds

        crds = await list_crds(self._client)
        if groups:
            crds = [c for c in crds if c.group in groups]
        truncated = len(crds) > limit
        crds = crds[:limit]

        graph = SchemaRelationshipAnalyzer(max_depth=walk_depth).analyze(crds, include_native=include_native)
        elapsed_ms = round((self._clock() - started) * 1000, 1)
        crd_analyses_total.inc()

        group_stats: dict[str, dict[str, int]] = defaultdict(lambda: {"crdCount": 0})
        for crd in crds:
            group_stats[crd.group]["crdCount"] += 1
        graph.metadata = {
            "namespace": "cluster",
            "timestamp": datetime.now(UTC).isoformat(),
            "apiGroups": sorted(group_stats),
            "apiGroupStats": dict(sorted(group_stats.items())),
            "analysisOptions": {
                "apiGroups": groups,
                "maxCRDs": limit,
                "includeNative": include_native,
                "depth": walk_depth,
            },
            "analysisTime": elapsed_ms,
            "crdCount": len(crds),
            "dependencyCount": graph.edge_count,
            "truncated": truncated,
            "truncationReasons": ["max_crds"] if truncated else [],
        }
        _logger.info(
            "crd_analysis_completed",
            crds=len(crds),
            nodes=graph.node_count,
            edges=graph.edge_count,
            depth=walk_depth,
            elapsed_ms=elapsed_ms,
        )
        return CRDAnalysis(graph=graph, crds=crds, depth=walk_depth, include_native=include_native)

    async def api_groups(self) -> list[dict[str, Any]]:
        """Inventory of API groups with their CRDs and served versions."""
        inventory: dict[str, dict[str, Any]] = {}
        for crd in await list_crds(self._client):
            entry = inventory.setdefault(crd.group, {"group": crd.group, "crdCount": 0, "crds": [], "versions": set()})
            entry["crdCount"] += 1
            entry["crds"].append(crd.summary())
            entry["versions"].update(v.name for v in crd.served_versions)
        return [{**entry, "versions": sorted(entry["versions"])} for _, entry in sorted(inventory.items())]

    async def instance_counts(self, crds: Iterable[CustomResourceDefinition]) -> dict[str, Any]:
        """Count instances of each CRD, sampling at most ``max_namespaces`` namespaces.

        Returns ``{"counts": {crd name: count}, "sampledNamespaces": [...]}``.
        """
        namespaces = await self._sample_namespaces()
        limit = self._config.governor.max_resources_per_type

        async def count(crd: CustomResourceDefinition) -> tuple[str, int]:
            version = crd.storage_version
            if version is None:
                return crd.name, 0
            scopes: list[str | None] = list(namespaces) if crd.namespaced else [None]
            total = 0
            for namespace in scopes:
                try:
                    items = await self._client.list_custom_objects(
                        crd.group, version.name, crd.plural, namespace=namespace, limit=limit
                    )
                except Exception as exc:
                    _logger.warning("fetch_failed", kind=crd.kind, namespace=namespace or "*", error=str(exc))
                    continue
                total += len(items)
            return crd.name, total

        results = await asyncio.gather(*(count(c) for c in crds))
        return {"counts": dict(results), "sampledNamespaces": namespaces}

    async def _sample_namespaces(self) -> list[str]:
        try:
            raw_items = await self._client.list_resources("Namespace")
        except Exception as exc:
            _logger.warning("fetch_failed", kind="Namespace", error=str(exc))
            return []
        names = sorted(
            str(item["metadata"]["name"])
            for item in raw_items
            if isinstance(item.get("metadata"), dict) and item["metadata"].get("name")
        )
        return names[: self._config.governor.max_namespaces]
