"""Request-scoped resource cache.

One ``ResourceCache`` lives for the duration of a single graph computation
or single-resource report. It memoizes list calls by ``(kind, namespace)``
and custom-object lists by ``(CRD name, namespace)``, so no pair is fetched
twice, and it shares in-flight fetches so concurrent callers await the same
request.

A failed list call is logged, counted and treated as an empty result; the
empty result is memoized too, so one failing kind costs a single request.
Nothing survives ``scope()``: the store is cleared on entry and on exit,
including when the body raises.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from kubedeps.cluster.client import ClusterClient
from kubedeps.models.resources import KubeResource, parse_resource
from kubedeps.observability.logging import get_logger
from kubedeps.observability.metrics import fetch_failures_total
from kubedeps.schema.crd import CustomResourceDefinition

_logger = get_logger("cache.resource_cache")

_CacheKey = tuple[str, str]


class ResourceCache:
    """Memoizing wrapper around the list calls of a ``ClusterClient``."""

    def __init__(self, client: ClusterClient) -> None:
        self._client = client
        self._store: dict[_CacheKey, asyncio.Task[list[KubeResource]]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    async def list(self, kind: str, namespace: str | None = None, limit: int | None = None) -> list[KubeResource]:
        """Return the parsed objects of *kind* in *namespace* (all namespaces when None).

        *limit* applies to the first fetch of a key only; later calls return
        the memoized result.
        """
        return await self._memoized((kind, namespace or ""), lambda: self._fetch(kind, namespace, limit))

    async def list_custom(
        self,
        crd: CustomResourceDefinition,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[KubeResource]:
        """Instances of *crd*'s storage version, memoized by CRD name and namespace.

        Cluster-scoped CRDs are always listed across the cluster.
        """
        if not crd.namespaced:
            namespace = None
        return await self._memoized((crd.name, namespace or ""), lambda: self._fetch_custom(crd, namespace, limit))

    async def _memoized(
        self,
        key: _CacheKey,
        fetch: Callable[[], Awaitable[list[KubeResource]]],
    ) -> list[KubeResource]:
        task = self._store.get(key)
        if task is not None:
            self.hits += 1
            return list(await task)

        self.misses += 1
        task = asyncio.ensure_future(fetch())
        self._store[key] = task
        return list(await task)

    async def _fetch(self, kind: str, namespace: str | None, limit: int | None) -> list[KubeResource]:
        try:
            raw_items = await self._client.list_resources(kind, namespace=namespace, limit=limit)
        except Exception as exc:
            fetch_failures_total.labels(kind=kind).inc()
            _logger.warning(
                "fetch_failed",
                kind=kind,
                namespace=namespace or "*",
                error=str(exc),
            )
            return []
        return _parse_items(raw_items, kind)

    async def _fetch_custom(
        self,
        crd: CustomResourceDefinition,
        namespace: str | None,
        limit: int | None,
    ) -> list[KubeResource]:
        version = crd.storage_version
        if version is None:
            return []
        try:
            raw_items = await self._client.list_custom_objects(
                crd.group,
                version.name,
                crd.plural,
                namespace=namespace,
                limit=limit,
            )
        except Exception as exc:
            fetch_failures_total.labels(kind=crd.kind).inc()
            _logger.warning("fetch_failed", kind=crd.kind, namespace=namespace or "*", error=str(exc))
            return []
        return _parse_items(raw_items, crd.kind, cluster_scoped=not crd.namespaced)

    def clear(self) -> None:
        for task in self._store.values():
            if not task.done():
                task.cancel()
        self._store.clear()

    def stats(self) -> dict[str, Any]:
        return {"entries": len(self._store), "hits": self.hits, "misses": self.misses}

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[ResourceCache]:
        """Bound the cache to one computation."""
        self.clear()
        try:
            yield self
        finally:
            self.clear()


def _parse_items(raw_items: list[dict[str, Any]], kind: str, cluster_scoped: bool | None = None) -> list[KubeResource]:
    resources: list[KubeResource] = []
    for raw in raw_items:
        try:
            resources.append(parse_resource(raw, kind=kind, cluster_scoped=cluster_scoped))
        except ValueError as exc:
            _logger.debug("object_skipped", kind=kind, error=str(exc))
    return resources
