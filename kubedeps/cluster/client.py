"""The read-only cluster interface consumed by kubedeps.

Implementations return plain camelCase dictionaries shaped like the
Kubernetes API objects (``metadata`` / ``spec`` / ``status``). Nothing in
kubedeps ever mutates cluster state.
"""

from __future__ import annotations

from typing import Any, Protocol


class ClusterClient(Protocol):
    """Minimal cluster interface required by the graph builder and CRD analysis."""

    async def list_resources(
        self,
        kind: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a known kind, in one namespace or across all of them."""
        ...

    async def list_custom_resource_definitions(self) -> list[dict[str, Any]]: ...

    async def list_custom_objects(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...
