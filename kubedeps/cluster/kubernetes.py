"""kubernetes-asyncio implementation of ``ClusterClient``.

Every call is single-attempt: failures propagate to the caller, which
decides whether they are fatal (they never are for graph computation, see
``ResourceCache``).
"""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

from kubedeps.models.resources import ResourceKind, canonical_kind
from kubedeps.observability.logging import get_logger

_logger = get_logger("cluster.kubernetes")

# kind -> (API class attribute, namespaced list method, all-namespaces / cluster list method)
_LIST_CALLS: dict[ResourceKind, tuple[str, str | None, str]] = {
    ResourceKind.POD: ("core", "list_namespaced_pod", "list_pod_for_all_namespaces"),
    ResourceKind.SERVICE: ("core", "list_namespaced_service", "list_service_for_all_namespaces"),
    ResourceKind.CONFIG_MAP: ("core", "list_namespaced_config_map", "list_config_map_for_all_namespaces"),
    ResourceKind.SECRET: ("core", "list_namespaced_secret", "list_secret_for_all_namespaces"),
    ResourceKind.SERVICE_ACCOUNT: (
        "core",
        "list_namespaced_service_account",
        "list_service_account_for_all_namespaces",
    ),
    ResourceKind.PERSISTENT_VOLUME_CLAIM: (
        "core",
        "list_namespaced_persistent_volume_claim",
        "list_persistent_volume_claim_for_all_namespaces",
    ),
    ResourceKind.PERSISTENT_VOLUME: ("core", None, "list_persistent_volume"),
    ResourceKind.NODE: ("core", None, "list_node"),
    ResourceKind.NAMESPACE: ("core", None, "list_namespace"),
    ResourceKind.STORAGE_CLASS: ("storage", None, "list_storage_class"),
    ResourceKind.DEPLOYMENT: ("apps", "list_namespaced_deployment", "list_deployment_for_all_namespaces"),
    ResourceKind.REPLICA_SET: ("apps", "list_namespaced_replica_set", "list_replica_set_for_all_namespaces"),
    ResourceKind.STATEFUL_SET: ("apps", "list_namespaced_stateful_set", "list_stateful_set_for_all_namespaces"),
    ResourceKind.DAEMON_SET: ("apps", "list_namespaced_daemon_set", "list_daemon_set_for_all_namespaces"),
    ResourceKind.JOB: ("batch", "list_namespaced_job", "list_job_for_all_namespaces"),
    ResourceKind.CRON_JOB: ("batch", "list_namespaced_cron_job", "list_cron_job_for_all_namespaces"),
    ResourceKind.INGRESS: ("networking", "list_namespaced_ingress", "list_ingress_for_all_namespaces"),
    ResourceKind.NETWORK_POLICY: (
        "networking",
        "list_namespaced_network_policy",
        "list_network_policy_for_all_namespaces",
    ),
}

# Secret payloads are never needed for relationship analysis.
_REDACTED_SECRET_FIELDS = ("data", "stringData")


class KubernetesClusterClient:
    """``ClusterClient`` backed by a kubernetes-asyncio ``ApiClient``.

    Configuration (in-cluster or kubeconfig) must be loaded before
    construction; see ``kubedeps.app``.
    """

    def __init__(self, api_client: k8s_client.ApiClient | None = None) -> None:
        self._api_client = api_client or k8s_client.ApiClient()
        self._apis: dict[str, Any] = {
            "core": k8s_client.CoreV1Api(self._api_client),
            "apps": k8s_client.AppsV1Api(self._api_client),
            "batch": k8s_client.BatchV1Api(self._api_client),
            "networking": k8s_client.NetworkingV1Api(self._api_client),
            "storage": k8s_client.StorageV1Api(self._api_client),
        }
        self._extensions = k8s_client.ApiextensionsV1Api(self._api_client)
        self._custom = k8s_client.CustomObjectsApi(self._api_client)

    async def close(self) -> None:
        await self._api_client.close()

    async def list_resources(
        self,
        kind: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        resolved = canonical_kind(kind)
        api_name, namespaced_call, cluster_call = _LIST_CALLS[resolved]
        api = self._apis[api_name]
        kwargs: dict[str, Any] = {}
        if limit:
            kwargs["limit"] = limit

        if namespace and namespaced_call is not None:
            result = await getattr(api, namespaced_call)(namespace, **kwargs)
        else:
            result = await getattr(api, cluster_call)(**kwargs)

        items = self._items(result)
        if resolved is ResourceKind.SECRET:
            for item in items:
                for key in _REDACTED_SECRET_FIELDS:
                    item.pop(key, None)
        _logger.debug("listed", kind=resolved.value, namespace=namespace or "*", count=len(items))
        return items

    async def list_custom_resource_definitions(self) -> list[dict[str, Any]]:
        result = await self._extensions.list_custom_resource_definition()
        return self._items(result)

    async def list_custom_objects(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {}
        if limit:
            kwargs["limit"] = limit
        if namespace:
            result = await self._custom.list_namespaced_custom_object(group, version, namespace, plural, **kwargs)
        else:
            result = await self._custom.list_cluster_custom_object(group, version, plural, **kwargs)
        # CustomObjectsApi already returns plain dicts
        items = result.get("items", []) if isinstance(result, dict) else []
        return [item for item in items if isinstance(item, dict)]

    def _items(self, result: Any) -> list[dict[str, Any]]:
        data = self._api_client.sanitize_for_serialization(result)
        items = data.get("items", []) if isinstance(data, dict) else []
        return [item for item in items if isinstance(item, dict)]
