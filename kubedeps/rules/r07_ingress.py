"""R07 IngressBackends -- Ingress only.

Rule backends, the default backend and the legacy ``serviceName`` field
become strong ``service`` edges; TLS ``secretName`` entries become strong
``secret`` edges.
"""

from __future__ import annotations

from typing import Any

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource, ResourceKind
from kubedeps.rules.base import RelationshipRule, dict_items, target_id


def _backend_service(backend: Any) -> tuple[str, str]:
    """Return ``(service_name, field_suffix)`` for a networking/v1 or legacy backend."""
    if not isinstance(backend, dict):
        return "", ""
    service = backend.get("service")
    if isinstance(service, dict) and service.get("name"):
        return str(service["name"]), "service.name"
    if backend.get("serviceName"):
        return str(backend["serviceName"]), "serviceName"
    return "", ""


class IngressBackendRule(RelationshipRule):
    rule_id = "R07_ingress"
    display_name = "Ingress backends"
    kinds = frozenset({ResourceKind.INGRESS})

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        spec = resource.spec
        edges: list[CandidateEdge] = []

        for key in ("defaultBackend", "backend"):
            name, suffix = _backend_service(spec.get(key))
            if name:
                edges.append(self._service_edge(resource, name, f"spec.{key}.{suffix}", "default backend"))

        for ri, rule in dict_items(spec.get("rules")):
            http = rule.get("http")
            if not isinstance(http, dict):
                continue
            host = str(rule.get("host") or "*")
            for pi, path in dict_items(http.get("paths")):
                name, suffix = _backend_service(path.get("backend"))
                if name:
                    route = f"{host}{path.get('path') or '/'}"
                    edges.append(
                        self._service_edge(
                            resource, name, f"spec.rules[{ri}].http.paths[{pi}].backend.{suffix}", route
                        )
                    )

        for ti, tls in dict_items(spec.get("tls")):
            secret_name = str(tls.get("secretName") or "")
            if secret_name:
                edges.append(
                    CandidateEdge(
                        type=RelationshipType.SECRET,
                        strength=Strength.STRONG,
                        field=f"spec.tls[{ti}].secretName",
                        reason=f"Ingress {resource.name} terminates TLS with Secret {secret_name}",
                        target=target_id(ResourceKind.SECRET, secret_name, resource.namespace),
                    )
                )
        return edges

    @staticmethod
    def _service_edge(resource: KubeResource, service: str, field_path: str, via: str) -> CandidateEdge:
        return CandidateEdge(
            type=RelationshipType.SERVICE,
            strength=Strength.STRONG,
            field=field_path,
            reason=f"Ingress {resource.name} routes {via} to Service {service}",
            target=target_id(ResourceKind.SERVICE, service, resource.namespace),
        )
