"""Tests for relationship rules R05 Scheduling through R08 LabelSelectors,
the rule engine and the bounded reverse index.
"""

from __future__ import annotations

from typing import Any

from kubedeps.graph.models import CandidateEdge, RelationshipType, Strength
from kubedeps.models.resources import KubeResource, parse_resource
from kubedeps.rules import default_rules
from kubedeps.rules.base import RelationshipRule, RelationshipRuleEngine
from kubedeps.rules.r05_scheduling import SchedulingRule
from kubedeps.rules.r06_storage import StorageBindingRule
from kubedeps.rules.r07_ingress import IngressBackendRule
from kubedeps.rules.r08_selectors import LabelSelectorRule
from kubedeps.rules.reverse_index import ReverseIndex

# ---------------------------------------------------------------------------
# Helper factories (same pattern as test_rules_r01_r04.py)
# ---------------------------------------------------------------------------


def _make_resource(
    kind: str = "Pod",
    name: str = "api-0",
    namespace: str = "shop",
    spec: dict[str, Any] | None = None,
) -> KubeResource:
    return parse_resource({"kind": kind, "metadata": {"name": name, "namespace": namespace}, "spec": spec or {}})


class _ExplodingRule(RelationshipRule):
    rule_id = "boom"

    def extract(self, resource: KubeResource) -> list[CandidateEdge]:
        raise KeyError("spec")


# ---------------------------------------------------------------------------
# R05 Scheduling
# ---------------------------------------------------------------------------


class TestSchedulingRule:
    def test_scheduled_pod_points_at_cluster_scoped_node(self) -> None:
        edges = SchedulingRule().extract(_make_resource(spec={"nodeName": "node-a"}))

        assert len(edges) == 1
        assert edges[0].target == "Node/node-a"
        assert edges[0].type is RelationshipType.SCHEDULING

    def test_pending_pod_has_no_edge(self) -> None:
        assert SchedulingRule().extract(_make_resource()) == []

    def test_only_pods(self) -> None:
        assert not SchedulingRule().applies_to(_make_resource(kind="Deployment"))


# ---------------------------------------------------------------------------
# R06 Storage
# ---------------------------------------------------------------------------


class TestStorageBindingRule:
    def test_claim_binds_volume_and_class(self) -> None:
        claim = _make_resource(
            kind="PersistentVolumeClaim",
            name="data",
            spec={"volumeName": "pv-1", "storageClassName": "fast"},
        )
        edges = StorageBindingRule().extract(claim)

        assert [e.target for e in edges] == ["PersistentVolume/pv-1", "StorageClass/fast"]
        assert all(e.type is RelationshipType.VOLUME for e in edges)

    def test_persistent_volume_storage_class(self) -> None:
        volume = parse_resource(
            {"kind": "PersistentVolume", "metadata": {"name": "pv-1"}, "spec": {"storageClassName": "fast"}}
        )
        edges = StorageBindingRule().extract(volume)

        assert [(e.field, e.target) for e in edges] == [("spec.storageClassName", "StorageClass/fast")]

    def test_unbound_claim(self) -> None:
        assert StorageBindingRule().extract(_make_resource(kind="PersistentVolumeClaim", name="data")) == []


# ---------------------------------------------------------------------------
# R07 IngressBackends
# ---------------------------------------------------------------------------


class TestIngressBackendRule:
    def test_rules_default_backend_and_tls(self) -> None:
        ingress = _make_resource(
            kind="Ingress",
            name="shop",
            spec={
                "defaultBackend": {"service": {"name": "fallback", "port": {"number": 80}}},
                "rules": [
                    {
                        "host": "shop.example.com",
                        "http": {
                            "paths": [
                                {"path": "/api", "backend": {"service": {"name": "api"}}},
                                {"path": "/", "backend": {"resource": {"kind": "Bucket", "name": "static"}}},
                            ]
                        },
                    }
                ],
                "tls": [{"hosts": ["shop.example.com"], "secretName": "shop-tls"}],
            },
        )
        edges = IngressBackendRule().extract(ingress)

        assert [(e.type, e.target) for e in edges] == [
            (RelationshipType.SERVICE, "Service/fallback@shop"),
            (RelationshipType.SERVICE, "Service/api@shop"),
            (RelationshipType.SECRET, "Secret/shop-tls@shop"),
        ]
        assert edges[1].field == "spec.rules[0].http.paths[0].backend.service.name"
        assert edges[1].reason == "Ingress shop routes shop.example.com/api to Service api"

    def test_legacy_backend_fields(self) -> None:
        ingress = _make_resource(
            kind="Ingress",
            name="old",
            spec={
                "backend": {"serviceName": "legacy"},
                "rules": [{"http": {"paths": [{"backend": {"serviceName": "legacy-api"}}]}}],
            },
        )
        edges = IngressBackendRule().extract(ingress)

        assert [e.field for e in edges] == [
            "spec.backend.serviceName",
            "spec.rules[0].http.paths[0].backend.serviceName",
        ]


# ---------------------------------------------------------------------------
# R08 LabelSelectors
# ---------------------------------------------------------------------------


class TestLabelSelectorRule:
    def test_service_selector_is_a_placeholder(self) -> None:
        service = _make_resource(kind="Service", name="api", spec={"selector": {"app": "api", "tier": "web"}})
        edges = LabelSelectorRule().extract(service)

        assert len(edges) == 1
        placeholder = edges[0]
        assert placeholder.is_placeholder
        assert placeholder.target is None
        assert placeholder.selector == {"app": "api", "tier": "web"}
        assert placeholder.target_kind == "Pod"
        assert placeholder.type is RelationshipType.SERVICE
        assert placeholder.strength is Strength.WEAK

    def test_network_policy_match_labels(self) -> None:
        policy = _make_resource(
            kind="NetworkPolicy",
            name="deny",
            spec={"podSelector": {"matchLabels": {"app": "db"}}},
        )
        edges = LabelSelectorRule().extract(policy)

        assert edges[0].type is RelationshipType.NETWORK
        assert edges[0].field == "spec.podSelector.matchLabels"

    def test_empty_selectors_emit_nothing(self) -> None:
        assert LabelSelectorRule().extract(_make_resource(kind="Service", name="headless")) == []
        policy = _make_resource(kind="NetworkPolicy", name="all", spec={"podSelector": {}})
        assert LabelSelectorRule().extract(policy) == []


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TestRelationshipRuleEngine:
    def test_default_rules_are_registered_in_order(self) -> None:
        ids = [rule.rule_id for rule in RelationshipRuleEngine().rules]
        assert ids == [rule.rule_id for rule in default_rules()]
        assert ids[0] == "R01_owner_references"
        assert len(ids) == 8

    def test_placeholders_go_to_related(self) -> None:
        service = _make_resource(kind="Service", name="api", spec={"selector": {"app": "api"}})
        deps = RelationshipRuleEngine().analyze(service)

        assert deps.outgoing == []
        assert deps.incoming == []
        assert len(deps.related) == 1

    def test_failing_rule_is_skipped(self) -> None:
        engine = RelationshipRuleEngine([_ExplodingRule(), SchedulingRule()])
        deps = engine.analyze(_make_resource(spec={"nodeName": "node-a"}))

        assert [e.target for e in deps.outgoing] == ["Node/node-a"]

    def test_same_input_same_output(self) -> None:
        pod = _make_resource(spec={"nodeName": "node-a", "serviceAccountName": "api"})
        engine = RelationshipRuleEngine()

        assert engine.analyze(pod).to_dict() == engine.analyze(pod).to_dict()


# ---------------------------------------------------------------------------
# Reverse index
# ---------------------------------------------------------------------------


class TestReverseIndex:
    def _consumers(self, count: int) -> list[KubeResource]:
        return [
            _make_resource(name=f"api-{i}", spec={"volumes": [{"name": "cfg", "configMap": {"name": "api-config"}}]})
            for i in range(count)
        ]

    def test_incoming_edges_point_at_consumers(self) -> None:
        index = ReverseIndex(RelationshipRuleEngine(), self._consumers(2))
        config_map = _make_resource(kind="ConfigMap", name="api-config")
        incoming = index.incoming_for(config_map)

        assert [e.target for e in incoming] == ["Pod/api-0@shop", "Pod/api-1@shop"]
        assert incoming[0].context["direction"] == "incoming"
        assert index.consumers_scanned == 2

    def test_incoming_is_capped(self) -> None:
        index = ReverseIndex(RelationshipRuleEngine(), self._consumers(20), max_entries=5)
        assert len(index.incoming_for(_make_resource(kind="ConfigMap", name="api-config"))) == 5

    def test_non_provider_kinds_have_no_incoming(self) -> None:
        index = ReverseIndex(RelationshipRuleEngine(), self._consumers(1))
        assert index.incoming_for(_make_resource(kind="Service", name="api-config")) == []

    def test_engine_fills_incoming_from_index(self) -> None:
        engine = RelationshipRuleEngine()
        index = ReverseIndex(engine, self._consumers(3))
        deps = engine.analyze(_make_resource(kind="ConfigMap", name="api-config"), index)

        assert len(deps.incoming) == 3
