"""Tests for graph identity, the selector resolver, the assembler and the governor."""

from __future__ import annotations

from typing import Any

import pytest

from kubedeps.graph.assembler import GraphAssembler, filter_graph, node_from_resource
from kubedeps.graph.governor import PerformanceGovernor, TruncationReason
from kubedeps.graph.models import (
    CandidateEdge,
    GraphNode,
    RelationshipType,
    Strength,
    edge_id,
    node_id,
    parse_node_id,
)
from kubedeps.graph.selector import SelectorResolver, matches_selector
from kubedeps.models.config import GovernorConfig
from kubedeps.models.resources import KubeResource, parse_resource

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_resource(
    kind: str = "Pod",
    name: str = "api-0",
    namespace: str = "shop",
    labels: dict[str, str] | None = None,
    status: dict[str, Any] | None = None,
) -> KubeResource:
    return parse_resource(
        {
            "kind": kind,
            "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
            "status": status or {},
        }
    )


def _make_candidate(
    target: str = "ConfigMap/cfg@shop",
    rel_type: RelationshipType = RelationshipType.CONFIG_MAP,
    reason: str = "mounts cfg",
) -> CandidateEdge:
    return CandidateEdge(type=rel_type, strength=Strength.STRONG, field="spec.volumes[0]", reason=reason, target=target)


def _make_placeholder(selector: dict[str, str], rel_type: RelationshipType = RelationshipType.SERVICE) -> CandidateEdge:
    return CandidateEdge(
        type=rel_type,
        strength=Strength.WEAK,
        field="spec.selector",
        reason="Service api routes traffic to pods",
        selector=selector,
        target_kind="Pod",
    )


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class TestIdentity:
    def test_namespaced_and_cluster_scoped_ids(self) -> None:
        assert node_id("Pod", "api-0", "shop") == "Pod/api-0@shop"
        assert node_id("Node", "node-a") == "Node/node-a"
        assert node_id("Node", "node-a", "") == "Node/node-a"

    def test_parse_node_id_inverts_node_id(self) -> None:
        assert parse_node_id("Pod/api-0@shop") == ("Pod", "api-0", "shop")
        assert parse_node_id("StorageClass/fast") == ("StorageClass", "fast", None)

    def test_edge_id_distinguishes_reverse_edges(self) -> None:
        forward = edge_id("Pod/a@x", "ConfigMap/c@x", RelationshipType.CONFIG_MAP)
        reverse = edge_id("ConfigMap/c@x", "Pod/a@x", RelationshipType.CONFIG_MAP, reverse=True)
        inverted_forward = edge_id("ConfigMap/c@x", "Pod/a@x", RelationshipType.CONFIG_MAP)

        assert forward == "Pod/a@x->ConfigMap/c@x:configMap"
        assert reverse != inverted_forward

    def test_node_from_resource_summarizes_status(self) -> None:
        node = node_from_resource(
            _make_resource(status={"phase": "Running", "conditions": [{"type": "Ready"}], "active": [{}, {}]})
        )

        assert node.id == "Pod/api-0@shop"
        assert node.status == {"phase": "Running", "active": 2}

    def test_node_dict_omits_empty_namespace(self) -> None:
        node = GraphNode(id="Node/n", kind="Node", name="n")
        assert "namespace" not in node.to_dict()


# ---------------------------------------------------------------------------
# Selector resolver
# ---------------------------------------------------------------------------


class TestSelectorResolver:
    def test_matches_selector(self) -> None:
        assert matches_selector({"app": "x"}, {"app": "x", "tier": "web"})
        assert not matches_selector({"app": "x"}, {"app": "y"})
        assert not matches_selector({"app": "x", "tier": "db"}, {"app": "x"})
        assert not matches_selector({}, {"app": "x"})

    def test_exactly_one_edge_to_the_matching_pod(self) -> None:
        pods = [
            node_from_resource(_make_resource(name="x-pod", labels={"app": "x"})),
            node_from_resource(_make_resource(name="y-pod", labels={"app": "y"})),
        ]
        resolver = SelectorResolver()
        resolver.defer("Service/api@shop", "shop", _make_placeholder({"app": "x"}))

        resolved = resolver.resolve(pods)

        assert len(resolved) == 1
        source, edge = resolved[0]
        assert source == "Service/api@shop"
        assert edge.target == "Pod/x-pod@shop"
        assert edge.type is RelationshipType.SERVICE
        assert edge.strength is Strength.STRONG
        assert len(resolver) == 0

    def test_other_namespaces_are_not_matched(self) -> None:
        pods = [node_from_resource(_make_resource(name="x-pod", namespace="other", labels={"app": "x"}))]
        resolver = SelectorResolver()
        resolver.defer("Service/api@shop", "shop", _make_placeholder({"app": "x"}))

        assert resolver.resolve(pods) == []

    def test_network_selectors_stay_weak(self) -> None:
        pods = [node_from_resource(_make_resource(name="db-0", labels={"app": "db"}))]
        resolver = SelectorResolver()
        resolver.defer("NetworkPolicy/deny@shop", "shop", _make_placeholder({"app": "db"}, RelationshipType.NETWORK))

        [(_, edge)] = resolver.resolve(pods)
        assert edge.strength is Strength.WEAK

    def test_only_placeholders_can_be_deferred(self) -> None:
        with pytest.raises(ValueError):
            SelectorResolver().defer("Pod/a@shop", "shop", _make_candidate())


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class TestGraphAssembler:
    def test_same_object_twice_is_one_node(self) -> None:
        assembler = GraphAssembler()
        first = assembler.add_resource(_make_resource(labels={"v": "1"}))
        second = assembler.add_resource(_make_resource(labels={"v": "2"}))

        assert assembler.node_count == 1
        assert first is second
        assert second.labels == {"v": "1"}

    def test_same_candidate_twice_is_one_edge(self) -> None:
        assembler = GraphAssembler()
        assert assembler.add_candidate("Pod/api-0@shop", _make_candidate(reason="first"))
        assert not assembler.add_candidate("Pod/api-0@shop", _make_candidate(reason="second"))

        graph = assembler.build()
        assert graph.edge_count == 1
        assert graph.edges[0].reason == "first"
        assert len({e.id for e in graph.edges}) == graph.edge_count

    def test_unresolved_placeholder_cannot_be_added(self) -> None:
        with pytest.raises(ValueError):
            GraphAssembler().add_candidate("Service/api@shop", _make_placeholder({"app": "x"}))

    def test_reverse_edges_never_exceed_cap(self) -> None:
        assembler = GraphAssembler()
        for i in range(40):
            assembler.add_candidate(f"Pod/p{i}@shop", _make_candidate())

        added = assembler.synthesize_reverse_edges(max_edges=7)

        reverse = [e for e in assembler.edges() if e.metadata.get("reverse")]
        assert added == 7
        assert len(reverse) == 7
        assert assembler.reverse_edge_count == 7
        assert reverse[0].source == "ConfigMap/cfg@shop"
        assert reverse[0].metadata["inverseOf"] == "Pod/p0@shop->ConfigMap/cfg@shop:configMap"

    def test_reverse_edges_only_for_provider_types(self) -> None:
        assembler = GraphAssembler()
        assembler.add_candidate("Pod/p@shop", _make_candidate("Node/n", RelationshipType.SCHEDULING))
        assembler.add_candidate("Pod/p@shop", _make_candidate("ReplicaSet/r@shop", RelationshipType.OWNER))

        assert assembler.synthesize_reverse_edges(max_edges=50) == 0

    def test_synthesis_is_idempotent(self) -> None:
        assembler = GraphAssembler()
        assembler.add_candidate("Pod/p@shop", _make_candidate())
        assembler.synthesize_reverse_edges(max_edges=50)
        assembler.synthesize_reverse_edges(max_edges=50)

        assert assembler.edge_count == 2

    def test_missing_endpoints_become_unresolved_nodes(self) -> None:
        assembler = GraphAssembler()
        assembler.add_resource(_make_resource())
        assembler.add_candidate("Pod/api-0@shop", _make_candidate("ConfigMap/missing@shop"))

        assert assembler.materialize_missing_endpoints() == 1
        placeholder = assembler.get_node("ConfigMap/missing@shop")
        assert placeholder is not None
        assert placeholder.kind == "ConfigMap"
        assert placeholder.namespace == "shop"
        assert placeholder.status == {"unresolved": True}

    def test_refused_placeholders_take_their_edges_with_them(self) -> None:
        governor = PerformanceGovernor(GovernorConfig(max_nodes=2, max_cluster_scoped_nodes=0))
        assembler = GraphAssembler()
        pod = _make_resource()
        pod_id = "Pod/api-0@shop"
        assert governor.admit(pod)
        assembler.add_resource(pod)
        for target in ("ConfigMap/a@shop", "ConfigMap/b@shop", "Node/n1"):
            assembler.add_candidate(pod_id, _make_candidate(target))

        added = assembler.materialize_missing_endpoints(admit=governor.admit_id)

        assert added == 1
        assert {n.id for n in assembler.nodes()} == {pod_id, "ConfigMap/a@shop"}
        assert [e.target for e in assembler.edges()] == ["ConfigMap/a@shop"]
        assert governor.rejected == {"ConfigMap/b@shop", "Node/n1"}
        assert governor.reasons == ["max_nodes"]

    def test_drop_edges_touching(self) -> None:
        assembler = GraphAssembler()
        assembler.add_resource(_make_resource())
        assembler.add_candidate("Pod/api-0@shop", _make_candidate("ConfigMap/a@shop"))
        assembler.add_candidate("Pod/api-0@shop", _make_candidate("Secret/s@shop", RelationshipType.SECRET))

        assert assembler.drop_edges_touching({"Secret/s@shop"}) == 1
        assert assembler.drop_edges_touching(set()) == 0
        assert [e.target for e in assembler.edges()] == ["ConfigMap/a@shop"]

    def test_filter_graph_drops_dangling_edges(self) -> None:
        assembler = GraphAssembler()
        assembler.add_resource(_make_resource())
        assembler.add_resource(_make_resource(kind="ConfigMap", name="cfg"))
        assembler.add_resource(_make_resource(kind="Node", name="n"))
        assembler.add_candidate("Pod/api-0@shop", _make_candidate())
        assembler.add_candidate("Pod/api-0@shop", _make_candidate("Node/n", RelationshipType.SCHEDULING))
        graph = assembler.build({"namespace": "shop"})

        by_kind = filter_graph(graph, ["Pod", "ConfigMap"])
        by_type = filter_graph(graph, None, ["scheduling"])

        assert {n.kind for n in by_kind.nodes} == {"Pod", "ConfigMap"}
        assert [e.type.value for e in by_kind.edges] == ["configMap"]
        assert by_kind.metadata["filters"] == {"resourceTypes": ["ConfigMap", "Pod"], "dependencyTypes": []}
        assert by_type.node_count == 3
        assert [e.type.value for e in by_type.edges] == ["scheduling"]
        assert filter_graph(graph).metadata == {"namespace": "shop"}


# ---------------------------------------------------------------------------
# Governor
# ---------------------------------------------------------------------------


class TestPerformanceGovernor:
    def test_deadline_is_cooperative(self) -> None:
        clock = _FakeClock()
        governor = PerformanceGovernor(GovernorConfig(deadline_seconds=2.0), clock=clock)
        governor.start()

        assert not governor.expired()
        clock.now += 2.5
        assert governor.expired()
        assert governor.truncated
        assert governor.reasons == ["deadline"]
        assert governor.elapsed_seconds == pytest.approx(2.5)

    def test_admit_enforces_node_and_per_type_caps(self) -> None:
        governor = PerformanceGovernor(GovernorConfig(max_nodes=3, max_resources_per_type=2))

        results = [governor.admit(_make_resource(name=f"p{i}")) for i in range(3)]
        results.append(governor.admit(_make_resource(kind="ConfigMap", name="c")))
        results.append(governor.admit(_make_resource(kind="Secret", name="s")))

        assert results == [True, True, False, True, False]
        assert governor.reasons == ["max_resources_per_type", "max_nodes"]

    def test_cluster_scoped_cap(self) -> None:
        governor = PerformanceGovernor(GovernorConfig(max_cluster_scoped_nodes=1))
        node_a = parse_resource({"kind": "Node", "metadata": {"name": "a"}})
        node_b = parse_resource({"kind": "Node", "metadata": {"name": "b"}})

        assert governor.admit(node_a)
        assert not governor.admit(node_b)
        assert governor.admit(_make_resource())
        assert governor.reasons == [TruncationReason.MAX_CLUSTER_SCOPED_NODES.value]

    def test_rejected_objects_are_remembered(self) -> None:
        governor = PerformanceGovernor(GovernorConfig(max_nodes=1))

        assert governor.admit(_make_resource(name="p0"))
        assert not governor.admit(_make_resource(name="p1"))
        assert not governor.admit_id("ConfigMap/cfg@shop", cluster_scoped=False)

        assert governor.rejected == {"Pod/p1@shop", "ConfigMap/cfg@shop"}

    def test_cap_records_reason_once(self) -> None:
        governor = PerformanceGovernor(GovernorConfig())

        assert governor.cap([1, 2, 3], 5, TruncationReason.MAX_CRDS) == [1, 2, 3]
        assert not governor.truncated
        assert governor.cap([1, 2, 3], 2, TruncationReason.MAX_CRDS) == [1, 2]
        governor.cap([1, 2, 3], 1, TruncationReason.MAX_CRDS)
        assert governor.reasons == ["max_crds"]

    def test_describe_reports_effective_limits(self) -> None:
        described = PerformanceGovernor(GovernorConfig(max_nodes=42)).describe()
        assert described["maxNodes"] == 42
        assert described["deadlineSeconds"] == 10.0
