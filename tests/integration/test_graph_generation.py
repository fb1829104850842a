"""Integration tests for end-to-end traceroute graph generation."""

import json

import pytest

from hopgraph import (
    ColorAssignment,
    CyclicGraphError,
    MalformedResponseError,
    TracerouteGraphGenerator,
    generate_graph,
)
from hopgraph.config import EngineConfig
from hopgraph.export import to_dot, to_json


def _hops(graph):
    return [node for node in graph.nodes if node.node_type == "hop"]


class TestDualStackGeneration:
    """Merging IPv4 and IPv6 payloads into one graph."""

    def test_clean_merge(self, generator, clean_ipv4_payload, clean_ipv6_payload):
        graph = generator.generate(
            [clean_ipv4_payload, clean_ipv6_payload], mode="clean", asn_mode="color"
        )

        assert graph.probe_id == "101.15.19.7 / 222.22.22.2"
        assert len(_hops(graph)) == 8
        assert len(graph.edges) == 6

    def test_full_merge_ids_unique(self, generator, full_ipv4_payload, full_ipv6_payload):
        graph = generator.generate([full_ipv4_payload, full_ipv6_payload], mode="full")

        ids = [node.id for node in graph.nodes]
        assert len(ids) == len(set(ids))
        assert {"101.15.19.7-1", "bac.12.22.a-1"} <= set(ids)

    def test_origins(self, generator, full_ipv4_payload, full_ipv6_payload):
        graph = generator.generate([full_ipv4_payload, full_ipv6_payload], mode="full")

        origins = sorted(node.id for node in _hops(graph) if node.record.is_origin)
        assert origins == ["101.15.19.7", "222.22.22.2"]

    def test_every_edge_endpoint_exists(
        self, generator, full_ipv4_payload, full_ipv6_payload
    ):
        graph = generator.generate([full_ipv4_payload, full_ipv6_payload], mode="full")
        ids = {node.id for node in graph.nodes}

        for edge in graph.edges:
            assert edge.edge.source_id in ids
            assert edge.edge.target_id in ids


class TestBoxMode:
    """Container layout across both families."""

    def test_members_inside_containers(
        self, generator, full_ipv4_payload, full_ipv6_payload
    ):
        graph = generator.generate(
            [full_ipv4_payload, full_ipv6_payload], mode="full", asn_mode="box"
        )

        for group in graph.groups:
            container = graph.get_node(group.container_id)
            assert container.node_type == "asn"
            for member_id in group.member_ids:
                member = graph.get_node(member_id)
                assert member.parent_group == group.container_id
                assert container.bounding_box.contains(member.bounding_box)

    def test_edges_flow_left_to_right(self, generator, full_ipv4_payload):
        graph = generator.generate([full_ipv4_payload], mode="full", asn_mode="box")

        for edge in graph.edges:
            source = graph.get_node(edge.edge.source_id)
            target = graph.get_node(edge.edge.target_id)
            assert source.x < target.x

    def test_hops_do_not_overlap(self, generator, full_ipv4_payload, full_ipv6_payload):
        graph = generator.generate(
            [full_ipv4_payload, full_ipv6_payload], mode="full", asn_mode="box"
        )
        hops = _hops(graph)

        for i, first in enumerate(hops):
            for second in hops[i + 1 :]:
                assert not first.bounding_box.overlaps(second.bounding_box)


class TestColorMode:
    """Per-ASN coloring across generations."""

    def test_colors_stable_across_graphs(self, clean_ipv4_payload, clean_ipv6_payload):
        generator = TracerouteGraphGenerator(colors=ColorAssignment(["red", "blue"]))

        first = generator.generate([clean_ipv6_payload], mode="clean", asn_mode="color")
        second = generator.generate([clean_ipv4_payload], mode="clean", asn_mode="color")

        assert first.get_node("bac.12.22.a").style == "blue"
        # Palette wraps: the third ASN reuses the first color
        assert second.get_node("101.15.19.7").style == "red"
        assert generator.colors.color_for("1244") == "blue"

    def test_reset_colors(self, generator, clean_ipv4_payload):
        generator.generate([clean_ipv4_payload], mode="clean", asn_mode="color")
        generator.reset_colors()

        assert len(generator.colors) == 0

    def test_config_palette(self, clean_ipv4_payload):
        generator = TracerouteGraphGenerator(EngineConfig(palette=["#000000"]))

        graph = generator.generate([clean_ipv4_payload], mode="clean", asn_mode="color")

        assert {node.style for node in graph.nodes} == {"#000000"}


class TestHighlight:
    """Highlighting on a rendered graph."""

    def test_highlight_returns_copy(self, generator, full_ipv4_payload):
        graph = generator.generate([full_ipv4_payload], mode="full")

        highlighted = generator.highlight(graph, "123.45.67.8-100.10.10.0")

        assert not any(edge.edge.highlighted for edge in graph.edges)
        assert [e.id for e in highlighted.edges if e.edge.highlighted] == [
            "123.45.67.8-100.10.10.0"
        ]
        assert highlighted.nodes is graph.nodes


class TestDebugTrace:
    """Pipeline tracing."""

    def test_stages_recorded(self, generator, clean_ipv4_payload, clean_ipv6_payload):
        generator.generate(
            [clean_ipv4_payload, clean_ipv6_payload], mode="clean", debug=True
        )
        trace = generator.get_trace()

        assert [stage.name for stage in trace.stages] == [
            "normalize",
            "normalize",
            "merge",
            "group",
            "rank",
            "position",
            "style",
        ]
        assert trace.get_stage("merge").data["probe_id"] == "101.15.19.7 / 222.22.22.2"
        assert trace.get_stage("rank").data["101.15.19.7"] == (0, 0)
        assert "asn-1234" in trace.get_stage("position").data
        assert trace.mode == "clean"

    def test_no_trace_without_debug(self, generator, clean_ipv4_payload):
        generator.generate([clean_ipv4_payload], mode="clean")

        assert generator.get_trace() is None


class TestErrors:
    """Failures surface as typed errors."""

    def test_malformed_payload(self, generator, clean_ipv4_payload):
        del clean_ipv4_payload["edges"]

        with pytest.raises(MalformedResponseError):
            generator.generate([clean_ipv4_payload], mode="clean")

    def test_cycle(self, generator, clean_ipv4_payload):
        clean_ipv4_payload["edges"].append(
            {"start": "111.11.11.1", "end": "101.15.19.7", "outboundCoverage": 1.0}
        )

        with pytest.raises(CyclicGraphError):
            generator.generate([clean_ipv4_payload], mode="clean", asn_mode="color")


def test_generate_graph_exports(full_ipv4_payload, full_ipv6_payload):
    graph = generate_graph([full_ipv4_payload, full_ipv6_payload])

    data = json.loads(to_json(graph))
    dot = to_dot(graph)

    assert data["asnMode"] == "box"
    assert dot.count("subgraph cluster_") == len(graph.groups)
