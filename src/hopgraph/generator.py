"""
Main traceroute graph generator module.

Combines normalization, ASN grouping, layout and edge styling to turn raw
backend payloads into a graph the rendering layer can draw directly.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence, Union

from .config import EngineConfig
from .edges import highlight_edge, style_edges
from .grouping import ColorAssignment, group_by_asn
from .models import AsnMode, MergedGraph, RenderedGraph, TracerouteMode
from .normalizer import MergeBarrier, Normalizer, ResponseParser
from .positioning import LayoutEngine
from .tracer import PipelineTrace

logger = logging.getLogger(__name__)


class TracerouteGraphGenerator:
    """
    Generate positioned traceroute graphs from backend payloads.

    The generator owns the ``ColorAssignment`` for its session, so an ASN keeps
    its color across every graph generated by the same instance. Call
    ``reset_colors()`` to start a new session.

    Example:
        >>> generator = TracerouteGraphGenerator()
        >>> graph = generator.generate([ipv4_payload, ipv6_payload], mode="full")
        >>> graph.probe_id
        '101.15.19.7 / 222.22.22.2'
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        colors: Optional[ColorAssignment] = None,
    ):
        """
        Initialize the generator.

        Args:
            config: Engine settings; defaults apply when omitted.
            colors: Color table to share with other generators. A new table
                built from ``config.palette`` is used when omitted.
        """
        self.config = config or EngineConfig()
        self.colors = colors or ColorAssignment(self.config.palette)
        self.parser = ResponseParser()
        self.normalizer = Normalizer()
        self.layout_engine = LayoutEngine(self.config.position_calculator())
        self._trace: Optional[PipelineTrace] = None

    def generate(
        self,
        payloads: Sequence[Dict[str, Any]],
        mode: Union[str, TracerouteMode, None] = None,
        asn_mode: Union[str, AsnMode, None] = None,
        debug: bool = False,
    ) -> RenderedGraph:
        """
        Build a rendered graph from one payload per address family.

        Args:
            payloads: Decoded JSON payloads, in request order.
            mode: Payload shape; defaults to ``config.mode``.
            asn_mode: "box" or "color"; defaults to ``config.asn_mode``.
            debug: Record a ``PipelineTrace`` retrievable with ``get_trace()``.

        Raises:
            MalformedResponseError: If a payload lacks required fields.
            CyclicGraphError: If the merged graph cannot be layered.
        """
        mode = TracerouteMode(mode or self.config.mode)
        self._start_trace(debug, mode, asn_mode)

        barrier = MergeBarrier(expected=max(len(payloads), 1))
        for slot, raw in enumerate(payloads):
            graph = self.normalizer.normalize(self.parser.parse(raw, mode))
            barrier.add(slot, graph)
            self._record(
                "normalize",
                {
                    "slot": slot,
                    "probe_id": graph.probe_id,
                    "nodes": len(graph.nodes),
                    "edges": len(graph.edges),
                },
            )

        merged = barrier.merge()
        self._record(
            "merge",
            {
                "probe_id": merged.probe_id,
                "nodes": merged.node_ids(),
                "edges": len(merged.edges),
            },
        )
        return self._render(merged, asn_mode)

    def render(
        self,
        merged: MergedGraph,
        asn_mode: Union[str, AsnMode, None] = None,
        debug: bool = False,
    ) -> RenderedGraph:
        """Group, lay out and style an already merged graph."""
        self._start_trace(debug, None, asn_mode)
        return self._render(merged, asn_mode)

    def _render(
        self, merged: MergedGraph, asn_mode: Union[str, AsnMode, None]
    ) -> RenderedGraph:
        asn_mode = AsnMode(asn_mode or self.config.asn_mode)

        grouped = group_by_asn(merged, asn_mode, self.colors)
        self._record(
            "group",
            {
                "groups": [group.asn for group in grouped.groups],
                "ungrouped": grouped.ungrouped_ids(),
                "colors": self.colors.snapshot(),
            },
        )

        nodes, groups = self.layout_engine.layout(grouped)
        self._record(
            "rank",
            {node.id: (node.rank, node.order) for node in nodes},
        )
        self._record("position", {node.id: node.position for node in nodes})

        edges = list(style_edges(merged.edges))
        self._record("style", {edge.id: edge.label for edge in edges})

        logger.info(
            "Rendered graph for %s: %d nodes, %d edges, %d ASNs",
            merged.probe_id,
            len(nodes),
            len(edges),
            len(groups),
        )
        return RenderedGraph(
            probe_id=merged.probe_id,
            asn_mode=asn_mode,
            nodes=nodes,
            edges=edges,
            groups=groups,
        )

    def highlight(self, rendered: RenderedGraph, edge_id: str) -> RenderedGraph:
        """Return a copy of ``rendered`` with only ``edge_id`` highlighted."""
        records = highlight_edge([edge.edge for edge in rendered.edges], edge_id)
        return replace(rendered, edges=list(style_edges(records)))

    def reset_colors(self) -> None:
        self.colors.reset()

    def get_trace(self) -> Optional[PipelineTrace]:
        """Trace of the last run made with ``debug=True``, if any."""
        return self._trace

    def _start_trace(
        self,
        debug: bool,
        mode: Optional[TracerouteMode],
        asn_mode: Union[str, AsnMode, None],
    ) -> None:
        if not debug:
            self._trace = None
            return
        self._trace = PipelineTrace(
            mode=mode.value if mode else "",
            asn_mode=AsnMode(asn_mode or self.config.asn_mode).value,
        )

    def _record(self, name: str, data: Dict[str, Any]) -> None:
        if self._trace is not None:
            self._trace.add_stage(name, data)


def generate_graph(
    payloads: Sequence[Dict[str, Any]],
    mode: Union[str, TracerouteMode] = TracerouteMode.FULL,
    asn_mode: Union[str, AsnMode] = AsnMode.BOX,
) -> RenderedGraph:
    """Convenience function to generate a graph with default settings."""
    return TracerouteGraphGenerator().generate(payloads, mode=mode, asn_mode=asn_mode)
