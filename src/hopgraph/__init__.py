"""
hopgraph - Traceroute graph construction and layout

Builds left-to-right layered graphs of traceroute hops, merging IPv4 and IPv6
paths and grouping hops by ASN as container boxes or colors.

Example:
    >>> from hopgraph import TracerouteGraphGenerator
    >>> generator = TracerouteGraphGenerator()
    >>> graph = generator.generate([ipv4_payload, ipv6_payload], mode="full")
    >>> graph.probe_id
    '101.15.19.7 / 222.22.22.2'

Debug Mode Example:
    >>> graph = generator.generate([payload], mode="clean", debug=True)
    >>> print(generator.get_trace().summary())
"""

from .edges import EdgeSelection, highlight_edge, style_edge, style_edges
from .errors import (
    CyclicGraphError,
    FetchError,
    HopGraphError,
    IncompleteMergeError,
    LayoutError,
    MalformedResponseError,
)
from .generator import TracerouteGraphGenerator, generate_graph
from .grouping import ColorAssignment, GroupedGraph, group_by_asn
from .layout import LayeredLayout, LayoutResult, NodeLayout
from .models import (
    ASNGroup,
    AsnMode,
    BoundingBox,
    EdgeRecord,
    MergedGraph,
    NodeRecord,
    PositionedNode,
    RenderedGraph,
    StyledEdge,
    TracerouteMode,
)
from .normalizer import (
    CleanPayload,
    FullPayload,
    MergeBarrier,
    Normalizer,
    ResponseParser,
    merge_graphs,
    normalize_response,
    parse_payload,
)
from .positioning import LayoutEngine, PositionCalculator
from .tracer import PipelineStage, PipelineTrace

__version__ = "0.3.0"

__all__ = [
    # Main API
    "TracerouteGraphGenerator",
    "generate_graph",
    # Models
    "NodeRecord",
    "EdgeRecord",
    "MergedGraph",
    "ASNGroup",
    "BoundingBox",
    "PositionedNode",
    "StyledEdge",
    "RenderedGraph",
    "TracerouteMode",
    "AsnMode",
    # Normalizer
    "ResponseParser",
    "Normalizer",
    "CleanPayload",
    "FullPayload",
    "MergeBarrier",
    "merge_graphs",
    "parse_payload",
    "normalize_response",
    # Grouping
    "ColorAssignment",
    "GroupedGraph",
    "group_by_asn",
    # Layout
    "LayeredLayout",
    "LayoutResult",
    "NodeLayout",
    "LayoutEngine",
    "PositionCalculator",
    # Edges
    "EdgeSelection",
    "highlight_edge",
    "style_edge",
    "style_edges",
    # Errors
    "HopGraphError",
    "MalformedResponseError",
    "FetchError",
    "IncompleteMergeError",
    "LayoutError",
    "CyclicGraphError",
    # Debug/Tracing
    "PipelineTrace",
    "PipelineStage",
]
