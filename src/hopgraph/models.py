"""
Data models for traceroute graph construction.

This module contains the dataclasses passed between the pipeline stages.
Records produced by one stage are never mutated by a later stage: hop and
edge records are frozen, and every change (grouping, highlighting, layout)
produces new objects.

Classes:
    TracerouteMode: Shape of the backend payload ("clean" or "full").
    AsnMode: How ASN membership is shown ("box" containers or "color").
    NodeRecord: One hop with a resolved, graph-unique id.
    EdgeRecord: One directed link between two hops.
    MergedGraph: Nodes and edges merged across address families.
    BoundingBox: Axis-aligned rectangle in layout coordinates.
    ASNGroup: Members of one ASN, plus container geometry in box mode.
    PositionedNode: A hop or container with its computed position.
    StyledEdge: An edge with its presentation metadata.
    RenderedGraph: The final output handed to the rendering layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

TIMEOUT_LABEL = "*"

SOURCE_POSITION = "right"
TARGET_POSITION = "left"


class TracerouteMode(str, Enum):
    """Payload shape returned by the measurement backend."""

    CLEAN = "clean"
    FULL = "full"


class AsnMode(str, Enum):
    """ASN presentation: nested container boxes or per-ASN colors."""

    BOX = "box"
    COLOR = "color"


@dataclass(frozen=True)
class NodeRecord:
    """
    A single hop in the merged graph.

    Attributes:
        id: Graph-unique id. The IP itself, or ``"{ip}-{n}"`` for a hop seen
            ``n`` timeouts after the last known hop.
        ip: The raw IP address reported for the hop.
        asn: Originating network, or None when unknown.
        average_rtt: Mean round-trip time (opaque to layout).
        last_used: Last time the hop was observed (opaque to layout).
        average_path_lifespan: Mean lifespan of paths through the hop.
        is_origin: Whether the hop is one of the probe's own addresses.
        display_label: Text shown on the node: the IP, or "*" for inferred hops.
        timeouts_since_known: Consecutive timeouts before this observation.
    """

    id: str
    ip: str
    asn: Optional[str] = None
    average_rtt: float = 0.0
    last_used: float = 0.0
    average_path_lifespan: float = 0.0
    is_origin: bool = False
    display_label: str = ""
    timeouts_since_known: int = 0

    @property
    def is_timeout(self) -> bool:
        return self.timeouts_since_known > 0


@dataclass(frozen=True)
class EdgeRecord:
    """
    A directed link between two hops.

    ``outbound_coverage`` is taken as supplied by the backend. Some payloads
    report it as a fraction and others as a percentage; it is never
    re-normalized.
    """

    source_id: str
    target_id: str
    outbound_coverage: float = 0.0
    total_traffic_coverage: float = 0.0
    last_used: float = 0.0
    highlighted: bool = False

    @property
    def id(self) -> str:
        return f"{self.source_id}-{self.target_id}"


@dataclass
class MergedGraph:
    """Nodes and edges for one search, merged across address families."""

    probe_id: str = ""
    nodes: List[NodeRecord] = field(default_factory=list)
    edges: List[EdgeRecord] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle; (x, y) is the top-left corner."""

    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, other: "BoundingBox") -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def overlaps(self, other: "BoundingBox") -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class ASNGroup:
    """
    All hops belonging to one ASN.

    Attributes:
        asn: The ASN shared by the members.
        container_id: Id of the synthetic container node (box mode).
        member_ids: Ids of the member hops.
        bounding_box: Container geometry, filled in by layout in box mode.
    """

    asn: str
    container_id: str
    member_ids: FrozenSet[str] = field(default_factory=frozenset)
    bounding_box: Optional[BoundingBox] = None

    @property
    def label(self) -> str:
        return f"AS{self.asn}"


@dataclass
class PositionedNode:
    """
    A hop or ASN container with its computed layout.

    Member positions are absolute layout coordinates, so a renderer can place
    every node without walking the container hierarchy.
    """

    id: str
    label: str
    node_type: str = "hop"
    record: Optional[NodeRecord] = None
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    rank: int = 0
    order: int = 0
    parent_group: Optional[str] = None
    style: Optional[str] = None
    source_position: str = SOURCE_POSITION
    target_position: str = TARGET_POSITION

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox(self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.node_type,
            "data": {"label": self.label},
            "position": {"x": self.x, "y": self.y},
            "width": self.width,
            "height": self.height,
            "sourcePosition": self.source_position,
            "targetPosition": self.target_position,
        }
        if self.record is not None:
            data["data"].update(
                {
                    "ip": self.record.ip,
                    "asn": self.record.asn,
                    "averageRtt": self.record.average_rtt,
                    "lastUsed": self.record.last_used,
                    "averagePathLifespan": self.record.average_path_lifespan,
                    "isOrigin": self.record.is_origin,
                }
            )
        if self.parent_group is not None:
            data["parentNode"] = self.parent_group
        if self.style is not None:
            data["style"] = {"background": self.style}
        return data


@dataclass(frozen=True)
class StyledEdge:
    """An edge record together with its presentation metadata."""

    edge: EdgeRecord
    label: str
    stroke_width: float

    @property
    def id(self) -> str:
        return self.edge.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.edge.source_id,
            "target": self.edge.target_id,
            "label": self.label,
            "style": {"strokeWidth": self.stroke_width},
            "highlighted": self.edge.highlighted,
        }


@dataclass
class RenderedGraph:
    """Positioned nodes and styled edges, ready for the rendering layer."""

    probe_id: str
    asn_mode: AsnMode
    nodes: List[PositionedNode] = field(default_factory=list)
    edges: List[StyledEdge] = field(default_factory=list)
    groups: List[ASNGroup] = field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[PositionedNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probeId": self.probe_id,
            "asnMode": self.asn_mode.value,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
