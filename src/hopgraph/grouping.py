"""
ASN grouping and color assignment.

Partitions the hops of a merged graph by ASN. In box mode every ASN becomes a
synthetic container node and its members point at it through
``parent_group``. In color mode there are no containers; each member is
styled with the color assigned to its ASN.

Colors come from an explicit ``ColorAssignment`` object owned by the caller.
The first time an ASN is seen it takes the next palette entry; once the
palette is exhausted the cursor wraps around, so distinct ASNs may share a
color.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from .models import ASNGroup, AsnMode, EdgeRecord, MergedGraph, NodeRecord

logger = logging.getLogger(__name__)

DEFAULT_PALETTE = (
    "#8ecae6",
    "#90be6d",
    "#f9c74f",
    "#f4a261",
    "#e76f51",
    "#b5179e",
    "#9aa0a6",
    "#43aa8b",
)

CONTAINER_PREFIX = "asn-"


def container_id_for(asn: str) -> str:
    return f"{CONTAINER_PREFIX}{asn}"


class ColorAssignment:
    """
    Session-scoped ``asn -> color`` table backed by an ordered palette.

    Assignment is first-seen-wins and idempotent: asking again for a known
    ASN returns the color it already has. Appends are serialized so callers
    sharing one table cannot allocate two colors for the same ASN.
    """

    def __init__(self, palette: Optional[Sequence[str]] = None):
        palette = tuple(palette) if palette is not None else DEFAULT_PALETTE
        if not palette:
            raise ValueError("Color palette must contain at least one color")
        self.palette = palette
        self._table: Dict[str, str] = {}
        self._cursor = 0
        self._lock = threading.Lock()

    def color_for(self, asn: str) -> str:
        with self._lock:
            color = self._table.get(asn)
            if color is None:
                color = self.palette[self._cursor % len(self.palette)]
                self._cursor += 1
                if self._cursor > len(self.palette):
                    logger.debug("Palette exhausted, AS%s reuses %s", asn, color)
                self._table[asn] = color
            return color

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._table)

    def reset(self) -> None:
        with self._lock:
            self._table.clear()
            self._cursor = 0

    def __contains__(self, asn: str) -> bool:
        return asn in self._table

    def __len__(self) -> int:
        return len(self._table)


@dataclass
class GroupedNode:
    """A hop annotated with its ASN container (box) or color (color)."""

    record: NodeRecord
    parent_group: Optional[str] = None
    style: Optional[str] = None

    @property
    def id(self) -> str:
        return self.record.id


@dataclass
class GroupedGraph:
    """
    Output of ASN grouping.

    Attributes:
        probe_id: Merged probe id carried through from normalization.
        mode: ASN presentation mode.
        nodes: Annotated hops, in the order of the merged graph.
        edges: Edge records, unchanged.
        groups: One entry per distinct ASN, in first-seen order.
    """

    probe_id: str
    mode: AsnMode
    nodes: List[GroupedNode] = field(default_factory=list)
    edges: List[EdgeRecord] = field(default_factory=list)
    groups: List[ASNGroup] = field(default_factory=list)

    def group_of(self, node_id: str) -> Optional[ASNGroup]:
        for node in self.nodes:
            if node.id == node_id and node.parent_group is not None:
                for group in self.groups:
                    if group.container_id == node.parent_group:
                        return group
        return None

    def ungrouped_ids(self) -> List[str]:
        return [node.id for node in self.nodes if node.parent_group is None]


def group_by_asn(
    graph: MergedGraph,
    mode: Union[str, AsnMode],
    colors: Optional[ColorAssignment] = None,
) -> GroupedGraph:
    """
    Annotate every hop with its ASN group.

    Args:
        graph: Merged graph from the normalizer.
        mode: "box" for containers, "color" for per-ASN colors.
        colors: Color table to draw from in color mode. A fresh table with the
            default palette is used when omitted.

    Returns:
        A new ``GroupedGraph``; ``graph`` is left untouched.
    """
    mode = AsnMode(mode)
    if mode is AsnMode.COLOR and colors is None:
        colors = ColorAssignment()

    members: Dict[str, List[str]] = {}
    for node in graph.nodes:
        if node.asn:
            members.setdefault(node.asn, []).append(node.id)

    groups = [
        ASNGroup(asn=asn, container_id=container_id_for(asn), member_ids=frozenset(ids))
        for asn, ids in members.items()
    ]

    nodes = []
    for node in graph.nodes:
        if not node.asn:
            nodes.append(GroupedNode(record=node))
        elif mode is AsnMode.BOX:
            parent = container_id_for(node.asn)
            nodes.append(GroupedNode(record=node, parent_group=parent))
        else:
            nodes.append(GroupedNode(record=node, style=colors.color_for(node.asn)))

    logger.debug(
        "Grouped %d nodes into %d ASNs (%s mode)", len(nodes), len(groups), mode.value
    )
    return GroupedGraph(
        probe_id=graph.probe_id,
        mode=mode,
        nodes=nodes,
        edges=list(graph.edges),
        groups=groups,
    )
