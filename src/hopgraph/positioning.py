"""
Position calculation for traceroute graph layout.

This module turns ranks and within-rank order into left-to-right coordinates:
- Ranks become columns, nodes within a rank stack vertically
- Every column is centered vertically against the tallest column
- ASN containers are sized from the bounding rectangle of their members

Box mode needs two layout scopes. Each ASN group is first laid out on its own
(members plus the edges between them), which fixes the container size. The
groups are then collapsed into one synthetic node each and laid out together
with the ungrouped hops; edges crossing group boundaries are kept in that
pass only to preserve hop order and are not drawn. A path that leaves a group
and comes back would close a loop between collapsed nodes, so ordering edges
are added in hop order and any edge that would close a loop is skipped.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

import networkx as nx

from .errors import CyclicGraphError, LayoutError
from .grouping import GroupedGraph, GroupedNode
from .layout import LayeredLayout, LayoutResult
from .models import ASNGroup, AsnMode, BoundingBox, PositionedNode

logger = logging.getLogger(__name__)

NODE_WIDTH = 150
NODE_HEIGHT = 40
HORIZONTAL_SPACING = 80
VERTICAL_SPACING = 30
GROUP_PADDING = 20

Size = Tuple[float, float]
Point = Tuple[float, float]


class PositionCalculator:
    """
    Calculates left-to-right positions from a layered layout.

    Attributes:
        node_width: Width of a hop node (the unit cell).
        node_height: Height of a hop node.
        horizontal_spacing: Gap between adjacent columns.
        vertical_spacing: Gap between nodes stacked in one column.
        group_padding: Margin between a container border and its members.
    """

    def __init__(
        self,
        node_width: float = NODE_WIDTH,
        node_height: float = NODE_HEIGHT,
        horizontal_spacing: float = HORIZONTAL_SPACING,
        vertical_spacing: float = VERTICAL_SPACING,
        group_padding: float = GROUP_PADDING,
    ):
        self.node_width = node_width
        self.node_height = node_height
        self.horizontal_spacing = horizontal_spacing
        self.vertical_spacing = vertical_spacing
        self.group_padding = group_padding

    @property
    def node_size(self) -> Size:
        return (self.node_width, self.node_height)

    def calculate_positions(
        self,
        layout_result: LayoutResult,
        sizes: Optional[Dict[str, Size]] = None,
    ) -> Dict[str, Point]:
        """
        Calculate x,y positions for each node, flowing left to right.

        Ranks become columns, nodes within a rank stack vertically.

        Args:
            layout_result: The layout result from the layered layout.
            sizes: Optional per-node (width, height); defaults to the unit cell.

        Returns:
            Dictionary mapping node ids to (x, y) of their top-left corner.
        """
        sizes = sizes or {}
        positions: Dict[str, Point] = {}

        column_widths: List[float] = []
        column_heights: List[List[float]] = []

        for rank in layout_result.ranks:
            max_width = 0
            heights = []
            for node_id in rank:
                width, height = sizes.get(node_id, self.node_size)
                max_width = max(max_width, width)
                heights.append(height)
            column_widths.append(max_width)
            column_heights.append(heights)

        # Calculate cumulative x positions (left edge of each column)
        x_positions: List[float] = [0]
        for width in column_widths[:-1]:
            x_positions.append(x_positions[-1] + width + self.horizontal_spacing)

        # Calculate total height of each column
        column_totals = []
        for heights in column_heights:
            if heights:
                total = sum(heights) + self.vertical_spacing * (len(heights) - 1)
            else:
                total = 0
            column_totals.append(total)

        max_column_height = max(column_totals) if column_totals else 0

        for rank_idx, rank in enumerate(layout_result.ranks):
            heights = column_heights[rank_idx]

            # Center this column vertically
            current_y = (max_column_height - column_totals[rank_idx]) / 2

            for order_idx, node_id in enumerate(rank):
                positions[node_id] = (x_positions[rank_idx], current_y)
                current_y += heights[order_idx] + self.vertical_spacing

        return positions

    def calculate_group_bounding_box(
        self,
        positions: Dict[str, Point],
        sizes: Optional[Dict[str, Size]] = None,
    ) -> BoundingBox:
        """
        Calculate the container rectangle around a set of member positions.

        The rectangle is the bounding box of all members, grown by
        ``group_padding`` on every side.
        """
        sizes = sizes or {}
        if not positions:
            return BoundingBox(0, 0, 2 * self.group_padding, 2 * self.group_padding)

        min_x = min_y = float("inf")
        max_x = max_y = float("-inf")
        for node_id, (x, y) in positions.items():
            width, height = sizes.get(node_id, self.node_size)
            min_x = min(min_x, x)
            min_y = min(min_y, y)
            max_x = max(max_x, x + width)
            max_y = max(max_y, y + height)

        return BoundingBox(
            x=min_x - self.group_padding,
            y=min_y - self.group_padding,
            width=(max_x - min_x) + 2 * self.group_padding,
            height=(max_y - min_y) + 2 * self.group_padding,
        )


class LayoutEngine:
    """
    Positions a grouped traceroute graph.

    Color mode runs one layered layout over every hop. Box mode runs the
    two-scope layout described in the module docstring.
    """

    def __init__(
        self,
        calculator: Optional[PositionCalculator] = None,
        layered: Optional[LayeredLayout] = None,
    ):
        self.calculator = calculator or PositionCalculator()
        self.layered = layered or LayeredLayout()

    def layout(
        self, grouped: GroupedGraph
    ) -> Tuple[List[PositionedNode], List[ASNGroup]]:
        """
        Compute positions for every hop (and container in box mode).

        Returns:
            Positioned nodes (containers before their members) and the ASN
            groups, with bounding boxes filled in box mode.

        Raises:
            CyclicGraphError: If the hop graph contains a cycle.
        """
        if grouped.mode is AsnMode.BOX and grouped.groups:
            return self._layout_boxes(grouped)
        return self._layout_flat(grouped), list(grouped.groups)

    def _layout_flat(self, grouped: GroupedGraph) -> List[PositionedNode]:
        node_ids = [node.id for node in grouped.nodes]
        edges = [(edge.source_id, edge.target_id) for edge in grouped.edges]

        result = self.layered.layout(node_ids, edges)
        positions = self.calculator.calculate_positions(result)

        return [
            self._hop(node, result, positions[node.id]) for node in grouped.nodes
        ]

    def _layout_boxes(
        self, grouped: GroupedGraph
    ) -> Tuple[List[PositionedNode], List[ASNGroup]]:
        # Pass 1: each group on its own
        inner_results: Dict[str, LayoutResult] = {}
        offsets: Dict[str, Point] = {}
        sizes: Dict[str, Size] = {}

        for group in grouped.groups:
            member_ids = [n.id for n in grouped.nodes if n.id in group.member_ids]
            inner_edges = [
                (edge.source_id, edge.target_id)
                for edge in grouped.edges
                if edge.source_id in group.member_ids
                and edge.target_id in group.member_ids
            ]
            result = self.layered.layout(member_ids, inner_edges)
            positions = self.calculator.calculate_positions(result)
            box = self.calculator.calculate_group_bounding_box(positions)

            inner_results[group.container_id] = result
            sizes[group.container_id] = (box.width, box.height)
            for node_id, (x, y) in positions.items():
                offsets[node_id] = (x - box.x, y - box.y)

        # Pass 2: groups collapsed into synthetic nodes
        top_ids, top_edges = self._collapse(grouped)
        top_result = self.layered.layout(top_ids, top_edges)
        top_positions = self.calculator.calculate_positions(top_result, sizes)

        logger.debug(
            "Box layout: %d groups, %d top-level nodes, %d invisible edges",
            len(grouped.groups),
            len(top_ids),
            len(top_edges),
        )

        positioned: List[PositionedNode] = []
        groups: List[ASNGroup] = []
        for group in grouped.groups:
            x, y = top_positions[group.container_id]
            width, height = sizes[group.container_id]
            box = BoundingBox(x, y, width, height)
            groups.append(replace(group, bounding_box=box))

            top_layout = top_result.nodes[group.container_id]
            positioned.append(
                PositionedNode(
                    id=group.container_id,
                    label=group.label,
                    node_type="asn",
                    x=x,
                    y=y,
                    width=width,
                    height=height,
                    rank=top_layout.rank,
                    order=top_layout.order,
                )
            )

        for node in grouped.nodes:
            if node.parent_group is None:
                positioned.append(
                    self._hop(node, top_result, top_positions[node.id])
                )
                continue
            container_x, container_y = top_positions[node.parent_group]
            offset_x, offset_y = offsets[node.id]
            positioned.append(
                self._hop(
                    node,
                    inner_results[node.parent_group],
                    (container_x + offset_x, container_y + offset_y),
                )
            )

        return positioned, groups

    def _collapse(
        self, grouped: GroupedGraph
    ) -> Tuple[List[str], List[Tuple[str, str]]]:
        """
        Build the top-level graph: one node per group plus ungrouped hops.

        Edges inside a group disappear. Edges across groups are kept once,
        except an edge that would close a loop between collapsed nodes.
        """
        top_of: Dict[str, str] = {}
        top_ids: List[str] = []
        for node in grouped.nodes:
            top_id = node.parent_group or node.id
            top_of[node.id] = top_id
            if top_id not in top_ids:
                top_ids.append(top_id)

        hop_order = self._hop_order(grouped)
        hop_edges = sorted(
            ((edge.source_id, edge.target_id) for edge in grouped.edges),
            key=lambda pair: (hop_order[pair[0]], hop_order[pair[1]]),
        )

        top = nx.DiGraph()
        top.add_nodes_from(top_ids)
        skipped = 0
        for source, target in hop_edges:
            pair = (top_of[source], top_of[target])
            if pair[0] == pair[1] or top.has_edge(*pair):
                continue
            if nx.has_path(top, pair[1], pair[0]):
                skipped += 1
                continue
            top.add_edge(*pair)

        if skipped:
            logger.debug("Skipped %d ordering edges re-entering a group", skipped)
        return top_ids, list(top.edges)

    def _hop_order(self, grouped: GroupedGraph) -> Dict[str, int]:
        """Topological index of every hop; raises on a real cycle."""
        node_ids = [node.id for node in grouped.nodes]
        graph = nx.DiGraph()
        graph.add_nodes_from(node_ids)
        for edge in grouped.edges:
            for endpoint in (edge.source_id, edge.target_id):
                if endpoint not in graph:
                    raise LayoutError(
                        f"Edge {edge.id} references unknown node '{endpoint}'"
                    )
            graph.add_edge(edge.source_id, edge.target_id)

        if not nx.is_directed_acyclic_graph(graph):
            raise CyclicGraphError([source for source, _ in nx.find_cycle(graph)])

        input_order = {node_id: idx for idx, node_id in enumerate(node_ids)}
        return {
            node_id: idx
            for idx, node_id in enumerate(
                nx.lexicographical_topological_sort(graph, key=input_order.get)
            )
        }

    def _hop(
        self, node: GroupedNode, result: LayoutResult, position: Point
    ) -> PositionedNode:
        node_layout = result.nodes[node.id]
        return PositionedNode(
            id=node.id,
            label=node.record.display_label,
            record=node.record,
            x=position[0],
            y=position[1],
            width=self.calculator.node_width,
            height=self.calculator.node_height,
            rank=node_layout.rank,
            order=node_layout.order,
            parent_group=node.parent_group,
            style=node.style,
        )


def layout_graph(
    grouped: GroupedGraph, calculator: Optional[PositionCalculator] = None
) -> Tuple[List[PositionedNode], List[ASNGroup]]:
    """Convenience function to position a grouped graph."""
    return LayoutEngine(calculator=calculator).layout(grouped)
