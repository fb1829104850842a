"""
Layered layout using networkx for rank assignment.

Uses networkx for:
- Graph representation
- Cycle detection
- Topological sorting / rank assignment (longest path)
- Node ordering within ranks

Traceroute graphs are acyclic by construction, so there is no cycle breaking:
a cycle is reported as ``CyclicGraphError``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import networkx as nx

from .errors import CyclicGraphError, LayoutError

logger = logging.getLogger(__name__)

BARYCENTER_PASSES = 4


@dataclass
class NodeLayout:
    """Represents a node's layout information."""

    name: str
    rank: int = 0
    order: int = 0  # Position within rank
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


@dataclass
class LayoutResult:
    """Result of the layered layout algorithm."""

    nodes: Dict[str, NodeLayout] = field(default_factory=dict)
    ranks: List[List[str]] = field(default_factory=list)
    edges: List[Tuple[str, str]] = field(default_factory=list)


class LayeredLayout:
    """
    Sugiyama-style layered layout of a DAG.

    Ranks come from the longest path to each node, so every edge points to a
    strictly higher rank. Nodes within a rank are then ordered with the
    barycenter heuristic to reduce crossings.
    """

    def __init__(self, passes: int = BARYCENTER_PASSES):
        self.passes = passes
        self.graph: nx.DiGraph = None

    def layout(
        self,
        nodes: Sequence[str],
        edges: Iterable[Tuple[str, str]],
    ) -> LayoutResult:
        """
        Compute ranks and within-rank order.

        Args:
            nodes: Node ids. Their order is the tie-breaker for ordering, so
                the same input always produces the same layout.
            edges: (source, target) pairs between ids in ``nodes``.

        Returns:
            LayoutResult with rank and order for every node.

        Raises:
            LayoutError: If an edge references an unknown node.
            CyclicGraphError: If the graph contains a cycle.
        """
        edges = list(edges)
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(nodes)

        for source, target in edges:
            for endpoint in (source, target):
                if endpoint not in self.graph:
                    raise LayoutError(
                        f"Edge {source} -> {target} references unknown node "
                        f"'{endpoint}'"
                    )
        self.graph.add_edges_from(edges)

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = [source for source, _ in nx.find_cycle(self.graph)]
            raise CyclicGraphError(cycle)

        input_order = {node: idx for idx, node in enumerate(nodes)}
        ranks = self._assign_ranks(input_order)
        ranks = self._order_ranks(ranks)

        result = LayoutResult(ranks=ranks, edges=edges)
        for rank_idx, rank in enumerate(ranks):
            for order_idx, node in enumerate(rank):
                result.nodes[node] = NodeLayout(name=node, rank=rank_idx, order=order_idx)

        logger.debug("Layered %d nodes into %d ranks", len(result.nodes), len(ranks))
        return result

    def _assign_ranks(self, input_order: Dict[str, int]) -> List[List[str]]:
        """
        Assign nodes to ranks using the longest path method.
        """
        node_rank: Dict[str, int] = {}

        for node in nx.lexicographical_topological_sort(
            self.graph, key=lambda n: input_order[n]
        ):
            predecessors = list(self.graph.predecessors(node))
            if not predecessors:
                node_rank[node] = 0
            else:
                node_rank[node] = max(node_rank[p] for p in predecessors) + 1

        if not node_rank:
            return []

        ranks: List[List[str]] = [[] for _ in range(max(node_rank.values()) + 1)]
        for node in sorted(node_rank, key=lambda n: input_order[n]):
            ranks[node_rank[node]].append(node)

        return ranks

    def _order_ranks(self, ranks: List[List[str]]) -> List[List[str]]:
        """
        Order nodes within each rank to minimize edge crossings.
        Uses barycenter heuristic.
        """
        if len(ranks) <= 1:
            return ranks

        for _ in range(self.passes):
            # Forward pass
            for i in range(1, len(ranks)):
                ranks[i] = self._order_rank_by_barycenter(
                    ranks[i], ranks[i - 1], use_predecessors=True
                )

            # Backward pass
            for i in range(len(ranks) - 2, -1, -1):
                ranks[i] = self._order_rank_by_barycenter(
                    ranks[i], ranks[i + 1], use_predecessors=False
                )

        return ranks

    def _order_rank_by_barycenter(
        self,
        rank: List[str],
        ref_rank: List[str],
        use_predecessors: bool,
    ) -> List[str]:
        """
        Order nodes by barycenter (average position of connected nodes).
        """
        ref_positions = {node: i for i, node in enumerate(ref_rank)}
        current_positions = {node: i for i, node in enumerate(rank)}

        def barycenter(node: str) -> float:
            if use_predecessors:
                neighbors = self.graph.predecessors(node)
            else:
                neighbors = self.graph.successors(node)

            positions = [ref_positions[n] for n in neighbors if n in ref_positions]

            if not positions:
                # Keep current order for nodes with no connections to ref rank
                return current_positions[node]

            return sum(positions) / len(positions)

        # sorted() is stable, ties keep the current order
        return sorted(rank, key=barycenter)


def compute_layout(
    nodes: Sequence[str], edges: Iterable[Tuple[str, str]]
) -> LayoutResult:
    """Convenience function to run the layered layout."""
    return LayeredLayout().layout(nodes, edges)
