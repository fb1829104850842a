"""
Edge styling and highlight state.

Derives presentation metadata from an ``EdgeRecord``:

- id: ``"{source_id}-{target_id}"`` using the disambiguated hop ids
- label: outbound coverage as a percentage, e.g. ``"50%"``
- stroke width: the outbound coverage itself

Edge records are immutable. Highlighting an edge returns a whole new edge
collection in which exactly that edge is highlighted, so no observer can ever
see two highlighted edges at once.
"""

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Sequence, Tuple

from .models import EdgeRecord, StyledEdge

logger = logging.getLogger(__name__)

LABEL_PRECISION = 6


def edge_id(edge: EdgeRecord) -> str:
    return f"{edge.source_id}-{edge.target_id}"


def edge_label(edge: EdgeRecord) -> str:
    """Format outbound coverage as a percentage label."""
    percent = round(edge.outbound_coverage * 100, LABEL_PRECISION)
    if float(percent).is_integer():
        return f"{int(percent)}%"
    return f"{percent}%"


def stroke_width(edge: EdgeRecord) -> float:
    return edge.outbound_coverage


def style_edge(edge: EdgeRecord) -> StyledEdge:
    return StyledEdge(edge=edge, label=edge_label(edge), stroke_width=stroke_width(edge))


def style_edges(edges: Iterable[EdgeRecord]) -> Tuple[StyledEdge, ...]:
    return tuple(style_edge(edge) for edge in edges)


def highlight_edge(
    edges: Sequence[EdgeRecord], selected_id: str
) -> Tuple[EdgeRecord, ...]:
    """
    Highlight one edge and clear every other highlight.

    Args:
        edges: Current edge collection.
        selected_id: Id of the clicked edge.

    Returns:
        A new tuple of edge records; ``edges`` is not modified.

    Raises:
        KeyError: If no edge has ``selected_id``.
    """
    if not any(edge_id(edge) == selected_id for edge in edges):
        raise KeyError(selected_id)
    return tuple(
        _with_highlight(edge, edge_id(edge) == selected_id) for edge in edges
    )


def clear_highlight(edges: Sequence[EdgeRecord]) -> Tuple[EdgeRecord, ...]:
    return tuple(_with_highlight(edge, False) for edge in edges)


def _with_highlight(edge: EdgeRecord, highlighted: bool) -> EdgeRecord:
    if edge.highlighted == highlighted:
        return edge
    return replace(edge, highlighted=highlighted)


class EdgeSelection:
    """
    Holds the current edge collection and swaps it on every click.

    Subscribers are called with the complete new collection after each
    change, never with a partially updated one.
    """

    def __init__(self, edges: Iterable[EdgeRecord]):
        self._edges: Tuple[EdgeRecord, ...] = clear_highlight(tuple(edges))
        self._subscribers: List[Callable[[Tuple[EdgeRecord, ...]], None]] = []

    @property
    def edges(self) -> Tuple[EdgeRecord, ...]:
        return self._edges

    @property
    def selected(self) -> Tuple[EdgeRecord, ...]:
        return tuple(edge for edge in self._edges if edge.highlighted)

    def subscribe(self, callback: Callable[[Tuple[EdgeRecord, ...]], None]) -> None:
        self._subscribers.append(callback)

    def click(self, selected_id: str) -> Tuple[EdgeRecord, ...]:
        self._replace(highlight_edge(self._edges, selected_id))
        logger.debug("Highlighted edge %s", selected_id)
        return self._edges

    def clear(self) -> Tuple[EdgeRecord, ...]:
        self._replace(clear_highlight(self._edges))
        return self._edges

    def styled(self) -> Tuple[StyledEdge, ...]:
        return style_edges(self._edges)

    def _replace(self, edges: Tuple[EdgeRecord, ...]) -> None:
        self._edges = edges
        for callback in self._subscribers:
            callback(edges)
