"""
Response normalization for traceroute payloads.

Turns raw backend payloads into canonical ``NodeRecord``/``EdgeRecord`` sets.
Parsing happens once at the ingestion boundary into one of two payload types:

- ``CleanPayload``: pre-aggregated data, hops are identified by IP alone.
- ``FullPayload``: raw observations, hops are identified by
  ``(ip, timeoutsSinceKnown)`` because the same IP recurs at different depths
  when intervening hops timed out.

Per-family graphs are combined by ``MergeBarrier``, which only yields a merged
graph once every expected address family has been deposited.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from .errors import IncompleteMergeError, MalformedResponseError
from .models import (
    TIMEOUT_LABEL,
    EdgeRecord,
    MergedGraph,
    NodeRecord,
    TracerouteMode,
)

logger = logging.getLogger(__name__)

PROBE_SEPARATOR = " / "


@dataclass(frozen=True)
class HopId:
    """Identity of a hop as reported by the backend."""

    ip: str
    timeouts_since_known: int = 0

    @property
    def node_id(self) -> str:
        if self.timeouts_since_known == 0:
            return self.ip
        return f"{self.ip}-{self.timeouts_since_known}"


@dataclass
class RawNode:
    hop: HopId
    asn: Optional[str] = None
    average_rtt: float = 0.0
    last_used: float = 0.0
    average_path_lifespan: float = 0.0


@dataclass
class RawEdge:
    start: HopId
    end: HopId
    outbound_coverage: float = 0.0
    total_traffic_coverage: float = 0.0
    last_used: float = 0.0


@dataclass
class CleanPayload:
    """Aggregated payload from ``/api/traceroute/clean``."""

    probe_ips: List[str] = field(default_factory=list)
    nodes: List[RawNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)


@dataclass
class FullPayload:
    """Per-observation payload from ``/api/traceroute/full``."""

    probe_ips: List[str] = field(default_factory=list)
    nodes: List[RawNode] = field(default_factory=list)
    edges: List[RawEdge] = field(default_factory=list)


Payload = Union[CleanPayload, FullPayload]


class ResponseParser:
    """Parses raw payload dicts into ``CleanPayload`` or ``FullPayload``."""

    def parse(self, raw: Dict[str, Any], mode: Union[str, TracerouteMode]) -> Payload:
        """
        Parse a decoded JSON payload.

        Args:
            raw: Decoded JSON object returned by the backend.
            mode: "clean" or "full".

        Returns:
            The parsed payload.

        Raises:
            MalformedResponseError: If ``nodes``, ``edges``, the probe list or a
                node's identity is missing.
        """
        mode = TracerouteMode(mode)
        if not isinstance(raw, dict):
            raise MalformedResponseError(
                "nodes", f"Traceroute response must be an object, got {type(raw)}"
            )

        # Checked up front so a missing field never degrades to an empty graph
        for required in ("nodes", "edges"):
            if raw.get(required) is None:
                raise MalformedResponseError(required)

        if mode is TracerouteMode.CLEAN:
            return CleanPayload(
                probe_ips=self._clean_probe_ips(raw),
                nodes=[self._clean_node(entry) for entry in raw["nodes"]],
                edges=[self._clean_edge(entry) for entry in raw["edges"]],
            )

        return FullPayload(
            probe_ips=self._full_probe_ips(raw),
            nodes=[self._full_node(entry) for entry in raw["nodes"]],
            edges=[self._full_edge(entry) for entry in raw["edges"]],
        )

    def _clean_probe_ips(self, raw: Dict[str, Any]) -> List[str]:
        if raw.get("probeIps") is not None:
            return [str(ip) for ip in raw["probeIps"]]
        if raw.get("probeIp"):
            return [str(raw["probeIp"])]
        raise MalformedResponseError("probeIps")

    def _full_probe_ips(self, raw: Dict[str, Any]) -> List[str]:
        if raw.get("probeIds") is not None:
            ips = []
            for probe in raw["probeIds"]:
                if not isinstance(probe, dict) or "ip" not in probe:
                    raise MalformedResponseError("probeIds.ip")
                ips.append(str(probe["ip"]))
            return ips
        if raw.get("probeIp"):
            return [str(raw["probeIp"])]
        raise MalformedResponseError("probeIds")

    def _clean_node(self, entry: Dict[str, Any]) -> RawNode:
        if not entry.get("ip"):
            raise MalformedResponseError("nodes.ip")
        return self._node(HopId(str(entry["ip"])), entry)

    def _full_node(self, entry: Dict[str, Any]) -> RawNode:
        return self._node(self._full_hop(entry.get("id"), "nodes.id"), entry)

    def _node(self, hop: HopId, entry: Dict[str, Any]) -> RawNode:
        return RawNode(
            hop=hop,
            asn=_asn(entry.get("asn")),
            average_rtt=float(entry.get("averageRtt", 0.0)),
            last_used=float(entry.get("lastUsed", 0.0)),
            average_path_lifespan=float(entry.get("averagePathLifespan", 0.0)),
        )

    def _clean_edge(self, entry: Dict[str, Any]) -> RawEdge:
        for endpoint in ("start", "end"):
            if not entry.get(endpoint):
                raise MalformedResponseError(f"edges.{endpoint}")
        return self._edge(HopId(str(entry["start"])), HopId(str(entry["end"])), entry)

    def _full_edge(self, entry: Dict[str, Any]) -> RawEdge:
        start = self._full_hop(entry.get("start"), "edges.start")
        end = self._full_hop(entry.get("end"), "edges.end")
        return self._edge(start, end, entry)

    def _edge(self, start: HopId, end: HopId, entry: Dict[str, Any]) -> RawEdge:
        return RawEdge(
            start=start,
            end=end,
            outbound_coverage=float(entry.get("outboundCoverage", 0.0)),
            total_traffic_coverage=float(entry.get("totalTrafficCoverage", 0.0)),
            last_used=float(entry.get("lastUsed", 0.0)),
        )

    def _full_hop(self, value: Any, field_name: str) -> HopId:
        if not isinstance(value, dict) or not value.get("ip"):
            raise MalformedResponseError(f"{field_name}.ip")
        # The backend has shipped both spellings of the counter
        timeouts = value.get("timeoutsSinceKnown", value.get("timeSinceKnown", 0))
        return HopId(str(value["ip"]), int(timeouts or 0))


def _asn(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class Normalizer:
    """Builds a ``MergedGraph`` for one address family from a parsed payload."""

    def normalize(self, payload: Payload) -> MergedGraph:
        """
        Resolve node identities and origin flags for one payload.

        Raises:
            MalformedResponseError: If an edge references a hop that is not in
                the payload's node list.
        """
        match payload:
            case FullPayload():
                nodes = [
                    self._full_node(raw, payload.probe_ips) for raw in payload.nodes
                ]
            case CleanPayload():
                nodes = [
                    self._clean_node(raw, payload.probe_ips) for raw in payload.nodes
                ]
            case _:
                raise TypeError(f"Unsupported payload type: {type(payload).__name__}")

        known_ids = {node.id for node in nodes}
        edges = [self._edge(raw, known_ids) for raw in payload.edges]

        logger.debug(
            "Normalized %s payload: %d nodes, %d edges",
            type(payload).__name__,
            len(nodes),
            len(edges),
        )
        return MergedGraph(
            probe_id=PROBE_SEPARATOR.join(payload.probe_ips),
            nodes=_unique_nodes(nodes),
            edges=_unique_edges(edges),
        )

    def _clean_node(self, raw: RawNode, probe_ips: List[str]) -> NodeRecord:
        return self._record(
            raw,
            node_id=raw.hop.ip,
            label=raw.hop.ip,
            is_origin=raw.hop.ip in probe_ips,
        )

    def _full_node(self, raw: RawNode, probe_ips: List[str]) -> NodeRecord:
        hop = raw.hop
        canonical = hop.timeouts_since_known == 0
        return self._record(
            raw,
            node_id=hop.node_id,
            label=hop.ip if canonical else TIMEOUT_LABEL,
            is_origin=canonical and hop.ip in probe_ips,
        )

    def _record(
        self, raw: RawNode, node_id: str, label: str, is_origin: bool
    ) -> NodeRecord:
        return NodeRecord(
            id=node_id,
            ip=raw.hop.ip,
            asn=raw.asn,
            average_rtt=raw.average_rtt,
            last_used=raw.last_used,
            average_path_lifespan=raw.average_path_lifespan,
            is_origin=is_origin,
            display_label=label,
            timeouts_since_known=raw.hop.timeouts_since_known,
        )

    def _edge(self, raw: RawEdge, known_ids: Set[str]) -> EdgeRecord:
        source_id = raw.start.node_id
        target_id = raw.end.node_id
        for endpoint in (source_id, target_id):
            if endpoint not in known_ids:
                raise MalformedResponseError(
                    "nodes",
                    f"Edge {source_id} -> {target_id} references unknown hop "
                    f"'{endpoint}'",
                )
        return EdgeRecord(
            source_id=source_id,
            target_id=target_id,
            outbound_coverage=raw.outbound_coverage,
            total_traffic_coverage=raw.total_traffic_coverage,
            last_used=raw.last_used,
        )


def _unique_nodes(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    """Keep the first record for each id."""
    seen: Set[str] = set()
    unique = []
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        unique.append(node)
    return unique


def _unique_edges(edges: Iterable[EdgeRecord]) -> List[EdgeRecord]:
    """Keep the first record for each (source, target) pair."""
    seen: Set[Tuple[str, str]] = set()
    unique = []
    for edge in edges:
        pair = (edge.source_id, edge.target_id)
        if pair in seen:
            continue
        seen.add(pair)
        unique.append(edge)
    return unique


class MergeBarrier:
    """
    Count-gated merge of per-address-family graphs.

    Each family is deposited into the slot matching its position in the
    request list, so the merged result does not depend on arrival order.
    Until every slot is filled, ``merge()`` refuses to produce a graph.

    Example:
        >>> barrier = MergeBarrier(expected=2)
        >>> barrier.add(1, ipv6_graph)
        >>> barrier.add(0, ipv4_graph)
        >>> barrier.merge().probe_id
        '101.15.19.7 / 222.22.22.2'
    """

    def __init__(self, expected: int):
        if expected < 1:
            raise ValueError("MergeBarrier needs at least one expected family")
        self.expected = expected
        self._slots: Dict[int, MergedGraph] = {}

    @property
    def received(self) -> int:
        return len(self._slots)

    @property
    def is_complete(self) -> bool:
        return len(self._slots) == self.expected

    def add(self, slot: int, graph: MergedGraph) -> bool:
        """
        Deposit one family's graph.

        Returns:
            True once every expected family has arrived.
        """
        if not 0 <= slot < self.expected:
            raise IndexError(f"Slot {slot} is outside 0..{self.expected - 1}")
        if slot in self._slots:
            raise ValueError(f"Slot {slot} was already filled")
        self._slots[slot] = graph
        logger.debug("Merge barrier received %d/%d", self.received, self.expected)
        return self.is_complete

    def merge(self, allow_partial: bool = False) -> MergedGraph:
        """
        Concatenate the deposited graphs in slot order.

        Args:
            allow_partial: Merge whatever has arrived instead of raising when
                some families are missing.

        Raises:
            IncompleteMergeError: If families are missing and ``allow_partial``
                is False.
        """
        if not self.is_complete and not allow_partial:
            raise IncompleteMergeError(
                f"Only {self.received} of {self.expected} address families resolved"
            )
        if not self._slots:
            raise IncompleteMergeError("No address family resolved")

        merged = merge_graphs(self._slots[slot] for slot in sorted(self._slots))
        logger.info(
            "Merged %d/%d address families for probe %s",
            self.received,
            self.expected,
            merged.probe_id,
        )
        return merged


def merge_graphs(graphs: Iterable[MergedGraph]) -> MergedGraph:
    """Append nodes and edges of each graph and join the probe ids.

    A hop or link seen by more than one family is kept once, as first seen.
    """
    probe_ids: List[str] = []
    nodes: List[NodeRecord] = []
    edges: List[EdgeRecord] = []
    for graph in graphs:
        if graph.probe_id:
            probe_ids.append(graph.probe_id)
        nodes.extend(graph.nodes)
        edges.extend(graph.edges)
    return MergedGraph(
        probe_id=PROBE_SEPARATOR.join(probe_ids),
        nodes=_unique_nodes(nodes),
        edges=_unique_edges(edges),
    )


def parse_payload(raw: Dict[str, Any], mode: Union[str, TracerouteMode]) -> Payload:
    """Convenience function to parse one raw payload."""
    return ResponseParser().parse(raw, mode)


def normalize_response(
    raw: Dict[str, Any], mode: Union[str, TracerouteMode]
) -> MergedGraph:
    """Convenience function to parse and normalize one raw payload."""
    return Normalizer().normalize(parse_payload(raw, mode))
