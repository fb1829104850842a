"""
Exception types raised by the hopgraph pipeline.

Every stage raises synchronously to its immediate caller. Nothing in the
engine converts an error into an empty or default graph.
"""

from typing import List, Optional


class HopGraphError(Exception):
    """Base class for all hopgraph errors."""

    pass


class MalformedResponseError(HopGraphError):
    """Raised when a traceroute payload is missing a required field."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Traceroute response is missing '{field}'")


class FetchError(HopGraphError):
    """Raised when a per-family traceroute request fails in transport."""

    def __init__(self, destination_ip: str, message: str):
        self.destination_ip = destination_ip
        super().__init__(f"Fetch for {destination_ip} failed: {message}")


class IncompleteMergeError(HopGraphError):
    """Raised when a merged graph is requested before all families resolved."""

    pass


class LayoutError(HopGraphError):
    """Raised when the layout input is inconsistent (e.g. dangling edges)."""

    pass


class CyclicGraphError(LayoutError):
    """Raised when the layout input contains a directed cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Traceroute graph contains a cycle: {path}")
