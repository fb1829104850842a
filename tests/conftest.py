"""Pytest configuration and shared fixtures for hopgraph tests.

The sample payloads mirror the frontend's test traceroutes, split into one
payload per address family as the backend returns them.
"""

import pytest

from hopgraph import ColorAssignment, PositionCalculator, TracerouteGraphGenerator


def _clean_node(ip, asn, rtt=111.11):
    return {
        "ip": ip,
        "asn": asn,
        "averageRtt": rtt,
        "lastUsed": 1111111.11,
        "averagePathLifespan": 111.11,
    }


def _full_node(ip, timeouts, asn, rtt=111.11):
    return {
        "id": {"ip": ip, "timeoutsSinceKnown": timeouts},
        "asn": asn,
        "averageRtt": rtt,
        "lastUsed": 1111111.11,
        "averagePathLifespan": 111.11,
    }


def _edge(start, end, coverage=0.5):
    return {
        "start": start,
        "end": end,
        "outboundCoverage": coverage,
        "totalTrafficCoverage": 0.2,
        "lastUsed": 1111111.11,
    }


def _hop(ip, timeouts=0):
    return {"ip": ip, "timeoutsSinceKnown": timeouts}


@pytest.fixture
def clean_ipv4_payload():
    """Clean IPv4 result: probe -> 4567 -> two 1111 hops."""
    return {
        "probeIps": ["101.15.19.7"],
        "nodes": [
            _clean_node("101.15.19.7", "1234", rtt=123.15),
            _clean_node("123.45.67.8", "4567"),
            _clean_node("111.11.11.1", "1111"),
            _clean_node("100.10.10.0", "1111"),
        ],
        "edges": [
            _edge("101.15.19.7", "123.45.67.8", 1.0),
            _edge("123.45.67.8", "111.11.11.1", 0.5),
            _edge("123.45.67.8", "100.10.10.0", 0.5),
        ],
    }


@pytest.fixture
def clean_ipv6_payload():
    """Clean IPv6 result: probe -> 1244 hop that fans out to two 1244 hops."""
    return {
        "probeIps": ["222.22.22.2"],
        "nodes": [
            _clean_node("222.22.22.2", "2222", rtt=222.22),
            _clean_node("bac.12.22.a", "1244"),
            _clean_node("112.22.11.7", "1244"),
            _clean_node("abc.de.fg.h", "1244"),
        ],
        "edges": [
            _edge("222.22.22.2", "bac.12.22.a", 1.0),
            _edge("bac.12.22.a", "112.22.11.7", 0.25),
            _edge("bac.12.22.a", "abc.de.fg.h", 0.75),
        ],
    }


@pytest.fixture
def full_ipv4_payload():
    """Full IPv4 result where the probe address recurs after one timeout."""
    return {
        "probeIds": [{"ip": "101.15.19.7"}],
        "nodes": [
            _full_node("101.15.19.7", 0, "1234"),
            _full_node("101.15.19.7", 1, "1234"),
            _full_node("123.45.67.8", 0, "4567"),
            _full_node("111.11.11.1", 0, "1111"),
            _full_node("100.10.10.0", 0, "1111"),
        ],
        "edges": [
            _edge(_hop("101.15.19.7"), _hop("101.15.19.7", 1), 1.0),
            _edge(_hop("101.15.19.7", 1), _hop("123.45.67.8"), 1.0),
            _edge(_hop("123.45.67.8"), _hop("111.11.11.1"), 0.5),
            _edge(_hop("123.45.67.8"), _hop("100.10.10.0"), 0.5),
        ],
    }


@pytest.fixture
def full_ipv6_payload():
    """Full IPv6 result with a timeout inside ASN 1244."""
    return {
        "probeIds": [{"ip": "222.22.22.2"}],
        "nodes": [
            _full_node("222.22.22.2", 0, "2222"),
            _full_node("bac.12.22.a", 0, "1244"),
            _full_node("112.22.11.7", 0, "1244"),
            _full_node("bac.12.22.a", 1, "1244"),
            _full_node("abc.de.fg.h", 0, "1244"),
        ],
        "edges": [
            _edge(_hop("222.22.22.2"), _hop("bac.12.22.a"), 1.0),
            _edge(_hop("bac.12.22.a"), _hop("112.22.11.7"), 0.5),
            _edge(_hop("bac.12.22.a"), _hop("bac.12.22.a", 1), 0.5),
            _edge(_hop("bac.12.22.a", 1), _hop("abc.de.fg.h"), 1.0),
        ],
    }


@pytest.fixture
def calculator():
    """PositionCalculator with the default unit cell and spacing."""
    return PositionCalculator()


@pytest.fixture
def two_colors():
    """Two-entry palette for exhaustion tests."""
    return ColorAssignment(["red", "blue"])


@pytest.fixture
def generator():
    """Default TracerouteGraphGenerator instance."""
    return TracerouteGraphGenerator()
