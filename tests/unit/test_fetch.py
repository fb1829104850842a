"""Unit tests for concurrent per-family fetching."""

import asyncio

import aiohttp
import pytest
from aioresponses import CallbackResult, aioresponses

from hopgraph.errors import FetchError, MalformedResponseError
from hopgraph.fetch import TracerouteClient, fetch_traceroute_graph, split_destination

BASE_URL = "http://backend.test"
FULL_URL = f"{BASE_URL}/api/traceroute/full"
CLEAN_URL = f"{BASE_URL}/api/traceroute/clean"
DUAL_STACK = "151.101.0.1 / 2a04:4e42::1"


def _respond(payloads, failing=()):
    """Answer each request with the payload for its destinationIp."""
    requests = []

    def callback(url, **kwargs):
        destination = kwargs["json"]["destinationIp"]
        requests.append(kwargs["json"])
        if destination in failing:
            return CallbackResult(status=500, body="backend exploded")
        return CallbackResult(payload=payloads[destination])

    return callback, requests


@pytest.fixture
def family_payloads(full_ipv4_payload, full_ipv6_payload):
    return {"151.101.0.1": full_ipv4_payload, "2a04:4e42::1": full_ipv6_payload}


class TestSplitDestination:
    """Tests for split_destination."""

    def test_single(self):
        assert split_destination("151.101.0.1") == ["151.101.0.1"]

    def test_dual_stack(self):
        assert split_destination(DUAL_STACK) == ["151.101.0.1", "2a04:4e42::1"]

    def test_empty(self):
        with pytest.raises(ValueError):
            split_destination(" / ")


class TestTracerouteClient:
    """Tests for TracerouteClient."""

    def test_endpoint(self):
        client = TracerouteClient(BASE_URL + "/")

        assert client.endpoint("clean") == CLEAN_URL
        assert client.endpoint("full") == FULL_URL

    @pytest.mark.asyncio
    async def test_request_body(self, clean_ipv4_payload):
        callback, requests = _respond({"151.101.0.1": clean_ipv4_payload})
        with aioresponses() as m:
            m.post(CLEAN_URL, callback=callback)
            async with TracerouteClient(BASE_URL) as client:
                payload = await client.fetch_payload("6789", "151.101.0.1", "clean")

        assert requests == [{"probeId": 6789, "destinationIp": "151.101.0.1"}]
        assert payload["probeIps"] == ["101.15.19.7"]

    @pytest.mark.asyncio
    async def test_http_error(self):
        with aioresponses() as m:
            m.post(FULL_URL, status=500, body="boom")
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch_payload(1, "151.101.0.1")

        assert exc_info.value.destination_ip == "151.101.0.1"
        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        with aioresponses() as m:
            m.post(FULL_URL, status=200, body="<html></html>", content_type="text/html")
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(FetchError):
                    await client.fetch_payload(1, "151.101.0.1")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        with aioresponses() as m:
            m.post(FULL_URL, exception=aiohttp.ClientConnectionError("refused"))
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch_payload(1, "151.101.0.1")

        assert "refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        with aioresponses() as m:
            m.post(FULL_URL, exception=asyncio.TimeoutError())
            async with TracerouteClient(BASE_URL, timeout=0.5) as client:
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch_payload(1, "151.101.0.1")

        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_external_session_not_closed(self):
        async with aiohttp.ClientSession() as session:
            async with TracerouteClient(BASE_URL, session=session):
                pass

            assert not session.closed


class TestFetchMerged:
    """Tests for the concurrent multi-family merge."""

    @pytest.mark.asyncio
    async def test_dual_stack_merged(self, family_payloads):
        callback, requests = _respond(family_payloads)
        with aioresponses() as m:
            m.post(FULL_URL, callback=callback, repeat=True)
            async with TracerouteClient(BASE_URL) as client:
                merged = await client.fetch_merged(6789, DUAL_STACK)

        assert len(requests) == 2
        # Probe ids come from the payloads, in destination order
        assert merged.probe_id == "101.15.19.7 / 222.22.22.2"
        assert merged.node_ids()[:2] == ["101.15.19.7", "101.15.19.7-1"]
        assert len(merged.node_ids()) == len(set(merged.node_ids()))

    @pytest.mark.asyncio
    async def test_failed_family_aborts(self, family_payloads):
        callback, _ = _respond(family_payloads, failing={"2a04:4e42::1"})
        with aioresponses() as m:
            m.post(FULL_URL, callback=callback, repeat=True)
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(FetchError) as exc_info:
                    await client.fetch_merged(6789, DUAL_STACK)

        assert exc_info.value.destination_ip == "2a04:4e42::1"

    @pytest.mark.asyncio
    async def test_partial_merge_when_allowed(self, family_payloads, caplog):
        callback, _ = _respond(family_payloads, failing={"2a04:4e42::1"})
        with aioresponses() as m:
            m.post(FULL_URL, callback=callback, repeat=True)
            async with TracerouteClient(BASE_URL) as client:
                merged = await client.fetch_merged(6789, DUAL_STACK, allow_partial=True)

        assert merged.probe_id == "101.15.19.7"
        assert "2a04:4e42::1" in caplog.text

    @pytest.mark.asyncio
    async def test_all_families_failed(self, family_payloads):
        callback, _ = _respond(family_payloads, failing=set(family_payloads))
        with aioresponses() as m:
            m.post(FULL_URL, callback=callback, repeat=True)
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(FetchError):
                    await client.fetch_merged(6789, DUAL_STACK, allow_partial=True)

    @pytest.mark.asyncio
    async def test_malformed_family_raises(self, family_payloads):
        family_payloads["2a04:4e42::1"] = {"probeIds": [], "edges": []}
        callback, _ = _respond(family_payloads)
        with aioresponses() as m:
            m.post(FULL_URL, callback=callback, repeat=True)
            async with TracerouteClient(BASE_URL) as client:
                with pytest.raises(MalformedResponseError) as exc_info:
                    await client.fetch_merged(6789, DUAL_STACK)

        assert exc_info.value.field == "nodes"


@pytest.mark.asyncio
async def test_fetch_traceroute_graph(clean_ipv4_payload):
    callback, _ = _respond({"151.101.0.1": clean_ipv4_payload})
    with aioresponses() as m:
        m.post(CLEAN_URL, callback=callback)
        merged = await fetch_traceroute_graph(BASE_URL, 6789, "151.101.0.1", mode="clean")

    assert merged.probe_id == "101.15.19.7"
    assert len(merged.nodes) == 4
