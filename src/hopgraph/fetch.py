"""
Concurrent per-address-family traceroute fetching.

A dual-stack destination such as ``"151.101.0.1 / 2a04:4e42::1"`` is split
into one request per address family. All requests are in flight at once;
each normalized result is deposited into a ``MergeBarrier`` as it arrives,
and the merged graph is produced only after every request has finished.

A failed family never turns into empty graph data. By default the first
failure is raised; with ``allow_partial=True`` failures are logged and the
families that did resolve are merged.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import aiohttp

from .errors import FetchError, HopGraphError
from .models import MergedGraph, TracerouteMode
from .normalizer import PROBE_SEPARATOR, MergeBarrier, normalize_response

logger = logging.getLogger(__name__)

TRACEROUTE_PATH = "/api/traceroute/{mode}"


def split_destination(destination: str) -> List[str]:
    """Split a dual-stack destination into one address per family."""
    addresses = [part.strip() for part in destination.split(PROBE_SEPARATOR.strip())]
    addresses = [address for address in addresses if address]
    if not addresses:
        raise ValueError(f"No destination address in {destination!r}")
    return addresses


class TracerouteClient:
    """
    Client for the measurement backend's traceroute endpoints.

    Can be used as an async context manager, in which case it owns its HTTP
    session. A session passed in by the caller is never closed here.

    Example:
        >>> async with TracerouteClient("http://localhost:8080") as client:
        ...     graph = await client.fetch_merged(6789, "151.101.0.1 / 2a04:4e42::1")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "TracerouteClient":
        await self._init_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _init_session(self) -> None:
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    def endpoint(self, mode: Union[str, TracerouteMode]) -> str:
        mode = TracerouteMode(mode)
        return self.base_url + TRACEROUTE_PATH.format(mode=mode.value)

    async def fetch_payload(
        self,
        probe_id: int,
        destination_ip: str,
        mode: Union[str, TracerouteMode] = TracerouteMode.FULL,
    ) -> Dict[str, Any]:
        """
        POST one per-family request and return the decoded JSON body.

        Raises:
            FetchError: On transport errors, timeouts, non-200 responses and
                bodies that are not JSON.
        """
        await self._init_session()
        body = {"probeId": int(probe_id), "destinationIp": destination_ip}

        try:
            async with self.session.post(self.endpoint(mode), json=body) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise FetchError(destination_ip, f"HTTP {resp.status}: {text[:200]}")
                return await resp.json()
        except aiohttp.ContentTypeError as e:
            raise FetchError(destination_ip, f"response is not JSON ({e.message})") from e
        except aiohttp.ClientError as e:
            raise FetchError(destination_ip, str(e) or type(e).__name__) from e
        except asyncio.TimeoutError as e:
            raise FetchError(destination_ip, f"timed out after {self.timeout}s") from e

    async def fetch_family(
        self,
        probe_id: int,
        destination_ip: str,
        mode: Union[str, TracerouteMode] = TracerouteMode.FULL,
    ) -> MergedGraph:
        payload = await self.fetch_payload(probe_id, destination_ip, mode)
        graph = normalize_response(payload, mode)
        logger.info(
            "Fetched %s traceroute for probe %s -> %s: %d nodes, %d edges",
            TracerouteMode(mode).value,
            probe_id,
            destination_ip,
            len(graph.nodes),
            len(graph.edges),
        )
        return graph

    async def fetch_merged(
        self,
        probe_id: int,
        destination: str,
        mode: Union[str, TracerouteMode] = TracerouteMode.FULL,
        allow_partial: bool = False,
    ) -> MergedGraph:
        """
        Fetch every address family of ``destination`` concurrently and merge.

        Args:
            probe_id: Source probe id.
            destination: One address, or several joined by " / ".
            mode: "clean" or "full".
            allow_partial: Merge the families that resolved even if others
                failed. At least one family must resolve.

        Raises:
            FetchError: If a family failed to fetch (and partial merges are not
                allowed), or if every family failed.
            MalformedResponseError: If a family's payload was malformed and
                partial merges are not allowed.
        """
        addresses = split_destination(destination)
        barrier = MergeBarrier(expected=len(addresses))

        async def run(slot: int, address: str) -> None:
            graph = await self.fetch_family(probe_id, address, mode)
            barrier.add(slot, graph)

        results = await asyncio.gather(
            *(run(slot, address) for slot, address in enumerate(addresses)),
            return_exceptions=True,
        )

        failures: List[HopGraphError] = []
        for address, result in zip(addresses, results):
            if result is None:
                continue
            if not isinstance(result, HopGraphError):
                raise result
            failures.append(result)
            logger.warning("Traceroute for %s failed: %s", address, result)

        if failures and (not allow_partial or barrier.received == 0):
            raise failures[0]

        return barrier.merge(allow_partial=allow_partial)


async def fetch_traceroute_graph(
    base_url: str,
    probe_id: int,
    destination: str,
    mode: Union[str, TracerouteMode] = TracerouteMode.FULL,
    allow_partial: bool = False,
    timeout: float = 10.0,
) -> MergedGraph:
    """Convenience coroutine: fetch and merge all families in one session."""
    async with TracerouteClient(base_url, timeout=timeout) as client:
        return await client.fetch_merged(
            probe_id, destination, mode=mode, allow_partial=allow_partial
        )
