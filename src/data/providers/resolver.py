"""Failover endpoint resolver.

Selects a working RPC endpoint per network from an ordered candidate list,
validates it against the expected chain id and caches the result until it
is invalidated.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from web3 import AsyncWeb3, AsyncHTTPProvider

from config.settings import Settings, get_settings
from src.core.exceptions import ProviderUnavailable, UnsupportedNetwork
from src.core.models import ClientHandle, EndpointSet, FallbackStrategy
from src.protocols.aave.config import build_endpoint_sets

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, float], Any]


class ChainIdMismatch(Exception):
    """An endpoint answered for a different network than requested."""

    def __init__(self, endpoint: str, expected: int, actual: int):
        super().__init__(f"{endpoint} reports chain id {actual}, expected {expected}")
        self.endpoint = endpoint
        self.expected = expected
        self.actual = actual


def default_client_factory(endpoint: str, timeout: float) -> AsyncWeb3:
    """Build an AsyncWeb3 client bound to a single HTTP endpoint.

    Every HTTP request of the client is bounded by ``timeout`` seconds.
    """
    return AsyncWeb3(AsyncHTTPProvider(endpoint, request_kwargs={"timeout": timeout}))


class EndpointResolver:
    """Resolves a validated client handle per network with ordered failover."""

    def __init__(
        self,
        endpoint_sets: Optional[Mapping[int, EndpointSet]] = None,
        strategy: Optional[FallbackStrategy] = None,
        client_factory: Optional[ClientFactory] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the resolver.

        Args:
            endpoint_sets: Endpoint set per chain id (defaults to the Aave v3 networks)
            strategy: Order in which endpoints are tried
            client_factory: Callable building a client for (endpoint, timeout)
            settings: Application settings
        """
        self.settings = settings or get_settings()
        if endpoint_sets is None:
            endpoint_sets = build_endpoint_sets(self.settings.rpc_overrides)
        self._endpoint_sets: Dict[int, EndpointSet] = dict(endpoint_sets)
        self.strategy = strategy or FallbackStrategy(self.settings.provider_strategy)
        self._client_factory = client_factory or default_client_factory

        self._handles: Dict[int, ClientHandle] = {}
        self._cursors: Dict[int, int] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    # ========== LOOKUPS ==========

    def supported_networks(self) -> List[int]:
        """Chain ids with a configured endpoint set."""
        return sorted(self._endpoint_sets.keys())

    def get_endpoint_set(self, network_id: int) -> EndpointSet:
        """Get the endpoint set of a network.

        Raises:
            UnsupportedNetwork: If the network is not configured
        """
        try:
            return self._endpoint_sets[network_id]
        except KeyError:
            raise UnsupportedNetwork(network_id) from None

    def cached_networks(self) -> List[int]:
        """Chain ids that currently hold a cached handle."""
        return sorted(self._handles.keys())

    def _ordered_endpoints(self, endpoint_set: EndpointSet) -> List[str]:
        endpoints = list(endpoint_set.endpoints)
        if self.strategy != FallbackStrategy.ROUND_ROBIN or not endpoints:
            return endpoints
        start = self._cursors.get(endpoint_set.network_id, 0) % len(endpoints)
        self._cursors[endpoint_set.network_id] = start + 1
        return endpoints[start:] + endpoints[:start]

    # ========== RESOLUTION ==========

    async def resolve(
        self,
        network_id: int,
        timeout: Optional[float] = None,
        max_attempts_per_endpoint: Optional[int] = None,
        use_cache: bool = True,
    ) -> ClientHandle:
        """Return a validated client handle for a network.

        Args:
            network_id: Chain id to resolve
            timeout: Per-attempt timeout in seconds
            max_attempts_per_endpoint: Attempts before moving to the next endpoint
            use_cache: Reuse a previously validated handle when available

        Returns:
            ClientHandle bound to the first endpoint that validated

        Raises:
            UnsupportedNetwork: If the network is not configured
            ProviderUnavailable: If every endpoint failed
        """
        endpoint_set = self.get_endpoint_set(network_id)

        if use_cache and network_id in self._handles:
            return self._handles[network_id]

        lock = self._locks.setdefault(network_id, asyncio.Lock())
        async with lock:
            if use_cache and network_id in self._handles:
                return self._handles[network_id]
            handle = await self._resolve_uncached(
                endpoint_set,
                timeout if timeout is not None else self.settings.provider_timeout_seconds,
                max_attempts_per_endpoint or self.settings.provider_max_attempts,
            )
            self._handles[network_id] = handle
            return handle

    async def _resolve_uncached(
        self,
        endpoint_set: EndpointSet,
        timeout: float,
        max_attempts: int,
    ) -> ClientHandle:
        network_id = endpoint_set.network_id
        endpoints = self._ordered_endpoints(endpoint_set)
        if not endpoints:
            raise ProviderUnavailable(network_id)

        last_error: Optional[BaseException] = None
        attempts = 0
        for endpoint in endpoints:
            for attempt in range(1, max_attempts + 1):
                attempts += 1
                try:
                    web3 = self._client_factory(endpoint, timeout)
                    chain_id = await asyncio.wait_for(self._chain_id(web3), timeout=timeout)
                except Exception as e:
                    last_error = e
                    logger.warning(
                        f"Endpoint {endpoint} failed for network {network_id} "
                        f"(attempt {attempt}/{max_attempts}): {type(e).__name__}: {e}"
                    )
                    continue

                if chain_id != network_id:
                    last_error = ChainIdMismatch(endpoint, network_id, chain_id)
                    logger.warning(str(last_error))
                    break

                logger.info(f"Resolved network {network_id} ({endpoint_set.name}) to {endpoint}")
                return ClientHandle(network_id=network_id, endpoint=endpoint, web3=web3)

        raise ProviderUnavailable(network_id, last_error=last_error, attempts=attempts)

    @staticmethod
    async def _chain_id(web3: Any) -> int:
        chain_id = web3.eth.chain_id
        if inspect.isawaitable(chain_id):
            chain_id = await chain_id
        return int(chain_id)

    def invalidate(self, network_id: Optional[int] = None) -> None:
        """Drop cached handles so the next resolve re-runs failover.

        Args:
            network_id: Network to invalidate, or None for all networks
        """
        if network_id is None:
            self._handles.clear()
            logger.info("Cleared all cached endpoint handles")
        elif self._handles.pop(network_id, None) is not None:
            logger.info(f"Cleared cached endpoint handle for network {network_id}")

    # ========== DIAGNOSTICS ==========

    async def test_connection(self, network_id: int) -> Dict[str, Any]:
        """Resolve a network from scratch and report the latest block.

        Returns:
            Dict with network id, name, endpoint, block number and error (if any)
        """
        endpoint_set = self.get_endpoint_set(network_id)
        report: Dict[str, Any] = {
            "networkId": network_id,
            "name": endpoint_set.name,
            "success": False,
            "endpoint": None,
            "blockNumber": None,
            "error": None,
        }
        try:
            handle = await self.resolve(network_id, use_cache=False)
            block_number = handle.web3.eth.block_number
            if inspect.isawaitable(block_number):
                block_number = await block_number
            report.update(success=True, endpoint=handle.endpoint, blockNumber=int(block_number))
        except Exception as e:
            report["error"] = str(e)
        return report

    async def test_all_connections(self) -> List[Dict[str, Any]]:
        """Run test_connection against every configured network concurrently."""
        return list(await asyncio.gather(
            *(self.test_connection(network_id) for network_id in self.supported_networks())
        ))

    async def close(self) -> None:
        """Drop all cached handles."""
        self.invalidate()
