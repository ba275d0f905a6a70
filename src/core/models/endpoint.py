"""Endpoint set data models used by the endpoint resolver."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class FallbackStrategy(Enum):
    """Order in which a network's endpoints are tried."""

    SEQUENTIAL = "sequential"
    ROUND_ROBIN = "round_robin"


@dataclass(frozen=True)
class AaveContracts:
    """Well-known Aave v3 contract addresses on one network."""

    pool_addresses_provider: str


@dataclass(frozen=True)
class EndpointSet:
    """Ordered candidate RPC endpoints plus protocol contracts for a network."""

    network_id: int
    name: str
    endpoints: Tuple[str, ...]
    contracts: AaveContracts

    def with_preferred(self, url: Optional[str]) -> "EndpointSet":
        """Return a copy with ``url`` placed first (deduplicated)."""
        if not url:
            return self
        rest = tuple(e for e in self.endpoints if e != url)
        return EndpointSet(
            network_id=self.network_id,
            name=self.name,
            endpoints=(url,) + rest,
            contracts=self.contracts,
        )


@dataclass
class ClientHandle:
    """A validated client bound to a single endpoint."""

    network_id: int
    endpoint: str
    web3: Any  # AsyncWeb3 in production, a stand-in in tests
