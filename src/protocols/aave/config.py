"""Aave v3 protocol-specific configuration and constants.

Endpoint sets are static for the lifetime of a process. Operator overrides
(``RPC_URL_<NETWORK>``) are applied on top by ``build_endpoint_sets``.
"""

from typing import Dict, Mapping, Optional

from src.core.constants import (
    ARBITRUM_ONE_CHAIN_ID,
    AVALANCHE_CHAIN_ID,
    BASE_CHAIN_ID,
    BSC_CHAIN_ID,
    ETHEREUM_MAINNET_CHAIN_ID,
    GNOSIS_CHAIN_ID,
    OPTIMISM_CHAIN_ID,
    POLYGON_CHAIN_ID,
)
from src.core.models import AaveContracts, EndpointSet

# PoolAddressesProvider is the stable entry point; the Pool address is looked up from it
_L2_ADDRESSES_PROVIDER = "0xa97684ead0e402dC232d5A977953DF7ECBaB3CDb"

AAVE_V3_CONTRACTS: Dict[int, AaveContracts] = {
    ETHEREUM_MAINNET_CHAIN_ID: AaveContracts(pool_addresses_provider="0x2f39d218133AFaB8F2B819B1066c7E434Ad94E9e"),
    POLYGON_CHAIN_ID: AaveContracts(pool_addresses_provider=_L2_ADDRESSES_PROVIDER),
    OPTIMISM_CHAIN_ID: AaveContracts(pool_addresses_provider=_L2_ADDRESSES_PROVIDER),
    ARBITRUM_ONE_CHAIN_ID: AaveContracts(pool_addresses_provider=_L2_ADDRESSES_PROVIDER),
    AVALANCHE_CHAIN_ID: AaveContracts(pool_addresses_provider=_L2_ADDRESSES_PROVIDER),
    BASE_CHAIN_ID: AaveContracts(pool_addresses_provider="0xe20fCBdBfFC4Dd138cE8b2E6FBb6CB49777ad64D"),
    BSC_CHAIN_ID: AaveContracts(pool_addresses_provider="0xff75A4B698E3Ec95E608ac0f22A03B8368E05F5D"),
    GNOSIS_CHAIN_ID: AaveContracts(pool_addresses_provider="0x36616cf17557639614c1cdDb356b1B83fc0B2132"),
}

# Public endpoints, in preference order
DEFAULT_ENDPOINTS: Dict[int, tuple] = {
    ETHEREUM_MAINNET_CHAIN_ID: (
        "https://ethereum.publicnode.com",
        "https://rpc.ankr.com/eth",
        "https://eth.llamarpc.com",
        "https://cloudflare-eth.com",
    ),
    POLYGON_CHAIN_ID: (
        "https://polygon-rpc.com",
        "https://rpc.ankr.com/polygon",
    ),
    OPTIMISM_CHAIN_ID: (
        "https://mainnet.optimism.io",
        "https://rpc.ankr.com/optimism",
    ),
    ARBITRUM_ONE_CHAIN_ID: (
        "https://arb1.arbitrum.io/rpc",
        "https://rpc.ankr.com/arbitrum",
        "https://arbitrum.publicnode.com",
    ),
    AVALANCHE_CHAIN_ID: (
        "https://api.avax.network/ext/bc/C/rpc",
        "https://rpc.ankr.com/avalanche",
    ),
    BASE_CHAIN_ID: (
        "https://mainnet.base.org",
        "https://base.publicnode.com",
    ),
    BSC_CHAIN_ID: (
        "https://bsc-dataseed.binance.org",
        "https://rpc.ankr.com/bsc",
    ),
    GNOSIS_CHAIN_ID: (
        "https://rpc.gnosischain.com",
        "https://rpc.ankr.com/gnosis",
    ),
}

NETWORK_NAMES: Dict[int, str] = {
    ETHEREUM_MAINNET_CHAIN_ID: "Ethereum",
    POLYGON_CHAIN_ID: "Polygon",
    OPTIMISM_CHAIN_ID: "Optimism",
    ARBITRUM_ONE_CHAIN_ID: "Arbitrum One",
    AVALANCHE_CHAIN_ID: "Avalanche",
    BASE_CHAIN_ID: "Base",
    BSC_CHAIN_ID: "BNB Smart Chain",
    GNOSIS_CHAIN_ID: "Gnosis",
}

# Reserve configuration bitmap positions
RESERVE_ACTIVE_BIT = 56
RESERVE_FROZEN_BIT = 57
RESERVE_BORROWING_BIT = 58
RESERVE_PAUSED_BIT = 60
RESERVE_DECIMALS_START_BIT = 48
RESERVE_DECIMALS_MASK = 0xFF


def build_endpoint_sets(overrides: Optional[Mapping[int, str]] = None) -> Dict[int, EndpointSet]:
    """Build the endpoint set of every supported network.

    Args:
        overrides: Optional chain id -> RPC URL placed ahead of the defaults

    Returns:
        Dict of chain id to EndpointSet
    """
    overrides = overrides or {}
    endpoint_sets = {}
    for network_id, contracts in AAVE_V3_CONTRACTS.items():
        endpoint_set = EndpointSet(
            network_id=network_id,
            name=NETWORK_NAMES[network_id],
            endpoints=DEFAULT_ENDPOINTS.get(network_id, ()),
            contracts=contracts,
        )
        endpoint_sets[network_id] = endpoint_set.with_preferred(overrides.get(network_id))
    return endpoint_sets
