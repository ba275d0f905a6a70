"""Core constants module.

Re-exports all constants for convenience.
"""

from src.core.constants.generic import (
    SECONDS_PER_YEAR,
    WAD,
    RAY,
    BASE_CURRENCY_DECIMALS,
    PERCENTAGE_FACTOR,
    HEALTH_FACTOR_INFINITE,
    HEALTH_FACTOR_SANITY_BOUND,
    NEGLIGIBLE_DEBT,
)

from src.core.constants.chains import (
    ETHEREUM_MAINNET_CHAIN_ID,
    OPTIMISM_CHAIN_ID,
    BSC_CHAIN_ID,
    GNOSIS_CHAIN_ID,
    POLYGON_CHAIN_ID,
    BASE_CHAIN_ID,
    ARBITRUM_ONE_CHAIN_ID,
    AVALANCHE_CHAIN_ID,
    BULK_MARKET_NETWORKS,
)

__all__ = [
    # Generic
    "SECONDS_PER_YEAR",
    "WAD",
    "RAY",
    "BASE_CURRENCY_DECIMALS",
    "PERCENTAGE_FACTOR",
    "HEALTH_FACTOR_INFINITE",
    "HEALTH_FACTOR_SANITY_BOUND",
    "NEGLIGIBLE_DEBT",
    # Chains
    "ETHEREUM_MAINNET_CHAIN_ID",
    "OPTIMISM_CHAIN_ID",
    "BSC_CHAIN_ID",
    "GNOSIS_CHAIN_ID",
    "POLYGON_CHAIN_ID",
    "BASE_CHAIN_ID",
    "ARBITRUM_ONE_CHAIN_ID",
    "AVALANCHE_CHAIN_ID",
    "BULK_MARKET_NETWORKS",
]
