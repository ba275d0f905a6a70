"""Chain identifiers for supported EVM networks."""

ETHEREUM_MAINNET_CHAIN_ID = 1
OPTIMISM_CHAIN_ID = 10
BSC_CHAIN_ID = 56
GNOSIS_CHAIN_ID = 100
POLYGON_CHAIN_ID = 137
BASE_CHAIN_ID = 8453
ARBITRUM_ONE_CHAIN_ID = 42161
AVALANCHE_CHAIN_ID = 43114

# Networks refreshed by the bulk market data job
BULK_MARKET_NETWORKS = (
    ETHEREUM_MAINNET_CHAIN_ID,
    POLYGON_CHAIN_ID,
    OPTIMISM_CHAIN_ID,
    ARBITRUM_ONE_CHAIN_ID,
    AVALANCHE_CHAIN_ID,
)
