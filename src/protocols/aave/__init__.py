"""Aave v3 protocol configuration."""

from src.protocols.aave.config import (
    AAVE_V3_CONTRACTS,
    build_endpoint_sets,
)
from src.protocols.aave.assets import STABLECOIN_SYMBOLS, is_stablecoin

__all__ = [
    "AAVE_V3_CONTRACTS",
    "build_endpoint_sets",
    "STABLECOIN_SYMBOLS",
    "is_stablecoin",
]
