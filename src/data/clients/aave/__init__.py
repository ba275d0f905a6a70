"""Aave v3 on-chain reader."""

from src.data.clients.aave.reader import AaveReader
from src.data.clients.aave.parser import AaveParser

__all__ = [
    "AaveReader",
    "AaveParser",
]
