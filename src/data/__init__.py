"""Data layer: endpoint resolution, protocol reads, caching and the read pipeline."""

from .pipeline import DataPipeline
from .cache.cache_layer import CacheLayer
from .cache.disk_cache import DiskCache
from .cache.keys import CacheKeys
from .clients.base import ProtocolReader
from .clients.aave import AaveParser, AaveReader
from .providers import EndpointResolver

__all__ = [
    "DataPipeline",
    "CacheLayer",
    "DiskCache",
    "CacheKeys",
    "ProtocolReader",
    "AaveParser",
    "AaveReader",
    "EndpointResolver",
]
