"""Data pipeline orchestration for the Aave state acquisition core.

Provides the read contract used by the HTTP ingress and the job processors:
rate limiter, then cache (with in-flight de-duplication), then the protocol
reader, with results written back to the cache.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from config.settings import Settings, get_settings
from src.analytics.health import HealthMetricsCalculator
from src.core.exceptions import ReadError
from src.core.models import (
    AccountStateResult,
    Freshness,
    HealthSnapshot,
    NormalizedAccountState,
    ReserveRate,
)
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.keys import CacheKeys
from src.data.clients.aave.reader import AaveReader
from src.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)

MARKET_DATA_TYPES = ("apys", "rates", "reserves")

RatesLoader = Callable[[], Awaitable[List[ReserveRate]]]

_MARKET_SELECTORS: Dict[str, Callable[[List[ReserveRate]], List[ReserveRate]]] = {
    "apys": AaveReader.select_supply_apys,
    "rates": AaveReader.select_borrow_rates,
    "reserves": AaveReader.select_available_reserves,
}


class DataPipeline:
    """Orchestrates reads through the rate limiter, cache layer and protocol reader."""

    def __init__(
        self,
        reader: AaveReader,
        cache: CacheLayer,
        limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
        calculator: Optional[HealthMetricsCalculator] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the data pipeline.

        Args:
            reader: Protocol reader
            cache: Cache layer in front of the reader
            limiter: Ingress rate limiter (None disables limiting)
            settings: Application settings
            calculator: Health metrics calculator
            clock: Returns the current time in epoch seconds
        """
        self.settings = settings or get_settings()
        self.reader = reader
        self.cache = cache
        self.limiter = limiter
        self.calculator = calculator or HealthMetricsCalculator()
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _check_rate_limit(self, identifier: Optional[str], action: str) -> None:
        # internal callers pass no identifier and are not limited
        if self.limiter is not None and identifier is not None:
            self.limiter.consume(identifier, action)

    # ========== ACCOUNT METHODS ==========

    async def get_account_state(
        self,
        address: str,
        network_id: int,
        identifier: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Optional[AccountStateResult]:
        """Get the account state of a user with freshness metadata.

        Args:
            address: User address
            network_id: Chain id
            identifier: Caller identity for rate limiting (None for internal callers)
            force_refresh: Skip the cached value

        Returns:
            AccountStateResult, or None when the read failed with nothing cached

        Raises:
            RateLimitExceeded: If the caller is over its budget
            ValueError: If the address or network is invalid
        """
        self._check_rate_limit(identifier, "account")
        key = CacheKeys.account(address, network_id)

        entry = None if force_refresh else self.cache.get_entry(key)
        if entry is not None:
            state = NormalizedAccountState.from_dict(entry.value)
            written_at = datetime.fromtimestamp(entry.written_at, tz=timezone.utc)
            return AccountStateResult(state=state, freshness=Freshness(from_cache=True, last_updated=written_at))

        async def produce() -> Dict[str, Any]:
            state = await self.reader.get_account_state(address, network_id)
            self._store_health(state)
            return state.to_dict()

        try:
            data = await self.cache.with_dedup(
                key, produce, ttl_seconds=self.settings.account_ttl_seconds, force_refresh=force_refresh
            )
        except ReadError as e:
            logger.warning(f"Account state unavailable for {address} on network {network_id}: {e}")
            return None

        state = NormalizedAccountState.from_dict(data)
        return AccountStateResult(state=state, freshness=Freshness(from_cache=False, last_updated=state.read_at))

    def _snapshot(self, state: NormalizedAccountState) -> HealthSnapshot:
        return HealthSnapshot(state=state, metrics=self.calculator.calculate(state), last_updated=self._now())

    def _store_health(self, state: NormalizedAccountState) -> None:
        """Keep the health snapshot in step with a freshly read account state."""
        self.cache.set(
            CacheKeys.health(state.address, state.network_id),
            self._snapshot(state).to_dict(),
            self.settings.health_ttl_seconds,
        )

    async def get_health_snapshot(
        self,
        address: str,
        network_id: int,
        force_refresh: bool = False,
        identifier: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Get the combined account state and derived metrics of a user.

        Returns:
            Tuple of (snapshot dict, served from cache)

        Raises:
            ReadError: If the read failed (callers decide on fallback)
        """
        self._check_rate_limit(identifier, "health")
        key = CacheKeys.health(address, network_id)
        produced = False

        async def produce() -> Dict[str, Any]:
            nonlocal produced
            produced = True
            state = await self.reader.get_account_state(address, network_id)
            self.cache.set(CacheKeys.account(address, network_id), state.to_dict(), self.settings.account_ttl_seconds)
            return self._snapshot(state).to_dict()

        data = await self.cache.with_dedup(
            key, produce, ttl_seconds=self.settings.health_ttl_seconds, force_refresh=force_refresh
        )
        return data, not produced

    def cached_health(self, address: str, network_id: int) -> Optional[Dict[str, Any]]:
        """Last cached health snapshot, if still within its TTL."""
        return self.cache.get(CacheKeys.health(address, network_id))

    # ========== MARKET METHODS ==========

    def rates_loader(self, network_id: int) -> RatesLoader:
        """Build a loader that reads reserve rates at most once for several market data types."""
        task: Optional[asyncio.Future] = None

        async def load() -> List[ReserveRate]:
            nonlocal task
            if task is None:
                task = asyncio.ensure_future(self.reader.get_reserve_rates(network_id))
            return await task

        return load

    async def get_market_data(
        self,
        network_id: int,
        data_type: str,
        force_refresh: bool = False,
        rates_loader: Optional[RatesLoader] = None,
        identifier: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """Get one type of stablecoin market data for a network.

        Args:
            network_id: Chain id
            data_type: One of apys, rates, reserves
            force_refresh: Skip the cached value
            rates_loader: Shared loader when refreshing several types at once
            identifier: Caller identity for rate limiting (None for internal callers)

        Returns:
            Tuple of (list of reserve dicts, served from cache)

        Raises:
            ValueError: If the data type is unknown
            ReadError: If the read failed
        """
        if data_type not in MARKET_DATA_TYPES:
            raise ValueError(f"Unknown market data type: {data_type}")
        self._check_rate_limit(identifier, "market")

        load = rates_loader or self.rates_loader(network_id)
        key = CacheKeys.market(network_id, data_type)
        produced = False

        async def produce() -> List[Dict[str, Any]]:
            nonlocal produced
            produced = True
            selected = _MARKET_SELECTORS[data_type](await load())
            logger.info(f"Refreshed {data_type} for network {network_id}: {len(selected)} reserves")
            return [rate.to_dict() for rate in selected]

        data = await self.cache.with_dedup(
            key,
            produce,
            ttl_seconds=self.settings.market_ttls[data_type],
            force_refresh=force_refresh,
        )
        return data, not produced

    def cached_market(self, network_id: int, data_type: str) -> Optional[List[Dict[str, Any]]]:
        return self.cache.get(CacheKeys.market(network_id, data_type))

    # ========== CACHE MANAGEMENT ==========

    def invalidate_user(self, address: str, network_id: int) -> int:
        """Drop every cached value of one user on one network."""
        return self.cache.invalidate_prefix(CacheKeys.user_prefix(address, network_id))

    def invalidate_network(self, network_id: int) -> int:
        """Drop every cached value of one network."""
        return self.cache.delete_pattern(CacheKeys.network_pattern(network_id))

    async def close(self) -> None:
        """Close the reader and the cache."""
        await self.reader.close()
        self.cache.close()
        logger.info("Data pipeline closed")
