"""Integration tests for the data pipeline."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import USER, sample_rates, sample_state
from src.core.exceptions import RateLimitExceeded, ReadError
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.disk_cache import DiskCache
from src.data.cache.keys import CacheKeys
from src.data.pipeline import DataPipeline
from src.ratelimit.limiter import RateLimiter
from src.ratelimit.store import MemoryCounterStore


class TestDataPipeline:
    """Integration tests for DataPipeline."""

    @pytest.fixture
    def mock_reader(self):
        reader = MagicMock()
        reader.get_account_state = AsyncMock(return_value=sample_state())
        reader.get_reserve_rates = AsyncMock(return_value=sample_rates())
        reader.close = AsyncMock()
        return reader

    @pytest.fixture
    def cache(self, test_settings, clock):
        return CacheLayer(test_settings, clock=clock)

    @pytest.fixture
    def limiter(self, test_settings, clock):
        return RateLimiter(MemoryCounterStore(clock=clock), settings=test_settings)

    @pytest.fixture
    def pipeline(self, test_settings, mock_reader, cache, limiter, clock):
        return DataPipeline(mock_reader, cache, limiter, settings=test_settings, clock=clock)

    @pytest.mark.asyncio
    async def test_account_state_fresh_then_cached(self, pipeline, mock_reader, clock):
        """The second read within the TTL is served from cache with its write time."""
        first = await pipeline.get_account_state(USER, 42161, identifier="alice")
        written_at = clock.now
        clock.advance(30)
        second = await pipeline.get_account_state(USER, 42161, identifier="alice")

        assert first.freshness.from_cache is False
        assert second.freshness.from_cache is True
        assert second.freshness.last_updated.timestamp() == written_at
        assert second.state.total_collateral == first.state.total_collateral
        assert mock_reader.get_account_state.await_count == 1

    @pytest.mark.asyncio
    async def test_account_state_expires(self, pipeline, mock_reader, clock):
        """A read at the TTL boundary goes to the reader again."""
        await pipeline.get_account_state(USER, 42161)
        clock.advance(120)
        result = await pipeline.get_account_state(USER, 42161)

        assert result.freshness.from_cache is False
        assert mock_reader.get_account_state.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh(self, pipeline, mock_reader):
        """Force refresh skips a cached value."""
        await pipeline.get_account_state(USER, 42161)
        result = await pipeline.get_account_state(USER, 42161, force_refresh=True)

        assert result.freshness.from_cache is False
        assert mock_reader.get_account_state.await_count == 2

    @pytest.mark.asyncio
    async def test_fresh_account_read_writes_health_snapshot(self, pipeline, cache):
        """A fresh account read also caches its health snapshot."""
        await pipeline.get_account_state(USER, 42161)

        snapshot = cache.get(CacheKeys.health(USER, 42161))
        assert snapshot["healthScore"] == 100
        assert snapshot["liquidationRisk"] == "very_low"

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_call(self, pipeline, mock_reader):
        """Concurrent cold reads of one account hit the reader once."""
        release = asyncio.Event()

        async def slow_read(address, network_id):
            await release.wait()
            return sample_state(address, network_id)

        mock_reader.get_account_state.side_effect = slow_read
        tasks = [asyncio.create_task(pipeline.get_account_state(USER, 42161)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert mock_reader.get_account_state.await_count == 1
        assert all(r is not None for r in results)

    @pytest.mark.asyncio
    async def test_read_failure_returns_none(self, pipeline, mock_reader):
        """A failed read with nothing cached returns None."""
        mock_reader.get_account_state.side_effect = ReadError("get_account_state", 42161, IOError("rpc down"))

        assert await pipeline.get_account_state(USER, 42161) is None

    @pytest.mark.asyncio
    async def test_invalid_input_propagates(self, pipeline, mock_reader):
        """Invalid input is raised to the caller."""
        mock_reader.get_account_state.side_effect = ValueError("Invalid address")

        with pytest.raises(ValueError):
            await pipeline.get_account_state("nope", 42161)

    @pytest.mark.asyncio
    async def test_rate_limit_is_checked_before_cache(self, pipeline, mock_reader):
        """Cached reads still count against the caller's budget."""
        for _ in range(5):
            await pipeline.get_account_state(USER, 42161, identifier="alice")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await pipeline.get_account_state(USER, 42161, identifier="alice")

        assert exc_info.value.retry_after == 60
        assert mock_reader.get_account_state.await_count == 1
        assert await pipeline.get_account_state(USER, 42161, identifier="bob") is not None

    @pytest.mark.asyncio
    async def test_internal_reads_are_not_limited(self, pipeline, limiter):
        """Reads without a caller identity never consume a budget."""
        limiter.consume = MagicMock(wraps=limiter.consume)
        for _ in range(10):
            assert await pipeline.get_account_state(USER, 42161) is not None

        limiter.consume.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_snapshot(self, pipeline, mock_reader, cache):
        """The second snapshot read is served from cache."""
        snapshot, from_cache = await pipeline.get_health_snapshot(USER, 42161)
        again, again_from_cache = await pipeline.get_health_snapshot(USER, 42161)

        assert (from_cache, again_from_cache) == (False, True)
        assert again == snapshot
        assert cache.get(CacheKeys.account(USER, 42161)) is not None
        assert mock_reader.get_account_state.await_count == 1

    @pytest.mark.asyncio
    async def test_health_snapshot_raises_read_error(self, pipeline, mock_reader):
        """A failed snapshot read raises ReadError."""
        mock_reader.get_account_state.side_effect = ReadError("get_account_state", 42161, IOError("rpc down"))

        with pytest.raises(ReadError):
            await pipeline.get_health_snapshot(USER, 42161)

    @pytest.mark.asyncio
    async def test_market_data(self, pipeline, mock_reader):
        """Market data is cached per network and type."""
        apys, from_cache = await pipeline.get_market_data(1, "apys")
        cached, cached_flag = await pipeline.get_market_data(1, "apys")

        assert from_cache is False and cached_flag is True
        assert [r["symbol"] for r in apys] == ["USDC"]
        assert cached == apys
        assert mock_reader.get_reserve_rates.await_count == 1

    @pytest.mark.asyncio
    async def test_market_data_unknown_type(self, pipeline):
        """An unknown market data type is rejected."""
        with pytest.raises(ValueError):
            await pipeline.get_market_data(1, "tvl")

    @pytest.mark.asyncio
    async def test_invalidate_user(self, pipeline, cache):
        """Invalidating a user drops its account and health entries."""
        await pipeline.get_account_state(USER, 42161)

        assert pipeline.invalidate_user(USER, 42161) == 2
        assert cache.get(CacheKeys.account(USER, 42161)) is None

    @pytest.mark.asyncio
    async def test_invalidate_network(self, pipeline, cache):
        """Invalidating a network leaves other networks cached."""
        await pipeline.get_account_state(USER, 42161)
        await pipeline.get_market_data(42161, "rates")
        await pipeline.get_market_data(1, "rates")

        assert pipeline.invalidate_network(42161) == 3
        assert cache.get(CacheKeys.market(1, "rates")) is not None

    @pytest.mark.asyncio
    async def test_restart_serves_persisted_state(self, test_settings, mock_reader, clock):
        """A pipeline over a fresh cache layer reads the durable mirror first."""
        disk = DiskCache(test_settings, clock=clock)
        first = DataPipeline(mock_reader, CacheLayer(test_settings, persistent=disk, clock=clock),
                             settings=test_settings, clock=clock)
        await first.get_account_state(USER, 42161)

        second = DataPipeline(mock_reader, CacheLayer(test_settings, persistent=disk, clock=clock),
                              settings=test_settings, clock=clock)
        result = await second.get_account_state(USER, 42161)
        await second.close()

        assert result.freshness.from_cache is True
        assert mock_reader.get_account_state.await_count == 1
