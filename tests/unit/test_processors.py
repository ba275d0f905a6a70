"""Unit tests for the job processors."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import USER, sample_rates, sample_state
from src.core.exceptions import ReadError
from src.core.models import Job
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.keys import CacheKeys
from src.data.pipeline import DataPipeline
from src.jobs.manager import QueueManager
from src.jobs.memory_broker import InMemoryBroker
from src.jobs.processors import (
    BulkHealthUpdateProcessor,
    BulkMarketDataProcessor,
    CacheCleanupProcessor,
    HealthUpdateProcessor,
    MarketDataProcessor,
    OldJobsCleanupProcessor,
)
from src.jobs.queues import QUEUE_HEALTH, QUEUE_MARKET


def make_job(job_name, payload, queue=QUEUE_HEALTH):
    return Job(id="job-1", queue_name=queue, job_name=job_name, payload=payload)


@pytest.fixture
def mock_reader():
    reader = MagicMock()
    reader.get_account_state = AsyncMock(return_value=sample_state())
    reader.get_reserve_rates = AsyncMock(return_value=sample_rates())
    reader.close = AsyncMock()
    return reader


@pytest.fixture
def cache(test_settings, clock):
    return CacheLayer(test_settings, clock=clock)


@pytest.fixture
def pipeline(test_settings, mock_reader, cache, clock):
    return DataPipeline(mock_reader, cache, settings=test_settings, clock=clock)


@pytest.fixture
def manager(test_settings, cache, clock):
    return QueueManager(InMemoryBroker(clock=clock), cache=cache, settings=test_settings, clock=clock)


class TestHealthUpdateProcessor:
    """Tests for the per-user health update job."""

    @pytest.mark.asyncio
    async def test_writes_snapshot(self, pipeline, cache, clock):
        """A health update writes the derived snapshot to cache."""
        processor = HealthUpdateProcessor(pipeline, clock=clock)
        job = make_job("update-user-health", {"userAddress": USER, "networkId": 42161, "forceUpdate": False})

        result = await processor.process(job)

        assert result["success"] is True
        assert result["fromCache"] is False
        assert result["data"]["healthScore"] == 100
        assert result["data"]["liquidationRisk"] == "very_low"
        assert result["data"]["healthFactor"] == "Infinity"
        assert cache.get(CacheKeys.health(USER, 42161)) == result["data"]

    @pytest.mark.asyncio
    async def test_cached_snapshot_without_force(self, pipeline, mock_reader, clock):
        """Without forceUpdate a cached snapshot is reused."""
        processor = HealthUpdateProcessor(pipeline, clock=clock)
        job = make_job("update-user-health", {"userAddress": USER, "networkId": 42161})

        await processor.process(job)
        result = await processor.process(job)

        assert result["fromCache"] is True
        assert mock_reader.get_account_state.await_count == 1

    @pytest.mark.asyncio
    async def test_read_failure_falls_back_to_recent_snapshot(self, pipeline, mock_reader, clock):
        """A snapshot cached 2 minutes ago (TTL 5 minutes) is served when the read fails."""
        processor = HealthUpdateProcessor(pipeline, clock=clock)
        job = make_job("update-user-health", {"userAddress": USER, "networkId": 42161, "forceUpdate": True})
        first = await processor.process(job)

        clock.advance(120)
        mock_reader.get_account_state.side_effect = ReadError("get_account_state", 42161, IOError("rpc down"))
        result = await processor.process(job)

        assert result["success"] is True
        assert result["fromCache"] is True
        assert result["data"] == first["data"]
        assert "rpc down" in result["error"]

    @pytest.mark.asyncio
    async def test_read_failure_without_fallback_raises(self, pipeline, mock_reader, clock):
        """A failed read with no cached snapshot fails the job."""
        processor = HealthUpdateProcessor(pipeline, clock=clock)
        mock_reader.get_account_state.side_effect = ReadError("get_account_state", 42161, IOError("rpc down"))
        job = make_job("update-user-health", {"userAddress": USER, "networkId": 42161, "forceUpdate": True})

        with pytest.raises(ReadError):
            await processor.process(job)

    @pytest.mark.asyncio
    async def test_expired_snapshot_is_not_a_fallback(self, pipeline, mock_reader, clock):
        """A snapshot past its TTL is not served on failure."""
        processor = HealthUpdateProcessor(pipeline, clock=clock)
        job = make_job("update-user-health", {"userAddress": USER, "networkId": 42161, "forceUpdate": True})
        await processor.process(job)

        clock.advance(301)
        mock_reader.get_account_state.side_effect = ReadError("get_account_state", 42161, IOError("rpc down"))

        with pytest.raises(ReadError):
            await processor.process(job)


class TestBulkHealthUpdateProcessor:
    """Tests for the health fan-out job."""

    @pytest.mark.asyncio
    async def test_staggered_fan_out(self, manager, test_settings, clock):
        """Per-user jobs are staggered one second apart."""
        users = [("0x%040x" % i, 42161) for i in range(1, 4)]
        processor = BulkHealthUpdateProcessor(manager, settings=test_settings, active_users=lambda: users, clock=clock)

        result = await processor.process(make_job("bulk-update-health", {}))

        assert result["processed"] == 3
        jobs = [await manager.broker.get_job(r["jobId"]) for r in result["results"]]
        assert [job.run_at - clock.now for job in jobs] == [0, 1, 2]
        assert all(job.payload["forceUpdate"] is True for job in jobs)
        assert all(job.job_name == "update-user-health" for job in jobs)

    @pytest.mark.asyncio
    async def test_network_filter(self, manager, test_settings, clock):
        """A networkId payload limits the fan-out to that network."""
        users = [(USER, 42161), (USER, 1)]
        processor = BulkHealthUpdateProcessor(manager, settings=test_settings, active_users=lambda: users, clock=clock)

        result = await processor.process(make_job("bulk-update-health", {"networkId": 1}))

        assert result["processed"] == 1
        assert result["results"][0]["networkId"] == 1

    @pytest.mark.asyncio
    async def test_per_user_errors_do_not_stop_the_loop(self, manager, test_settings, clock):
        """An enqueue error for one user is recorded and the loop goes on."""
        users = [("0xa", 42161), ("0xb", 42161)]
        manager.enqueue = AsyncMock(side_effect=[RuntimeError("broker busy"), MagicMock(id="ok")])
        processor = BulkHealthUpdateProcessor(manager, settings=test_settings, active_users=lambda: users, clock=clock)

        result = await processor.process(make_job("bulk-update-health", {}))

        assert result["results"][0]["error"] == "broker busy"
        assert result["results"][1]["jobId"] == "ok"

    @pytest.mark.asyncio
    async def test_default_users_from_settings(self, manager, test_settings, clock):
        """Users default to configured wallets on tracked networks."""
        settings = test_settings.model_copy(update={"wallet_addresses": [USER], "tracked_networks": [42161, 10]})
        processor = BulkHealthUpdateProcessor(manager, settings=settings, clock=clock)

        result = await processor.process(make_job("bulk-update-health", {}))

        assert result["processed"] == 2


class TestMarketDataProcessor:
    """Tests for the market data job."""

    @pytest.mark.asyncio
    async def test_all_types_share_one_read(self, pipeline, mock_reader, cache, clock):
        """All market data types are derived from one reserve read."""
        processor = MarketDataProcessor(pipeline, clock=clock)

        result = await processor.process(make_job("update-market-data", {"networkId": 1, "dataType": "all"}, QUEUE_MARKET))

        assert mock_reader.get_reserve_rates.await_count == 1
        assert result["results"]["apys"]["count"] == 1
        assert result["results"]["rates"]["count"] == 1
        assert result["results"]["reserves"]["count"] == 2
        assert cache.get(CacheKeys.market(1, "reserves")) is not None

    @pytest.mark.asyncio
    async def test_type_ttls(self, pipeline, cache, clock):
        """Each market data type expires with its own TTL."""
        processor = MarketDataProcessor(pipeline, clock=clock)
        await processor.process(make_job("update-market-data", {"networkId": 1, "dataType": "all"}, QUEUE_MARKET))

        clock.advance(601)
        assert cache.get(CacheKeys.market(1, "apys")) is None
        assert cache.get(CacheKeys.market(1, "reserves")) is not None

    @pytest.mark.asyncio
    async def test_failure_keeps_cached_data(self, pipeline, mock_reader, clock):
        """A failed refresh keeps serving cached market data."""
        processor = MarketDataProcessor(pipeline, clock=clock)
        job = make_job("update-market-data", {"networkId": 1, "dataType": "apys", "forceUpdate": True}, QUEUE_MARKET)
        await processor.process(job)

        mock_reader.get_reserve_rates.side_effect = ReadError("get_reserve_rates", 1, IOError("rpc down"))
        result = await processor.process(job)

        assert result["results"]["apys"]["fromCache"] is True
        assert result["results"]["apys"]["count"] == 1

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self, pipeline, mock_reader, clock):
        """A failed read with nothing cached fails the job."""
        processor = MarketDataProcessor(pipeline, clock=clock)
        mock_reader.get_reserve_rates.side_effect = ReadError("get_reserve_rates", 1, IOError("rpc down"))

        with pytest.raises(ReadError):
            await processor.process(make_job("update-market-data", {"networkId": 1, "dataType": "rates"}, QUEUE_MARKET))

    @pytest.mark.asyncio
    async def test_unknown_type(self, pipeline, clock):
        """An unknown data type is rejected."""
        processor = MarketDataProcessor(pipeline, clock=clock)

        with pytest.raises(ValueError):
            await processor.process(make_job("update-market-data", {"networkId": 1, "dataType": "tvl"}, QUEUE_MARKET))


class TestBulkMarketDataProcessor:
    """Tests for the market data fan-out job."""

    @pytest.mark.asyncio
    async def test_one_job_per_network(self, manager, clock):
        """One market job per supported network, two seconds apart."""
        processor = BulkMarketDataProcessor(manager, clock=clock)

        result = await processor.process(make_job("bulk-update-market-data", {"dataType": "all"}, QUEUE_MARKET))

        assert result["processed"] == 5
        jobs = [await manager.broker.get_job(r["jobId"]) for r in result["results"]]
        assert [job.payload["networkId"] for job in jobs] == [1, 137, 10, 42161, 43114]
        assert [job.run_at - clock.now for job in jobs] == [0, 2, 4, 6, 8]


class TestCleanupProcessors:
    """Tests for the housekeeping jobs."""

    @pytest.mark.asyncio
    async def test_cache_cleanup(self, cache, clock):
        """Cache cleanup drops expired entries and keeps live ones."""
        cache.set(CacheKeys.health(USER, 1), {"v": 1}, ttl_seconds=10)
        cache.set(CacheKeys.market(1, "reserves"), [1], ttl_seconds=1000)
        clock.advance(11)

        result = await CacheCleanupProcessor(cache).process(make_job("cleanup-cache", {}))

        assert result["success"] is True
        assert cache.stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_old_jobs_cleanup(self, manager, clock):
        """Finished jobs older than a day are removed."""
        job = await manager.enqueue(QUEUE_HEALTH, "update-user-health", {"userAddress": USER, "networkId": 1})
        await manager.broker.lease_next(QUEUE_HEALTH, 300)
        await manager.broker.ack(job.id)
        clock.advance(25 * 3600)

        result = await OldJobsCleanupProcessor(manager).process(make_job("cleanup-old-jobs", {}))

        assert result["removed"][QUEUE_HEALTH] == 1
        assert await manager.broker.get_job(job.id) is None
