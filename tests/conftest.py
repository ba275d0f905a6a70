"""Pytest configuration and fixtures."""

import pytest

from config.settings import Settings
from fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Real settings rooted in a temporary cache directory."""
    return Settings(
        _env_file=None,
        cache_dir=tmp_path / "cache",
        provider_timeout_seconds=1.0,
        queue_backend="memory",
        queue_poll_interval=0.01,
        queue_register_recurring=False,
        rate_limit_requests=5,
        rate_limit_window_seconds=60,
        provider_status_rate_limit=2,
        wallet_addresses=[],
        tracked_networks=[42161],
    )
