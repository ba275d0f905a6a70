"""Pydantic settings for the Aave state acquisition core."""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Operator-preferred RPC endpoints (tried before the public defaults)
    rpc_url_ethereum: Optional[str] = Field(default=None, description="Preferred Ethereum RPC URL")
    rpc_url_polygon: Optional[str] = Field(default=None, description="Preferred Polygon RPC URL")
    rpc_url_optimism: Optional[str] = Field(default=None, description="Preferred Optimism RPC URL")
    rpc_url_arbitrum: Optional[str] = Field(default=None, description="Preferred Arbitrum RPC URL")
    rpc_url_avalanche: Optional[str] = Field(default=None, description="Preferred Avalanche RPC URL")
    rpc_url_base: Optional[str] = Field(default=None, description="Preferred Base RPC URL")

    # Endpoint resolution
    provider_timeout_seconds: float = Field(default=15.0, gt=0, le=120, description="Per-endpoint timeout")
    provider_max_attempts: int = Field(default=1, ge=1, le=10, description="Attempts per endpoint before moving on")
    provider_strategy: str = Field(default="sequential", description="Fallback strategy: sequential or round_robin")
    rpc_rate_limit: int = Field(default=25, ge=1, description="Outbound RPC calls allowed per window and network")
    rpc_rate_window: float = Field(default=1.0, gt=0, description="Outbound RPC throttle window in seconds")

    # Wallet addresses to keep warm via the bulk health job
    wallet_addresses: List[str] = Field(default_factory=list, description="Wallet addresses to monitor")
    tracked_networks: List[int] = Field(
        default_factory=lambda: [42161],
        description="Networks the tracked wallets are refreshed on",
    )

    # Cache Configuration
    cache_dir: Path = Field(default=Path(".cache/aave"), description="Cache directory path")
    cache_ttl_seconds: int = Field(default=120, ge=1, le=86400, description="Default cache TTL in seconds")
    cache_max_entries: int = Field(default=200, ge=1, description="In-memory entries before a cleanup pass")
    cache_persistence: bool = Field(default=True, description="Mirror cache writes to disk")
    account_ttl_seconds: int = Field(default=120, ge=1, description="TTL of raw account state reads")
    health_ttl_seconds: int = Field(default=300, ge=1, description="TTL of health snapshots")
    market_ttl_apys: int = Field(default=600, ge=1, description="TTL of supply APY data")
    market_ttl_rates: int = Field(default=600, ge=1, description="TTL of borrow rate data")
    market_ttl_reserves: int = Field(default=1800, ge=1, description="TTL of reserve availability data")

    # Queue Configuration
    queue_backend: str = Field(default="disk", description="Job broker backend: memory or disk")
    queue_poll_interval: float = Field(default=0.5, gt=0, le=60, description="Worker poll interval in seconds")
    queue_lease_seconds: int = Field(default=300, ge=1, description="Lease length before an active job is re-delivered")
    queue_register_recurring: bool = Field(default=True, description="Register default recurring jobs on start")

    # Ingress rate limiting
    rate_limit_requests: int = Field(default=100, ge=1, description="Requests allowed per window and caller")
    rate_limit_window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")
    provider_status_rate_limit: int = Field(
        default=5, ge=1, description="Provider status checks allowed per window and caller"
    )
    provider_status_ttl_seconds: int = Field(default=30, ge=1, description="TTL of provider status results")

    # HTTP ingress
    api_host: str = Field(default="127.0.0.1", description="Bind host for the HTTP ingress")
    api_port: int = Field(default=8000, ge=1, le=65535, description="Bind port for the HTTP ingress")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("wallet_addresses", mode="before")
    @classmethod
    def parse_wallet_addresses(cls, v):
        """Parse comma-separated wallet addresses."""
        if isinstance(v, str):
            if not v.strip():
                return []
            return [addr.strip() for addr in v.split(",") if addr.strip()]
        return v or []

    @field_validator("tracked_networks", mode="before")
    @classmethod
    def parse_tracked_networks(cls, v):
        """Parse comma-separated chain ids."""
        if isinstance(v, int):
            return [v]
        if isinstance(v, str):
            return [int(part) for part in v.split(",") if part.strip()]
        return v or []

    @field_validator("provider_strategy", "queue_backend", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        """Lower-case enum-like string options."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @field_validator("cache_dir", mode="before")
    @classmethod
    def parse_cache_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @property
    def rpc_overrides(self) -> Dict[int, str]:
        """Map chain id to the operator-preferred RPC URL, when set."""
        overrides = {
            1: self.rpc_url_ethereum,
            137: self.rpc_url_polygon,
            10: self.rpc_url_optimism,
            42161: self.rpc_url_arbitrum,
            43114: self.rpc_url_avalanche,
            8453: self.rpc_url_base,
        }
        return {chain_id: url for chain_id, url in overrides.items() if url}

    @property
    def market_ttls(self) -> Dict[str, int]:
        """TTL per market data type."""
        return {
            "apys": self.market_ttl_apys,
            "rates": self.market_ttl_rates,
            "reserves": self.market_ttl_reserves,
        }

    def ensure_cache_dir(self) -> Path:
        """Ensure cache directory exists and return it."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
