"""Cache key grammar: ``{namespace}:{scope}:{identifier}:{networkId}:{subtype}``."""


class CacheKeys:
    """Standard cache key patterns."""

    NAMESPACE = "aave"

    @staticmethod
    def user(address: str, network_id: int, subtype: str) -> str:
        return f"{CacheKeys.NAMESPACE}:user:{address.lower()}:{network_id}:{subtype}"

    @staticmethod
    def account(address: str, network_id: int) -> str:
        return CacheKeys.user(address, network_id, "account")

    @staticmethod
    def health(address: str, network_id: int) -> str:
        return CacheKeys.user(address, network_id, "health")

    @staticmethod
    def market(network_id: int, subtype: str) -> str:
        return f"{CacheKeys.NAMESPACE}:market:global:{network_id}:{subtype}"

    @staticmethod
    def provider_status() -> str:
        return f"{CacheKeys.NAMESPACE}:providers:global:all:status"

    @staticmethod
    def rate_limit(identifier: str, action: str) -> str:
        return f"ratelimit:{identifier}:{action}"

    @staticmethod
    def job_status(job_id: str) -> str:
        return f"job:{job_id}:status"

    @staticmethod
    def user_prefix(address: str, network_id: int) -> str:
        return f"{CacheKeys.NAMESPACE}:user:{address.lower()}:{network_id}:"

    @staticmethod
    def network_pattern(network_id: int) -> str:
        """Glob matching every key of one network."""
        return f"{CacheKeys.NAMESPACE}:*:*:{network_id}:*"


# Namespaces removed by the periodic cache cleanup job
CLEANUP_PATTERNS = (
    "aave:user:*:health",
    "aave:market:*:apys",
    "aave:market:*:rates",
    "job:*:status",
)
