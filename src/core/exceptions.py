"""Exception taxonomy for endpoint resolution, reads, caching and rate limiting."""

from typing import Optional


class LendingCoreError(Exception):
    """Base exception for the acquisition core."""
    pass


class UnsupportedNetwork(LendingCoreError, ValueError):
    """Raised when a network id has no configured endpoint set."""

    def __init__(self, network_id: int):
        super().__init__(f"Unsupported network: {network_id}")
        self.network_id = network_id


class ProviderUnavailable(LendingCoreError):
    """Raised when every endpoint for a network has been exhausted."""

    def __init__(self, network_id: int, last_error: Optional[BaseException] = None, attempts: int = 0):
        """
        Initialize provider unavailable error.

        Args:
            network_id: Network that could not be resolved
            last_error: The last endpoint failure observed, if any
            attempts: Total number of endpoint attempts made
        """
        detail = f"{type(last_error).__name__}: {last_error}" if last_error else "no endpoints configured"
        super().__init__(f"No working endpoint for network {network_id} after {attempts} attempts ({detail})")
        self.network_id = network_id
        self.last_error = last_error
        self.attempts = attempts


class ReadError(LendingCoreError):
    """Raised when a read sequence fails after (or while) obtaining a provider."""

    def __init__(self, operation: str, network_id: int, cause: Optional[BaseException] = None):
        super().__init__(f"{operation} failed on network {network_id}: {cause}")
        self.operation = operation
        self.network_id = network_id
        self.cause = cause


class RateLimitExceeded(LendingCoreError):
    """Raised when a caller exceeds its request budget."""

    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        """
        Initialize rate limit exceeded error.

        Args:
            retry_after: Seconds until the current window resets
            message: Error message
        """
        super().__init__(message)
        self.retry_after = retry_after


class CacheUnavailable(LendingCoreError):
    """Internal cache backend failure. Never surfaces past the cache layer."""
    pass


class JobNotFound(LendingCoreError, KeyError):
    """Raised when a job id is unknown to the broker."""
    pass
