"""RPC endpoint resolution."""

from src.data.providers.resolver import EndpointResolver, default_client_factory

__all__ = ["EndpointResolver", "default_client_factory"]
