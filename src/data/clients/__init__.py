"""Protocol readers module.

Provides a unified interface for reading lending protocol state.
"""

from src.data.clients.base import ProtocolReader

__all__ = [
    "ProtocolReader",
]
