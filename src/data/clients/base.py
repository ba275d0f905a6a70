"""Base protocol reader interface.

Defines the abstract interface a lending protocol reader implements, so the
data pipeline and job processors do not depend on one protocol's call sequence.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

from src.core.models import NormalizedAccountState, ReservePosition, ReserveRate


class ProtocolReader(ABC):
    """Abstract base class for read-only protocol state readers.

    Implementations obtain a client from the endpoint resolver on every call
    and surface any failure in the read sequence as ReadError.
    """

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        """Return a human-readable protocol name."""
        ...

    # ========== ACCOUNT METHODS ==========

    @abstractmethod
    async def get_account_state(
        self,
        address: str,
        network_id: int,
        include_positions: bool = True,
    ) -> NormalizedAccountState:
        """Read the normalized account state of a user.

        Args:
            address: User address
            network_id: Chain id
            include_positions: Also read per-reserve supply and borrow positions

        Returns:
            NormalizedAccountState

        Raises:
            ValueError: If the address or network is invalid
            ReadError: If the read sequence failed
        """
        ...

    @abstractmethod
    async def get_user_positions(
        self,
        address: str,
        network_id: int,
    ) -> Tuple[List[ReservePosition], List[ReservePosition]]:
        """Read per-reserve balances of a user.

        Returns:
            Tuple of (supply positions, borrow positions)
        """
        ...

    # ========== RESERVE METHODS ==========

    @abstractmethod
    async def get_reserve_rates(self, network_id: int) -> List[ReserveRate]:
        """Read current rates and flags of every reserve on a network.

        Raises:
            ReadError: If the read sequence failed
        """
        ...

    # ========== LIFECYCLE ==========

    async def close(self) -> None:
        """Release resources held by the reader."""
        pass
