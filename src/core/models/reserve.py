"""Reserve rate and configuration data models."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from src.core.constants import SECONDS_PER_YEAR


@dataclass(frozen=True)
class ReserveRate:
    """Current rates and status flags of one Aave reserve."""

    asset: str  # Underlying token address
    symbol: str
    decimals: int

    # Annual rates as decimals, decoded from RAY
    supply_rate: Decimal
    variable_borrow_rate: Decimal
    stable_borrow_rate: Decimal

    # Configuration flags
    is_active: bool = True
    is_frozen: bool = False
    is_paused: bool = False
    borrowing_enabled: bool = True

    @staticmethod
    def compound(rate: Decimal) -> Decimal:
        """Per-second compounded APY from an annual rate."""
        if rate <= 0:
            return Decimal("0")
        return (1 + rate / SECONDS_PER_YEAR) ** SECONDS_PER_YEAR - 1

    @property
    def supply_apy(self) -> Decimal:
        return self.compound(self.supply_rate)

    @property
    def variable_borrow_apy(self) -> Decimal:
        return self.compound(self.variable_borrow_rate)

    @property
    def is_available(self) -> bool:
        """Reserve accepts new supply (active, not frozen, not paused)."""
        return self.is_active and not self.is_frozen and not self.is_paused

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "supplyRate": str(self.supply_rate),
            "variableBorrowRate": str(self.variable_borrow_rate),
            "stableBorrowRate": str(self.stable_borrow_rate),
            "supplyApy": str(self.supply_apy),
            "variableBorrowApy": str(self.variable_borrow_apy),
            "isActive": self.is_active,
            "isFrozen": self.is_frozen,
            "isPaused": self.is_paused,
            "borrowingEnabled": self.borrowing_enabled,
        }
