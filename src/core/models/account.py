"""Account state data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

from src.core.constants import HEALTH_FACTOR_INFINITE


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReservePosition:
    """A single supply or borrow position read from one reserve."""

    asset: str  # Underlying token address
    symbol: str
    amount: Decimal  # Token units
    value_base: Decimal  # Value in base currency (USD)
    rate: Decimal  # Annual rate as a decimal (0.05 = 5%)
    usage_as_collateral: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "symbol": self.symbol,
            "amount": str(self.amount),
            "valueBase": str(self.value_base),
            "rate": str(self.rate),
            "usageAsCollateral": self.usage_as_collateral,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReservePosition":
        return cls(
            asset=data["asset"],
            symbol=data["symbol"],
            amount=Decimal(data["amount"]),
            value_base=Decimal(data["valueBase"]),
            rate=Decimal(data["rate"]),
            usage_as_collateral=bool(data.get("usageAsCollateral", False)),
        )


@dataclass(frozen=True)
class NormalizedAccountState:
    """Normalized Aave account state for one address on one network.

    Monetary fields are in the protocol's base currency (USD).
    ``liquidation_threshold`` and ``loan_to_value`` are fractions (0.8 = 80%).
    ``health_factor`` is ``Decimal("Infinity")`` when the account has no debt.
    """

    address: str
    network_id: int
    total_collateral: Decimal
    total_debt: Decimal
    available_borrows: Decimal
    liquidation_threshold: Decimal
    loan_to_value: Decimal
    health_factor: Decimal

    supply_positions: List[ReservePosition] = field(default_factory=list)
    borrow_positions: List[ReservePosition] = field(default_factory=list)

    read_at: datetime = field(default_factory=_utcnow)

    @property
    def has_infinite_health(self) -> bool:
        """True when the health factor is the infinite sentinel."""
        return self.health_factor == HEALTH_FACTOR_INFINITE

    @property
    def has_debt(self) -> bool:
        return self.total_debt > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the JSON read contract and the durable cache."""
        return {
            "address": self.address,
            "networkId": self.network_id,
            "totalCollateral": str(self.total_collateral),
            "totalDebt": str(self.total_debt),
            "availableBorrows": str(self.available_borrows),
            "liquidationThreshold": str(self.liquidation_threshold),
            "loanToValue": str(self.loan_to_value),
            "healthFactor": str(self.health_factor),
            "supplyPositions": [p.to_dict() for p in self.supply_positions],
            "borrowPositions": [p.to_dict() for p in self.borrow_positions],
            "readAt": self.read_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedAccountState":
        return cls(
            address=data["address"],
            network_id=int(data["networkId"]),
            total_collateral=Decimal(data["totalCollateral"]),
            total_debt=Decimal(data["totalDebt"]),
            available_borrows=Decimal(data["availableBorrows"]),
            liquidation_threshold=Decimal(data["liquidationThreshold"]),
            loan_to_value=Decimal(data["loanToValue"]),
            health_factor=Decimal(data["healthFactor"]),
            supply_positions=[ReservePosition.from_dict(p) for p in data.get("supplyPositions", [])],
            borrow_positions=[ReservePosition.from_dict(p) for p in data.get("borrowPositions", [])],
            read_at=datetime.fromisoformat(data["readAt"]),
        )


@dataclass(frozen=True)
class Freshness:
    """Where a value came from and when it was produced."""

    from_cache: bool
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"fromCache": self.from_cache, "lastUpdated": self.last_updated.isoformat()}


@dataclass(frozen=True)
class AccountStateResult:
    """Account state annotated with freshness metadata."""

    state: NormalizedAccountState
    freshness: Freshness

    def to_dict(self) -> Dict[str, Any]:
        payload = self.state.to_dict()
        payload.update(self.freshness.to_dict())
        return payload
