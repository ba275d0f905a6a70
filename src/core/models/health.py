"""Derived health metric data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from .account import NormalizedAccountState


class LiquidationRisk(Enum):
    """Liquidation risk buckets, from safest to most exposed."""

    VERY_LOW = "very_low"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DerivedHealthMetrics:
    """Scores computed deterministically from a NormalizedAccountState."""

    health_score: int  # 0-100
    liquidation_risk: LiquidationRisk
    capital_efficiency: int  # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthScore": self.health_score,
            "liquidationRisk": self.liquidation_risk.value,
            "capitalEfficiency": self.capital_efficiency,
        }


@dataclass(frozen=True)
class HealthSnapshot:
    """An account state and its derived metrics, cached as one value."""

    state: NormalizedAccountState
    metrics: DerivedHealthMetrics
    last_updated: datetime

    @property
    def network_id(self) -> int:
        return self.state.network_id

    def to_dict(self) -> Dict[str, Any]:
        payload = self.state.to_dict()
        payload.update(self.metrics.to_dict())
        payload["lastUpdated"] = self.last_updated.isoformat()
        payload["chainId"] = self.state.network_id
        return payload
