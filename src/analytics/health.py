"""Derived health metrics for an Aave account.

All metrics are deterministic functions of a NormalizedAccountState and are
recomputed on every health update, never stored on their own.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Tuple

from src.core.models import DerivedHealthMetrics, LiquidationRisk, NormalizedAccountState

# (minimum health factor, score), checked from the top
HEALTH_SCORE_TABLE: List[Tuple[Decimal, int]] = [
    (Decimal("2.0"), 100),
    (Decimal("1.5"), 85),
    (Decimal("1.2"), 70),
    (Decimal("1.0"), 50),
    (Decimal("0.8"), 25),
]

LIQUIDATION_RISK_TABLE: List[Tuple[Decimal, LiquidationRisk]] = [
    (Decimal("2.0"), LiquidationRisk.VERY_LOW),
    (Decimal("1.5"), LiquidationRisk.LOW),
    (Decimal("1.2"), LiquidationRisk.MODERATE),
    (Decimal("1.0"), LiquidationRisk.HIGH),
]

DIVERSIFICATION_BONUS = 5
HIGH_LTV_THRESHOLD = Decimal("0.8")  # debt / collateral
HIGH_LTV_PENALTY = 10


class HealthMetricsCalculator:
    """Computes health score, liquidation risk and capital efficiency."""

    @staticmethod
    def base_score(health_factor: Decimal) -> int:
        """Score from the health factor threshold table alone."""
        for minimum, score in HEALTH_SCORE_TABLE:
            if health_factor >= minimum:
                return score
        return 0

    def health_score(self, state: NormalizedAccountState) -> int:
        """
        Calculate a 0-100 health score.

        The table score gets a bonus when the account holds more than one
        supply or borrow position and a penalty when its debt is above 80%
        of its collateral. The configured max LTV of the account is not used.
        """
        score = self.base_score(state.health_factor)

        if len(state.supply_positions) > 1 or len(state.borrow_positions) > 1:
            score = min(100, score + DIVERSIFICATION_BONUS)

        if self.current_ltv(state) > HIGH_LTV_THRESHOLD:
            score = max(0, score - HIGH_LTV_PENALTY)

        return max(0, min(100, score))

    @staticmethod
    def current_ltv(state: NormalizedAccountState) -> Decimal:
        """Borrowed share of collateral, 0 without collateral."""
        if state.total_collateral == 0:
            return Decimal("0")
        return state.total_debt / state.total_collateral

    @staticmethod
    def liquidation_risk(state: NormalizedAccountState) -> LiquidationRisk:
        for minimum, risk in LIQUIDATION_RISK_TABLE:
            if state.health_factor >= minimum:
                return risk
        return LiquidationRisk.CRITICAL

    @staticmethod
    def capital_efficiency(state: NormalizedAccountState) -> int:
        """Share of collateral that is borrowed against or locked, 0-100."""
        if state.total_collateral == 0:
            return 0
        utilized = state.total_debt + (state.total_collateral - state.available_borrows)
        efficiency = utilized / state.total_collateral * 100
        efficiency = min(Decimal("100"), max(Decimal("0"), efficiency))
        return int(efficiency.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def calculate(self, state: NormalizedAccountState) -> DerivedHealthMetrics:
        return DerivedHealthMetrics(
            health_score=self.health_score(state),
            liquidation_risk=self.liquidation_risk(state),
            capital_efficiency=self.capital_efficiency(state),
        )
