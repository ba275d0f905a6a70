"""Aave v3 on-chain response parser.

Contains all parsing logic for converting raw fixed-point contract return
values into domain models. Scales:

- base currency amounts: 8 decimals (USD)
- health factor: WAD (1e18)
- rates: RAY (1e27), annualized
- LTV and liquidation threshold: basis points
"""

from decimal import Decimal
from typing import Any, Dict, Sequence

from src.core.constants import (
    BASE_CURRENCY_DECIMALS,
    HEALTH_FACTOR_INFINITE,
    HEALTH_FACTOR_SANITY_BOUND,
    NEGLIGIBLE_DEBT,
    PERCENTAGE_FACTOR,
    RAY,
    WAD,
)
from src.core.models import NormalizedAccountState, ReserveRate
from src.protocols.aave.abis import (
    RESERVE_CONFIGURATION,
    RESERVE_LIQUIDITY_RATE,
    RESERVE_STABLE_BORROW_RATE,
    RESERVE_VARIABLE_BORROW_RATE,
)
from src.protocols.aave.config import (
    RESERVE_ACTIVE_BIT,
    RESERVE_BORROWING_BIT,
    RESERVE_DECIMALS_MASK,
    RESERVE_DECIMALS_START_BIT,
    RESERVE_FROZEN_BIT,
    RESERVE_PAUSED_BIT,
)


class AaveParser:
    """Parser for Aave v3 contract return values."""

    @staticmethod
    def parse_decimal(value: Any) -> Decimal:
        """Safely parse a value to Decimal."""
        if value is None:
            return Decimal("0")
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except Exception:
            return Decimal("0")

    @staticmethod
    def to_units(raw: int, decimals: int) -> Decimal:
        """Convert a raw integer amount to token (or base currency) units."""
        return Decimal(int(raw)) / (Decimal(10) ** decimals)

    @staticmethod
    def ray_to_decimal(raw: int) -> Decimal:
        """Convert a RAY-scaled rate to a decimal (0.05 = 5%)."""
        return Decimal(int(raw)) / Decimal(RAY)

    @staticmethod
    def normalize_health_factor(raw: int, total_debt: Decimal) -> Decimal:
        """Convert a WAD health factor, mapping "no debt" to the infinite sentinel.

        Args:
            raw: Health factor as returned by getUserAccountData
            total_debt: Total debt already converted to base currency units

        Returns:
            Health factor as Decimal, or HEALTH_FACTOR_INFINITE
        """
        if total_debt < NEGLIGIBLE_DEBT:
            return HEALTH_FACTOR_INFINITE
        health_factor = Decimal(int(raw)) / Decimal(WAD)
        if health_factor > HEALTH_FACTOR_SANITY_BOUND:
            return HEALTH_FACTOR_INFINITE
        return health_factor

    @classmethod
    def normalize_account_data(
        cls,
        address: str,
        network_id: int,
        raw: Sequence[int],
    ) -> NormalizedAccountState:
        """Parse a getUserAccountData tuple into a NormalizedAccountState.

        Args:
            address: User address
            network_id: Chain id the data was read from
            raw: (totalCollateralBase, totalDebtBase, availableBorrowsBase,
                  currentLiquidationThreshold, ltv, healthFactor)

        Returns:
            NormalizedAccountState without per-reserve positions
        """
        if len(raw) != 6:
            raise ValueError(f"Expected 6 account data fields, got {len(raw)}")
        collateral_raw, debt_raw, available_raw, threshold_raw, ltv_raw, hf_raw = raw

        total_debt = cls.to_units(debt_raw, BASE_CURRENCY_DECIMALS)
        return NormalizedAccountState(
            address=address,
            network_id=network_id,
            total_collateral=cls.to_units(collateral_raw, BASE_CURRENCY_DECIMALS),
            total_debt=total_debt,
            available_borrows=cls.to_units(available_raw, BASE_CURRENCY_DECIMALS),
            liquidation_threshold=Decimal(int(threshold_raw)) / PERCENTAGE_FACTOR,
            loan_to_value=Decimal(int(ltv_raw)) / PERCENTAGE_FACTOR,
            health_factor=cls.normalize_health_factor(hf_raw, total_debt),
        )

    @staticmethod
    def decode_configuration(word: int) -> Dict[str, Any]:
        """Decode the reserve configuration bitmap.

        Returns:
            Dict with is_active, is_frozen, borrowing_enabled, is_paused, decimals
        """
        word = int(word)
        return {
            "is_active": bool((word >> RESERVE_ACTIVE_BIT) & 1),
            "is_frozen": bool((word >> RESERVE_FROZEN_BIT) & 1),
            "borrowing_enabled": bool((word >> RESERVE_BORROWING_BIT) & 1),
            "is_paused": bool((word >> RESERVE_PAUSED_BIT) & 1),
            "decimals": (word >> RESERVE_DECIMALS_START_BIT) & RESERVE_DECIMALS_MASK,
        }

    @staticmethod
    def configuration_word(reserve_data: Sequence[Any]) -> int:
        """Extract the configuration bitmap from a getReserveData tuple."""
        configuration = reserve_data[RESERVE_CONFIGURATION]
        # web3 returns single-field structs as 1-tuples
        if isinstance(configuration, (tuple, list)):
            configuration = configuration[0]
        return int(configuration)

    @staticmethod
    def is_using_as_collateral(user_configuration: int, reserve_id: int) -> bool:
        """Check the collateral bit of a reserve in the user configuration bitmap."""
        return bool((int(user_configuration) >> (reserve_id * 2 + 1)) & 1)

    @classmethod
    def parse_reserve_rate(
        cls,
        asset: str,
        symbol: str,
        reserve_data: Sequence[Any],
    ) -> ReserveRate:
        """Parse a getReserveData tuple into a ReserveRate."""
        flags = cls.decode_configuration(cls.configuration_word(reserve_data))
        return ReserveRate(
            asset=asset,
            symbol=symbol,
            decimals=flags["decimals"],
            supply_rate=cls.ray_to_decimal(reserve_data[RESERVE_LIQUIDITY_RATE]),
            variable_borrow_rate=cls.ray_to_decimal(reserve_data[RESERVE_VARIABLE_BORROW_RATE]),
            stable_borrow_rate=cls.ray_to_decimal(reserve_data[RESERVE_STABLE_BORROW_RATE]),
            is_active=flags["is_active"],
            is_frozen=flags["is_frozen"],
            is_paused=flags["is_paused"],
            borrowing_enabled=flags["borrowing_enabled"],
        )
