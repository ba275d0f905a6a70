"""Generic constants for fixed-point conversions and health factor handling.

These constants are protocol-agnostic and shared by the reader, analytics and cache.
"""

from decimal import Decimal

# Time constants
SECONDS_PER_YEAR = 365 * 24 * 3600

# Precision constants
WAD = 10**18  # 18 decimal precision (health factor)
RAY = 10**27  # 27 decimal precision (Aave rates)
BASE_CURRENCY_DECIMALS = 8  # Aave oracle base currency (USD, 8 decimals)
PERCENTAGE_FACTOR = 10_000  # LTV and liquidation threshold are in basis points

# Health factor normalization
HEALTH_FACTOR_INFINITE = Decimal("Infinity")
HEALTH_FACTOR_SANITY_BOUND = Decimal("1e50")
NEGLIGIBLE_DEBT = Decimal("0.01")  # base currency units
