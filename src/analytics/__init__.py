"""Analytics module - derived account metrics."""

from .health import HealthMetricsCalculator

__all__ = ["HealthMetricsCalculator"]
