# backend/bullion/services/analytics/__init__.py
"""
Analytics package.

Pure calculators over price history:
- Historical stats (extremes, best/worst period, drawdown, total return)
- Portfolio value curve (carried-forward prices, merged across assets)
- Portfolio aggregate stats (value, cost basis, gain, allocation, day change)

Architecture:
    analytics/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Value objects
    ├── historical.py            # compute_historical_stats, compute_curve_stats
    ├── curve.py                 # build_portfolio_curve, calculate_day_change
    ├── portfolio.py             # aggregate_portfolio_stats
    └── service.py               # AnalyticsService (reads the store)

AnalyticsService depends on the history store, which itself uses the value
objects defined here, so it is imported from its module:

    from bullion.services.analytics.service import AnalyticsService
"""

from bullion.services.analytics.curve import build_portfolio_curve, calculate_day_change
from bullion.services.analytics.historical import compute_curve_stats, compute_historical_stats
from bullion.services.analytics.portfolio import aggregate_portfolio_stats
from bullion.services.analytics.types import (
    AllocationSlice,
    AssetHolding,
    CurvePoint,
    DayChange,
    HistoricalStats,
    PortfolioStats,
    PricePoint,
)

__all__ = [
    # Calculators
    "compute_historical_stats",
    "compute_curve_stats",
    "build_portfolio_curve",
    "calculate_day_change",
    "aggregate_portfolio_stats",
    # Types
    "PricePoint",
    "HistoricalStats",
    "CurvePoint",
    "DayChange",
    "AssetHolding",
    "AllocationSlice",
    "PortfolioStats",
]
