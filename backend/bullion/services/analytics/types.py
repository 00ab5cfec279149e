# backend/bullion/services/analytics/types.py
"""
Data types for the analytics calculators.

These are plain value objects computed on demand and never persisted.
All money values use Decimal; percentages are on a 0-100 scale.

Architecture:
    - PricePoint: One history row as read from the store
    - HistoricalStats: Extremes, best/worst move, drawdown, total return
    - CurvePoint: One timestamp of the portfolio value curve
    - DayChange: Change of the latest curve value against the previous day
    - AssetHolding: The slice of an asset the aggregator needs
    - AllocationSlice / PortfolioStats: Aggregate portfolio figures
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from bullion.models import Metal
from bullion.services.constants import ZERO


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class PricePoint:
    """
    A single price observation for one asset.

    Attributes:
        asset_id: Asset the price belongs to
        timestamp: When the price was observed (UTC)
        sell_price: Price the holder would receive per unit
        buy_price: Price the holder would pay per unit
    """
    asset_id: int
    timestamp: datetime
    sell_price: Decimal
    buy_price: Decimal


@dataclass(frozen=True)
class AssetHolding:
    """Quantity and cost basis of one asset."""
    asset_id: int
    name: str
    metal: Metal
    quantity: Decimal
    unit_cost: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.unit_cost


# =============================================================================
# HISTORICAL STATS
# =============================================================================

@dataclass(frozen=True)
class HistoricalStats:
    """
    Statistics over an ordered price (or value) series.

    A series with fewer than two points yields the default instance:
    every number is zero and every date is None.

    Attributes:
        all_time_high / all_time_low: Extremes (earliest timestamp wins ties)
        best_period_* / worst_period_*: Largest rise / fall between adjacent points
        max_drawdown_percent: Largest peak-to-trough decline
        total_return_percent: First point to last point
    """
    all_time_high: Decimal = ZERO
    all_time_high_date: datetime | None = None
    all_time_low: Decimal = ZERO
    all_time_low_date: datetime | None = None
    best_period_absolute: Decimal = ZERO
    best_period_percent: Decimal = ZERO
    best_period_date: datetime | None = None
    worst_period_absolute: Decimal = ZERO
    worst_period_percent: Decimal = ZERO
    worst_period_date: datetime | None = None
    max_drawdown_percent: Decimal = ZERO
    total_return_percent: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return self == HistoricalStats()


# =============================================================================
# PORTFOLIO CURVE
# =============================================================================

@dataclass(frozen=True)
class CurvePoint:
    """Total portfolio value at one timestamp."""
    timestamp: datetime
    total_value: Decimal


@dataclass(frozen=True)
class DayChange:
    """Latest curve value compared with the last value of the previous day."""
    absolute: Decimal = ZERO
    percent: Decimal = ZERO


# =============================================================================
# PORTFOLIO STATS
# =============================================================================

@dataclass(frozen=True)
class AllocationSlice:
    """Share of total portfolio value held in one asset or metal."""
    key: str
    value: Decimal
    percent: Decimal


@dataclass
class PortfolioStats:
    """
    Aggregate portfolio figures.

    Attributes:
        total_value: Σ quantity × latest sell price
        total_cost_basis: Σ quantity × purchase price
        unrealized_gain: total_value - total_cost_basis
        unrealized_gain_percent: unrealized_gain / total_cost_basis × 100
        allocation_by_asset: Asset id → share of value (non-zero assets only)
        allocation_by_metal: Metal → share of value
        day_change: Change of the curve's latest value against the previous day
        asset_count: Number of holdings considered
    """
    total_value: Decimal = ZERO
    total_cost_basis: Decimal = ZERO
    unrealized_gain: Decimal = ZERO
    unrealized_gain_percent: Decimal = ZERO
    allocation_by_asset: list[AllocationSlice] = field(default_factory=list)
    allocation_by_metal: list[AllocationSlice] = field(default_factory=list)
    day_change: DayChange = field(default_factory=DayChange)
    asset_count: int = 0
