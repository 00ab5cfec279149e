# backend/bullion/schemas/analytics.py
"""
Pydantic schemas for the analytics API.

Design decisions:
- All numeric values are serialized as STRINGS to preserve Decimal precision
- Percentages are on a 0-100 scale ("12.5" = 12.5%)
- Dates are null when a statistic has no data (series shorter than 2 points)
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# HISTORICAL STATS
# =============================================================================

class HistoricalStatsResponse(BaseModel):
    """Historical statistics of an asset's price series or of the portfolio curve."""

    model_config = ConfigDict(from_attributes=True)

    all_time_high: str = Field(..., description="Highest value in the series")
    all_time_high_date: datetime | None = None
    all_time_low: str = Field(..., description="Lowest value in the series")
    all_time_low_date: datetime | None = None
    best_period_absolute: str = Field(..., description="Largest rise between two adjacent points")
    best_period_percent: str
    best_period_date: datetime | None = None
    worst_period_absolute: str = Field(..., description="Largest fall between two adjacent points")
    worst_period_percent: str
    worst_period_date: datetime | None = None
    max_drawdown_percent: str = Field(..., description="Largest peak-to-trough decline")
    total_return_percent: str = Field(..., description="First to last point")


class AssetStatsResponse(BaseModel):
    """Historical stats for one asset."""

    asset_id: int
    points: int = Field(..., description="Number of price points considered")
    stats: HistoricalStatsResponse


# =============================================================================
# PORTFOLIO CURVE
# =============================================================================

class CurvePointResponse(BaseModel):
    timestamp: datetime
    total_value: str


class PortfolioCurveResponse(BaseModel):
    """Portfolio value over time (one point per distinct price timestamp)."""

    points: list[CurvePointResponse] = Field(default_factory=list)


# =============================================================================
# PORTFOLIO STATS
# =============================================================================

class AllocationSliceResponse(BaseModel):
    key: str = Field(..., description="Asset id or metal")
    value: str
    percent: str


class DayChangeResponse(BaseModel):
    absolute: str
    percent: str


class PortfolioStatsResponse(BaseModel):
    """Aggregate portfolio figures."""

    total_value: str
    total_cost_basis: str
    unrealized_gain: str
    unrealized_gain_percent: str
    allocation_by_asset: list[AllocationSliceResponse] = Field(default_factory=list)
    allocation_by_metal: list[AllocationSliceResponse] = Field(default_factory=list)
    day_change: DayChangeResponse
    asset_count: int
