# backend/bullion/routers/analytics.py
"""
Portfolio analytics endpoints.

- GET /portfolio/curve        - Portfolio value over time
- GET /portfolio/curve/stats  - Historical statistics of the portfolio curve
- GET /portfolio/stats        - Totals, unrealized gain, allocation, day change

All figures are computed on request from the stored price history; nothing
here writes to the database. Per-asset statistics live under
/assets/{id}/stats.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bullion.database import get_db
from bullion.dependencies import get_analytics_service
from bullion.schemas.analytics import (
    AllocationSliceResponse,
    CurvePointResponse,
    DayChangeResponse,
    HistoricalStatsResponse,
    PortfolioCurveResponse,
    PortfolioStatsResponse,
)
from bullion.services.analytics import AllocationSlice, HistoricalStats
from bullion.services.analytics.service import AnalyticsService

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/portfolio",
    tags=["Analytics"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _decimal_to_str(value: Decimal) -> str:
    """Convert Decimal to string for JSON response, preserving precision."""
    if isinstance(value, int):
        value = Decimal(value)
    # Normalize drops trailing zeros; fixed-point keeps "100" from becoming "1E+2"
    return format(value.normalize(), "f")


def map_historical_stats(stats: HistoricalStats) -> HistoricalStatsResponse:
    """Map internal HistoricalStats to Pydantic schema."""
    return HistoricalStatsResponse(
        all_time_high=_decimal_to_str(stats.all_time_high),
        all_time_high_date=stats.all_time_high_date,
        all_time_low=_decimal_to_str(stats.all_time_low),
        all_time_low_date=stats.all_time_low_date,
        best_period_absolute=_decimal_to_str(stats.best_period_absolute),
        best_period_percent=_decimal_to_str(stats.best_period_percent),
        best_period_date=stats.best_period_date,
        worst_period_absolute=_decimal_to_str(stats.worst_period_absolute),
        worst_period_percent=_decimal_to_str(stats.worst_period_percent),
        worst_period_date=stats.worst_period_date,
        max_drawdown_percent=_decimal_to_str(stats.max_drawdown_percent),
        total_return_percent=_decimal_to_str(stats.total_return_percent),
    )


def _map_slice(item: AllocationSlice) -> AllocationSliceResponse:
    return AllocationSliceResponse(
        key=item.key,
        value=_decimal_to_str(item.value),
        percent=_decimal_to_str(item.percent),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/curve",
    response_model=PortfolioCurveResponse,
    summary="Get the portfolio value curve",
)
def get_portfolio_curve(
        db: Session = Depends(get_db),
        service: AnalyticsService = Depends(get_analytics_service),
) -> PortfolioCurveResponse:
    """
    One point per distinct price timestamp across all assets.

    Each point values every asset at its latest price at or before that
    timestamp (assets without a price yet count as zero), times quantity.
    """
    curve = service.get_portfolio_curve(db)
    return PortfolioCurveResponse(
        points=[
            CurvePointResponse(
                timestamp=point.timestamp,
                total_value=_decimal_to_str(point.total_value),
            )
            for point in curve
        ]
    )


@router.get(
    "/curve/stats",
    response_model=HistoricalStatsResponse,
    summary="Get historical statistics of the portfolio curve",
)
def get_portfolio_curve_stats(
        db: Session = Depends(get_db),
        service: AnalyticsService = Depends(get_analytics_service),
) -> HistoricalStatsResponse:
    """Same statistics as /assets/{id}/stats, computed over the portfolio value."""
    return map_historical_stats(service.get_portfolio_curve_stats(db))


@router.get(
    "/stats",
    response_model=PortfolioStatsResponse,
    summary="Get aggregate portfolio statistics",
)
def get_portfolio_stats(
        db: Session = Depends(get_db),
        service: AnalyticsService = Depends(get_analytics_service),
) -> PortfolioStatsResponse:
    """
    Aggregate figures over all assets.

    - **total_value**: Σ latest sell price × quantity
    - **unrealized_gain**: total value minus cost basis
    - **allocation_by_asset / allocation_by_metal**: shares of total value
    - **day_change**: latest curve value against the last value before today (UTC)
    """
    stats = service.get_portfolio_stats(db)
    return PortfolioStatsResponse(
        total_value=_decimal_to_str(stats.total_value),
        total_cost_basis=_decimal_to_str(stats.total_cost_basis),
        unrealized_gain=_decimal_to_str(stats.unrealized_gain),
        unrealized_gain_percent=_decimal_to_str(stats.unrealized_gain_percent),
        allocation_by_asset=[_map_slice(item) for item in stats.allocation_by_asset],
        allocation_by_metal=[_map_slice(item) for item in stats.allocation_by_metal],
        day_change=DayChangeResponse(
            absolute=_decimal_to_str(stats.day_change.absolute),
            percent=_decimal_to_str(stats.day_change.percent),
        ),
        asset_count=stats.asset_count,
    )
