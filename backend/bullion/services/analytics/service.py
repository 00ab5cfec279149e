# backend/bullion/services/analytics/service.py
"""
Analytics Service - orchestrates the analytics calculations.

This service:
1. Reads a snapshot of assets and price history through PriceHistoryStore
2. Converts ORM rows into plain value objects
3. Delegates to the pure calculators (historical, curve, portfolio)

It holds no state between calls and never writes to the database.

Usage:
    service = AnalyticsService()
    stats = service.get_asset_stats(db, asset_id=1)
    curve = service.get_portfolio_curve(db)
    summary = service.get_portfolio_stats(db)
"""

import logging
from datetime import timezone, tzinfo
from decimal import Decimal

from sqlalchemy.orm import Session

from bullion.models import Asset
from bullion.services.analytics.curve import build_portfolio_curve
from bullion.services.analytics.historical import compute_curve_stats, compute_historical_stats
from bullion.services.analytics.portfolio import aggregate_portfolio_stats
from bullion.services.analytics.types import (
    AssetHolding,
    CurvePoint,
    HistoricalStats,
    PortfolioStats,
)
from bullion.services.history_store import PriceHistoryStore, StoreSnapshot

logger = logging.getLogger(__name__)


def _to_holding(asset: Asset) -> AssetHolding:
    return AssetHolding(
        asset_id=asset.id,
        name=asset.name,
        metal=asset.metal,
        quantity=Decimal(asset.quantity),
        unit_cost=Decimal(asset.purchase_price),
    )


class AnalyticsService:
    """
    Read-only analytics over the price history store.

    Attributes:
        _store: Data access for assets and history
        _tz: Timezone that defines calendar days for the day change
    """

    def __init__(
            self,
            store: PriceHistoryStore | None = None,
            tz: tzinfo = timezone.utc,
    ) -> None:
        self._store = store or PriceHistoryStore()
        self._tz = tz

    # =========================================================================
    # ASSET LEVEL
    # =========================================================================

    def get_asset_stats(self, db: Session, asset_id: int) -> HistoricalStats:
        """
        Historical statistics of one asset's price series.

        Raises:
            AssetNotFoundError: Unknown asset id
        """
        series = self._store.get_history_for_asset(db, asset_id)
        stats = compute_historical_stats(series)
        logger.debug(f"Asset {asset_id}: stats over {len(series)} points")
        return stats

    # =========================================================================
    # PORTFOLIO LEVEL
    # =========================================================================

    def get_portfolio_curve(self, db: Session) -> list[CurvePoint]:
        snapshot = self._store.snapshot(db)
        return self._build_curve(snapshot)

    def get_portfolio_curve_stats(self, db: Session) -> HistoricalStats:
        """Historical statistics of the portfolio value curve."""
        return compute_curve_stats(self.get_portfolio_curve(db))

    def get_portfolio_stats(self, db: Session) -> PortfolioStats:
        """Totals, gain, allocation and day change over all assets."""
        snapshot = self._store.snapshot(db)
        curve = self._build_curve(snapshot)

        holdings = [_to_holding(asset) for asset in snapshot.assets]
        latest_prices = {
            asset.id: (
                snapshot.series[asset.id][-1].sell_price
                if snapshot.series.get(asset.id)
                else None
            )
            for asset in snapshot.assets
        }

        stats = aggregate_portfolio_stats(holdings, latest_prices, curve, tz=self._tz)
        logger.info(
            f"Portfolio stats: {stats.asset_count} assets, "
            f"value={stats.total_value}, gain={stats.unrealized_gain}"
        )
        return stats

    def _build_curve(self, snapshot: StoreSnapshot) -> list[CurvePoint]:
        holdings = [_to_holding(asset) for asset in snapshot.assets]
        return build_portfolio_curve(snapshot.series, holdings)
