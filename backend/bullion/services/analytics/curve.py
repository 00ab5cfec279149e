# backend/bullion/services/analytics/curve.py
"""
Portfolio value curve.

The curve has one point per distinct timestamp across all assets' series.
At each timestamp every asset contributes quantity × its last known sell
price at or before that timestamp (carried forward); an asset that has not
been observed yet contributes 0.

The per-asset series are merged with heapq.merge and the total is updated
incrementally, so building the curve is O(N log A) for N points over A
assets instead of re-summing every asset at every timestamp.
"""

import heapq
import logging
from bisect import bisect_left
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone, tzinfo
from decimal import Decimal

from bullion.services.analytics.types import AssetHolding, CurvePoint, DayChange, PricePoint
from bullion.services.constants import HUNDRED, ZERO

logger = logging.getLogger(__name__)


def build_portfolio_curve(
        per_asset_series: Mapping[int, Sequence[PricePoint]],
        holdings: Sequence[AssetHolding],
) -> list[CurvePoint]:
    """
    Build the total-value curve of the portfolio.

    Args:
        per_asset_series: Asset id → price points ascending by timestamp
        holdings: Quantities per asset. Series of assets without a holding
            are ignored.

    Returns:
        Curve points ascending by timestamp (empty if there is no history)
    """
    quantities = {h.asset_id: h.quantity for h in holdings}
    streams = [
        series
        for asset_id, series in per_asset_series.items()
        if asset_id in quantities and series
    ]
    if not streams:
        return []

    last_price: dict[int, Decimal] = {}
    total = ZERO
    curve: list[CurvePoint] = []
    current_ts: datetime | None = None

    for point in heapq.merge(*streams, key=lambda p: p.timestamp):
        if current_ts is not None and point.timestamp != current_ts:
            curve.append(CurvePoint(timestamp=current_ts, total_value=total))
        current_ts = point.timestamp

        quantity = quantities[point.asset_id]
        previous = last_price.get(point.asset_id)
        if previous is not None:
            total -= quantity * previous
        total += quantity * point.sell_price
        last_price[point.asset_id] = point.sell_price

    curve.append(CurvePoint(timestamp=current_ts, total_value=total))
    return curve


def calculate_day_change(
        curve: Sequence[CurvePoint],
        tz: tzinfo = timezone.utc,
) -> DayChange:
    """
    Change of the latest curve value against the previous day's close.

    The previous close is the last point strictly before midnight (in `tz`)
    of the latest point's calendar day. Without such a point the change is 0.
    """
    if not curve:
        return DayChange()

    latest = curve[-1]
    local = latest.timestamp.astimezone(tz)
    start_of_day = local.replace(hour=0, minute=0, second=0, microsecond=0)

    index = bisect_left(curve, start_of_day, key=lambda p: p.timestamp)
    if index == 0:
        return DayChange()

    previous = curve[index - 1]
    diff = latest.total_value - previous.total_value
    percent = diff / previous.total_value * HUNDRED if previous.total_value != ZERO else ZERO
    return DayChange(absolute=diff, percent=percent)
