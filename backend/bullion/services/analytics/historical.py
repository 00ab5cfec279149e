# backend/bullion/services/analytics/historical.py
"""
Historical statistics over an ordered price series.

Pure functions; the input must already be sorted ascending by timestamp and
is never re-sorted here. One pass, O(n).

Formulas:
    Period change (i) = p[i] - p[i-1]
    Period change % (i) = (p[i] - p[i-1]) / p[i-1] × 100
        (pairs with p[i-1] == 0 are skipped)

    Drawdown (i) = (peak_i - p[i]) / peak_i × 100
        where peak_i is the running maximum up to i

    Total Return = (p[last] - p[first]) / p[first] × 100
        (0 when p[first] == 0)

Series with fewer than two points produce an all-zero HistoricalStats.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal

from bullion.services.analytics.types import CurvePoint, HistoricalStats, PricePoint
from bullion.services.constants import HUNDRED, ZERO

logger = logging.getLogger(__name__)

# Minimum number of points for any statistic to be meaningful
MIN_POINTS_FOR_STATS = 2


def compute_historical_stats(series: Sequence[PricePoint]) -> HistoricalStats:
    """
    Reduce one asset's price series to its historical statistics.

    Uses sell_price (what the holding is worth) throughout.

    Args:
        series: Price points ascending by timestamp

    Returns:
        HistoricalStats (all zero if the series has fewer than 2 points)
    """
    return _reduce_series((p.timestamp, p.sell_price) for p in series)


def compute_curve_stats(curve: Sequence[CurvePoint]) -> HistoricalStats:
    """Same statistics applied to the portfolio value curve."""
    return _reduce_series((p.timestamp, p.total_value) for p in curve)


def _reduce_series(values: Iterable[tuple[datetime, Decimal]]) -> HistoricalStats:
    iterator = iter(values)

    first = next(iterator, None)
    if first is None:
        return HistoricalStats()

    first_ts, first_value = first

    ath, ath_date = first_value, first_ts
    atl, atl_date = first_value, first_ts

    best_abs: Decimal | None = None
    best_pct = ZERO
    best_date: datetime | None = None
    worst_abs: Decimal | None = None
    worst_pct = ZERO
    worst_date: datetime | None = None

    peak = first_value
    max_drawdown = ZERO

    prev_value = first_value
    last_value = first_value
    count = 1

    for timestamp, value in iterator:
        count += 1

        # Strict comparisons keep the earliest timestamp on ties
        if value > ath:
            ath, ath_date = value, timestamp
        if value < atl:
            atl, atl_date = value, timestamp

        if prev_value != ZERO:
            change = value - prev_value
            change_pct = change / prev_value * HUNDRED
            if best_abs is None or change > best_abs:
                best_abs, best_pct, best_date = change, change_pct, timestamp
            if worst_abs is None or change < worst_abs:
                worst_abs, worst_pct, worst_date = change, change_pct, timestamp

        if value > peak:
            peak = value
        if peak > ZERO:
            drawdown = (peak - value) / peak * HUNDRED
            if drawdown > max_drawdown:
                max_drawdown = drawdown

        prev_value = value
        last_value = value

    if count < MIN_POINTS_FOR_STATS:
        return HistoricalStats()

    total_return = ZERO
    if first_value != ZERO:
        total_return = (last_value - first_value) / first_value * HUNDRED

    return HistoricalStats(
        all_time_high=ath,
        all_time_high_date=ath_date,
        all_time_low=atl,
        all_time_low_date=atl_date,
        best_period_absolute=best_abs if best_abs is not None else ZERO,
        best_period_percent=best_pct,
        best_period_date=best_date,
        worst_period_absolute=worst_abs if worst_abs is not None else ZERO,
        worst_period_percent=worst_pct,
        worst_period_date=worst_date,
        max_drawdown_percent=max_drawdown,
        total_return_percent=total_return,
    )
