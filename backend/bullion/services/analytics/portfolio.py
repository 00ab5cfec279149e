# backend/bullion/services/analytics/portfolio.py
"""
Portfolio aggregate statistics.

Pure function of already computed inputs: the holdings, each asset's latest
sell price and the portfolio curve (for the day change). No I/O.

Formulas:
    Total Value = Σ quantity × latest sell price
    Cost Basis = Σ quantity × purchase price
    Unrealized Gain = Total Value - Cost Basis
    Unrealized Gain % = Unrealized Gain / Cost Basis × 100 (0 if no cost basis)
    Allocation % (asset) = asset value / Total Value × 100
        (only assets with a non-zero value; rounded to 8 places, the
        remainder goes to the largest slice so the shares sum to exactly 100)
"""

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import timezone, tzinfo
from decimal import ROUND_HALF_EVEN, Decimal

from bullion.services.analytics.curve import calculate_day_change
from bullion.services.analytics.types import (
    AllocationSlice,
    AssetHolding,
    CurvePoint,
    PortfolioStats,
)
from bullion.services.constants import HUNDRED, PERCENT_QUANTUM, ZERO


def aggregate_portfolio_stats(
        holdings: Sequence[AssetHolding],
        latest_prices: Mapping[int, Decimal | None],
        curve: Sequence[CurvePoint] = (),
        tz: tzinfo = timezone.utc,
) -> PortfolioStats:
    """
    Aggregate holdings and latest prices into portfolio figures.

    Args:
        holdings: Assets with quantity and unit cost
        latest_prices: Asset id → latest sell price per unit. Missing or None
            means the asset has not been priced yet and is worth 0.
        curve: Portfolio value curve, used for the day change
        tz: Timezone defining calendar days for the day change

    Returns:
        PortfolioStats (all zero for an empty portfolio)
    """
    if not holdings:
        return PortfolioStats()

    values: dict[int, Decimal] = {}
    metal_values: dict[str, Decimal] = defaultdict(lambda: ZERO)
    total_cost = ZERO

    for holding in holdings:
        price = latest_prices.get(holding.asset_id)
        value = holding.quantity * price if price is not None else ZERO
        values[holding.asset_id] = value
        metal_values[holding.metal.value] += value
        total_cost += holding.cost_basis

    total_value = sum(values.values(), ZERO)
    gain = total_value - total_cost
    gain_percent = gain / total_cost * HUNDRED if total_cost != ZERO else ZERO

    return PortfolioStats(
        total_value=total_value,
        total_cost_basis=total_cost,
        unrealized_gain=gain,
        unrealized_gain_percent=gain_percent,
        allocation_by_asset=_allocation(
            {str(asset_id): value for asset_id, value in values.items()},
            total_value,
        ),
        allocation_by_metal=_allocation(metal_values, total_value),
        day_change=calculate_day_change(curve, tz),
        asset_count=len(holdings),
    )


def _allocation(values: Mapping[str, Decimal], total: Decimal) -> list[AllocationSlice]:
    """
    Share of each non-zero entry in total, largest first.

    Percentages are rounded to PERCENT_QUANTUM and the rounding remainder
    goes to the largest slice, so the shares add up to exactly 100.
    """
    if total == ZERO:
        return []

    slices = [
        AllocationSlice(
            key=key,
            value=value,
            percent=(value / total * HUNDRED).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_EVEN),
        )
        for key, value in values.items()
        if value != ZERO
    ]
    slices.sort(key=lambda s: s.value, reverse=True)

    remainder = HUNDRED - sum((s.percent for s in slices), ZERO)
    if slices and remainder != ZERO:
        largest = slices[0]
        slices[0] = replace(largest, percent=largest.percent + remainder)
    return slices
