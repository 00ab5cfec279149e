# backend/bullion/routers/assets.py
"""
Asset management endpoints.

Provides CRUD operations for precious-metal holdings, their price history
and per-asset historical statistics.

- GET    /assets                 - List assets
- POST   /assets                 - Create an asset (no price until the first sync)
- GET    /assets/{id}            - Get one asset
- PATCH  /assets/{id}            - Update descriptive fields
- DELETE /assets/{id}            - Delete an asset and its history
- GET    /assets/{id}/history    - Price history, oldest first
- POST   /assets/{id}/history    - Manual price entry
- GET    /assets/{id}/stats      - Historical statistics

Note: current_price cannot be set directly. A manual price entry goes through
the same commit step as synced prices.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bullion.database import get_db
from bullion.dependencies import get_analytics_service, get_history_store
from bullion.models import Asset, PriceHistory
from bullion.routers.analytics import map_historical_stats
from bullion.schemas.analytics import AssetStatsResponse
from bullion.schemas.assets import (
    AssetCreate,
    AssetListResponse,
    AssetResponse,
    AssetUpdate,
    PricePointCreate,
    PricePointResponse,
)
from bullion.services.analytics.service import AnalyticsService
from bullion.services.constants import SOURCE_MANUAL
from bullion.services.history_store import PriceHistoryStore

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/assets",
    tags=["Assets"],
)


# =============================================================================
# ASSET ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=AssetListResponse,
    summary="List all assets",
)
def list_assets(
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> AssetListResponse:
    """Every asset, ordered by id."""
    assets = store.list_assets(db)
    return AssetListResponse(items=assets, total=len(assets))


@router.post(
    "",
    response_model=AssetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new asset",
    response_description="The created asset"
)
def create_asset(
        asset: AssetCreate,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> Asset:
    """
    Create a new holding.

    - **retailer_id**: set for products priced from the retailer catalog,
      leave empty for spot-priced holdings
    - **weight_grams** and **purity**: used for spot pricing

    The asset has no current price until its first price point.
    """
    return store.add_asset(db, Asset(**asset.model_dump()))


@router.get(
    "/{asset_id}",
    response_model=AssetResponse,
    summary="Get an asset by ID",
)
def get_asset(
        asset_id: int,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> Asset:
    """Raises **404** if the asset does not exist."""
    return store.get_asset(db, asset_id)


@router.patch(
    "/{asset_id}",
    response_model=AssetResponse,
    summary="Update an asset",
)
def update_asset(
        asset_id: int,
        asset_update: AssetUpdate,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> Asset:
    """
    Update descriptive fields of an asset.

    Only the fields sent are changed. Prices and history are not touched;
    an empty **retailer_id** switches the asset to spot pricing.
    """
    asset = store.get_asset(db, asset_id)

    update_data = asset_update.model_dump(exclude_unset=True)
    if "retailer_id" in update_data and not update_data["retailer_id"]:
        update_data["retailer_id"] = None

    for field, value in update_data.items():
        if value is None and field != "retailer_id":
            continue
        setattr(asset, field, value)

    db.commit()
    db.refresh(asset)
    logger.info(f"Updated asset {asset_id}: {sorted(update_data)}")
    return asset


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an asset",
)
def delete_asset(
        asset_id: int,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> None:
    """Delete an asset. Its price history is deleted with it."""
    store.delete_asset(db, asset_id)


# =============================================================================
# PRICE HISTORY ENDPOINTS
# =============================================================================

@router.get(
    "/{asset_id}/history",
    response_model=list[PricePointResponse],
    summary="Get an asset's price history",
)
def get_history(
        asset_id: int,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> list[PriceHistory]:
    """Price points ordered oldest first."""
    return store.get_history_rows(db, asset_id)


@router.post(
    "/{asset_id}/history",
    response_model=PricePointResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a manual price",
)
def add_manual_price(
        asset_id: int,
        price: PricePointCreate,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
) -> PriceHistory:
    """
    Record a manually entered price.

    The point is appended and the asset's current price updated in one
    transaction. A timestamp earlier than the asset's latest point is
    raised to that point's timestamp.
    """
    row = store.commit_price(
        db,
        asset_id,
        price.timestamp or datetime.now(timezone.utc),
        price.sell_price,
        price.buy_price,
        source=SOURCE_MANUAL,
        is_manual=True,
    )
    logger.info(f"Manual price for asset {asset_id}: {price.sell_price}")
    return row


@router.get(
    "/{asset_id}/stats",
    response_model=AssetStatsResponse,
    summary="Get an asset's historical statistics",
)
def get_asset_stats(
        asset_id: int,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
        service: AnalyticsService = Depends(get_analytics_service),
) -> AssetStatsResponse:
    """
    All-time high/low, best and worst move between two points, maximum
    drawdown and total return of the asset's sell price.

    Assets with fewer than two price points return zeros.
    """
    points = len(store.get_history_rows(db, asset_id))
    stats = service.get_asset_stats(db, asset_id)
    return AssetStatsResponse(
        asset_id=asset_id,
        points=points,
        stats=map_historical_stats(stats),
    )
