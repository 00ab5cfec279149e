# backend/bullion/routers/sync.py
"""
Price sync endpoints.

- POST /sync - Refresh prices from the spot API and the retailer catalog

A sync cycle never fails as a whole because of one asset or one source:
per-asset outcomes are returned in the report (updated, missing, failed,
cancelled) with an overall status of completed, partial or failed.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bullion.database import get_db
from bullion.dependencies import get_history_store, get_sync_service
from bullion.schemas.sync import SyncFailureResponse, SyncReportResponse, SyncRequest
from bullion.services.history_store import PriceHistoryStore
from bullion.services.pricing import PriceSyncService, SyncReport

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/sync",
    tags=["Price Sync"],
)


def map_sync_report(report: SyncReport) -> SyncReportResponse:
    """Map internal SyncReport to Pydantic schema."""
    return SyncReportResponse(
        status=report.status,
        started_at=report.started_at,
        completed_at=report.completed_at,
        updated=report.updated,
        missing=report.missing,
        failed=[
            SyncFailureResponse(
                asset_id=failure.asset_id,
                reason=failure.reason.value,
                message=failure.message,
            )
            for failure in report.failed
        ],
        cancelled=report.cancelled,
        source_calls=report.source_calls,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "",
    response_model=SyncReportResponse,
    summary="Sync asset prices",
    response_description="Per-asset outcome of the sync cycle"
)
def sync_prices(
        sync_request: SyncRequest | None = None,
        db: Session = Depends(get_db),
        store: PriceHistoryStore = Depends(get_history_store),
        service: PriceSyncService = Depends(get_sync_service),
) -> SyncReportResponse:
    """
    Fetch current prices and append one history point per priced asset.

    - Retailer-listed assets are priced in ONE catalog request
    - Spot-priced assets share one request per metal
    - Both sources are queried concurrently

    Send `asset_ids` to refresh only some assets. Raises **404** if one of
    them does not exist.
    """
    assets = None
    if sync_request is not None and sync_request.asset_ids is not None:
        assets = [store.get_asset(db, asset_id) for asset_id in dict.fromkeys(sync_request.asset_ids)]

    logger.info(
        "Sync requested for "
        + ("all assets" if assets is None else f"{len(assets)} assets")
    )
    report = service.sync_all(db, assets=assets)
    return map_sync_report(report)
