# backend/bullion/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

Organized by domain:
- analytics: Historical stats, portfolio curve and portfolio stats
- assets: Asset CRUD and price history entries
- backup: Backup bundle format
- errors: Error response format
- sync: Price sync report

Schemas never import from bullion.services; the routers translate between
service objects and schemas.

Usage:
    from bullion.schemas import AssetCreate, AssetResponse
    from bullion.schemas import BackupData
    from bullion.schemas import SyncReportResponse
"""

from bullion.schemas.analytics import (
    HistoricalStatsResponse,
    AssetStatsResponse,
    CurvePointResponse,
    PortfolioCurveResponse,
    AllocationSliceResponse,
    DayChangeResponse,
    PortfolioStatsResponse,
)
from bullion.schemas.assets import (
    AssetCreate,
    AssetUpdate,
    AssetResponse,
    AssetListResponse,
    PricePointCreate,
    PricePointResponse,
)
from bullion.schemas.backup import (
    BackupAsset,
    BackupPricePoint,
    BackupData,
    BackupFileInfo,
    RestoreResponse,
)
from bullion.schemas.errors import ErrorDetail
from bullion.schemas.sync import SyncRequest, SyncFailureResponse, SyncReportResponse

__all__ = [
    # Analytics
    "HistoricalStatsResponse",
    "AssetStatsResponse",
    "CurvePointResponse",
    "PortfolioCurveResponse",
    "AllocationSliceResponse",
    "DayChangeResponse",
    "PortfolioStatsResponse",
    # Assets
    "AssetCreate",
    "AssetUpdate",
    "AssetResponse",
    "AssetListResponse",
    "PricePointCreate",
    "PricePointResponse",
    # Backup
    "BackupAsset",
    "BackupPricePoint",
    "BackupData",
    "BackupFileInfo",
    "RestoreResponse",
    # Errors
    "ErrorDetail",
    # Sync
    "SyncRequest",
    "SyncFailureResponse",
    "SyncReportResponse",
]
