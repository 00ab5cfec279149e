# backend/bullion/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Are easily testable via dependency injection

Usage:
    from bullion.services import PriceSyncService
    from bullion.services import AnalyticsService
    from bullion.services import BackupService
    from bullion.services import (
        AssetNotFoundError,
        SourceUnavailableError,
        UnsupportedBackupVersionError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Business constants
    ├── history_store.py             # Asset/history reads and the commit step
    ├── backup.py                    # Export, restore, backup files
    ├── analytics/                   # Pure analytics + AnalyticsService
    │   ├── types.py                 # Value objects
    │   ├── historical.py            # Historical stats
    │   ├── curve.py                 # Portfolio value curve, day change
    │   ├── portfolio.py             # Portfolio aggregate stats
    │   └── service.py               # Orchestrator over the store
    └── pricing/                     # Price sources and sync
        ├── base.py                  # Source interfaces and quote types
        ├── goldapi.py               # Spot price source
        ├── retailer.py              # Retailer catalog source
        └── sync_service.py          # PriceSyncService
"""

# Exceptions
from bullion.services.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    AssetNotFoundError,
    PriceSourceError,
    SourceUnavailableError,
    MalformedPayloadError,
    SourceRejectedError,
    NoQuoteForKeyError,
    BackupError,
    InvalidBackupError,
    UnsupportedBackupVersionError,
)
# Store
from bullion.services.history_store import PriceHistoryStore, AssetLockRegistry, StoreSnapshot
# Pricing
from bullion.services.pricing import (
    SpotPriceSource,
    RetailerPriceSource,
    GoldApiSource,
    PhiloroRetailerSource,
    PriceSyncService,
    SyncReport,
    SyncFailure,
    FailureReason,
)
# Analytics
from bullion.services.analytics.service import AnalyticsService
# Backup
from bullion.services.backup import BackupService, RestoreResult

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "PriceHistoryStore",
    "AssetLockRegistry",
    "StoreSnapshot",
    # Pricing
    "SpotPriceSource",
    "RetailerPriceSource",
    "GoldApiSource",
    "PhiloroRetailerSource",
    "PriceSyncService",
    "SyncReport",
    "SyncFailure",
    "FailureReason",
    # Analytics
    "AnalyticsService",
    # Backup
    "BackupService",
    "RestoreResult",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "AssetNotFoundError",
    "PriceSourceError",
    "SourceUnavailableError",
    "MalformedPayloadError",
    "SourceRejectedError",
    "NoQuoteForKeyError",
    "BackupError",
    "InvalidBackupError",
    "UnsupportedBackupVersionError",
]
