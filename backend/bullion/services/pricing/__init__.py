# backend/bullion/services/pricing/__init__.py
"""
Pricing package.

Architecture:
    pricing/
    ├── base.py              # Source interfaces, quote types, retry helper
    ├── goldapi.py           # Spot prices (goldapi.io)
    ├── retailer.py          # Retailer catalog prices (philoro)
    └── sync_service.py      # PriceSyncService (coordinates one refresh)
"""

from bullion.services.pricing.base import (
    PriceQuote,
    RetailerCatalog,
    RetailerPriceSource,
    RetailerProduct,
    ScrapedQuote,
    SpotPriceResponse,
    SpotPriceSource,
    SpotQuote,
)
from bullion.services.pricing.goldapi import GoldApiSource
from bullion.services.pricing.retailer import PhiloroRetailerSource
from bullion.services.pricing.sync_service import (
    AssetSyncInfo,
    FailureReason,
    PriceSyncService,
    SyncFailure,
    SyncReport,
)

__all__ = [
    # Interfaces and quotes
    "PriceQuote",
    "SpotQuote",
    "ScrapedQuote",
    "SpotPriceResponse",
    "RetailerCatalog",
    "RetailerProduct",
    "SpotPriceSource",
    "RetailerPriceSource",
    # Concrete sources
    "GoldApiSource",
    "PhiloroRetailerSource",
    # Sync service
    "PriceSyncService",
    "SyncReport",
    "SyncFailure",
    "FailureReason",
    "AssetSyncInfo",
]
