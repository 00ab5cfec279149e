# backend/bullion/routers/__init__.py
"""
API routers for the Bullion Portfolio Tracker.

Each router handles a specific domain:
- assets: Holdings, their price history and per-asset stats
- sync: Price refresh from the spot API and the retailer catalog
- analytics: Portfolio curve and aggregate stats
- backup: Export, restore and backup files
"""

from bullion.routers.analytics import router as analytics_router
from bullion.routers.assets import router as assets_router
from bullion.routers.backup import router as backup_router
from bullion.routers.sync import router as sync_router

__all__ = [
    "assets_router",
    "sync_router",
    "analytics_router",
    "backup_router",
]
