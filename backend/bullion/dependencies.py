# backend/bullion/dependencies.py
"""
Dependency injection module for FastAPI services.

This module provides singleton service instances that are shared across
all requests. Sharing matters here: the price sources keep their HTTP
connection pools, and every service shares one PriceHistoryStore and
therefore one per-asset lock registry.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from bullion.dependencies import get_sync_service

    @router.post("/sync")
    def sync_prices(
        db: Session = Depends(get_db),
        service: PriceSyncService = Depends(get_sync_service),
    ):
        ...

Tests replace any of these with app.dependency_overrides.
"""

import logging
from functools import lru_cache

from bullion.services.analytics.service import AnalyticsService
from bullion.services.backup import BackupService
from bullion.services.history_store import PriceHistoryStore
from bullion.services.pricing import (
    GoldApiSource,
    PhiloroRetailerSource,
    PriceSyncService,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_history_store (no deps)
# 2. get_spot_source, get_retailer_source (no deps)
# 3. get_sync_service (store + both sources)
# 4. get_analytics_service, get_backup_service (store)


@lru_cache(maxsize=1)
def get_history_store() -> PriceHistoryStore:
    """
    Get the singleton PriceHistoryStore.

    Holds the process-wide per-asset lock registry used by commit_price.
    """
    logger.debug("Initializing singleton PriceHistoryStore")
    return PriceHistoryStore()


@lru_cache(maxsize=1)
def get_spot_source() -> GoldApiSource:
    logger.debug("Initializing singleton GoldApiSource")
    return GoldApiSource()


@lru_cache(maxsize=1)
def get_retailer_source() -> PhiloroRetailerSource:
    logger.debug("Initializing singleton PhiloroRetailerSource")
    return PhiloroRetailerSource()


@lru_cache(maxsize=1)
def get_sync_service() -> PriceSyncService:
    """
    Get the singleton PriceSyncService instance.

    Uses the shared sources and store, so concurrent sync requests and
    manual price entries serialize on the same per-asset locks.
    """
    logger.debug("Initializing singleton PriceSyncService")
    return PriceSyncService(
        spot_source=get_spot_source(),
        retailer_source=get_retailer_source(),
        store=get_history_store(),
    )


@lru_cache(maxsize=1)
def get_analytics_service() -> AnalyticsService:
    logger.debug("Initializing singleton AnalyticsService")
    return AnalyticsService(store=get_history_store())


@lru_cache(maxsize=1)
def get_backup_service() -> BackupService:
    logger.debug("Initializing singleton BackupService")
    return BackupService(store=get_history_store())


def shutdown_services() -> None:
    """
    Close the price sources' HTTP clients and drop all singletons.

    Called on application shutdown. Sources that were never created are
    not built just to be closed. The next call to any getter builds a
    fresh instance.
    """
    for getter in (get_spot_source, get_retailer_source):
        if getter.cache_info().currsize:
            getter().close()

    get_backup_service.cache_clear()
    get_analytics_service.cache_clear()
    get_sync_service.cache_clear()
    get_retailer_source.cache_clear()
    get_spot_source.cache_clear()
    get_history_store.cache_clear()
    logger.debug("Services shut down")
