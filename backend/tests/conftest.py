# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Fake spot and retailer price sources
- Sample data factories
- A TestClient wired to the fakes
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bullion.database import get_db
from bullion.dependencies import (
    get_analytics_service,
    get_backup_service,
    get_history_store,
    get_sync_service,
)
from bullion.main import app
from bullion.models import (
    Base,
    Asset,
    AssetType,
    Metal,
    PriceHistory,
    Purity,
)
from bullion.services.analytics.service import AnalyticsService
from bullion.services.backup import BackupService
from bullion.services.history_store import AssetLockRegistry, PriceHistoryStore
from bullion.services.pricing.base import (
    RetailerCatalog,
    RetailerPriceSource,
    RetailerProduct,
    SpotPriceResponse,
    SpotPriceSource,
)
from bullion.services.pricing.sync_service import PriceSyncService


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Iterator[Session]:
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store() -> PriceHistoryStore:
    """Store with its own lock registry, isolated from other tests."""
    return PriceHistoryStore(lock_registry=AssetLockRegistry())


# =============================================================================
# FAKE PRICE SOURCES
# =============================================================================

class FakeSpotSource(SpotPriceSource):
    """
    In-memory SpotPriceSource.

    Per-gram prices are configured per metal; errors per metal. Every call
    is recorded in `calls` as (metal, currency).
    """

    def __init__(self):
        super().__init__(max_attempts=1)
        self._prices: dict[Metal, dict[Purity, Decimal]] = {}
        self._errors: dict[Metal, Exception] = {}
        self.calls: list[tuple[Metal, str]] = []

    @property
    def name(self) -> str:
        return "goldapi"

    def set_price(self, metal: Metal, purity: Purity, gram_price: str | Decimal) -> None:
        self._prices.setdefault(metal, {})[purity] = Decimal(str(gram_price))

    def set_error(self, metal: Metal, error: Exception) -> None:
        self._errors[metal] = error

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def get_spot_price(self, metal: Metal, currency: str) -> SpotPriceResponse:
        self.calls.append((metal, currency))
        if metal in self._errors:
            raise self._errors[metal]
        return SpotPriceResponse(
            metal=metal,
            currency=currency,
            price_per_gram=dict(self._prices.get(metal, {})),
        )


class FakeRetailerSource(RetailerPriceSource):
    """
    In-memory RetailerPriceSource.

    Products are configured by SKU; `error` makes every call fail. Every
    call is recorded in `calls` with the requested SKUs.
    """

    def __init__(self):
        super().__init__(max_attempts=1)
        self._products: dict[str, RetailerProduct] = {}
        self.error: Exception | None = None
        self.calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "retailer"

    def set_product(
            self,
            sku: str,
            sell_price: str | Decimal,
            buy_price: str | Decimal,
            name: str | None = None,
    ) -> None:
        self._products[sku] = RetailerProduct(
            retailer_id=sku,
            name=name,
            sell_price=Decimal(str(sell_price)),
            buy_price=Decimal(str(buy_price)),
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def get_prices(self, retailer_ids: list[str]) -> RetailerCatalog:
        self.calls.append(list(retailer_ids))
        if self.error is not None:
            raise self.error
        return RetailerCatalog(products={
            sku: product
            for sku, product in self._products.items()
            if sku in retailer_ids
        })


@pytest.fixture
def spot_source() -> FakeSpotSource:
    """Create a fresh fake spot source for each test."""
    return FakeSpotSource()


@pytest.fixture
def retailer_source() -> FakeRetailerSource:
    """Create a fresh fake retailer source for each test."""
    return FakeRetailerSource()


@pytest.fixture
def sync_service(spot_source, retailer_source, store) -> PriceSyncService:
    return PriceSyncService(
        spot_source=spot_source,
        retailer_source=retailer_source,
        store=store,
        currency="CHF",
        buy_spread=Decimal("0.02"),
    )


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def create_asset(
        db: Session,
        name: str = "Vreneli 20 Francs",
        metal: Metal = Metal.GOLD,
        purity: Purity = Purity.K24,
        weight_grams: str | Decimal = "5.806",
        quantity: str | Decimal = "1",
        purchase_price: str | Decimal = "350",
        retailer_id: str | None = None,
        asset_type: AssetType = AssetType.COIN,
) -> Asset:
    """Factory function for creating Asset entities in the database."""
    asset = Asset(
        name=name,
        asset_type=asset_type,
        metal=metal,
        purity=purity,
        weight_grams=Decimal(str(weight_grams)),
        quantity=Decimal(str(quantity)),
        purchase_price=Decimal(str(purchase_price)),
        retailer_id=retailer_id,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def add_history(
        db: Session,
        asset: Asset,
        timestamp: datetime,
        sell_price: str | Decimal,
        buy_price: str | Decimal | None = None,
        source: str = "manual",
        is_manual: bool = False,
) -> PriceHistory:
    """
    Factory function for a raw history row.

    Bypasses the commit step: current_price is NOT updated. Use
    PriceHistoryStore.commit_price when the cached price matters.
    """
    sell = Decimal(str(sell_price))
    row = PriceHistory(
        asset_id=asset.id,
        timestamp=timestamp,
        sell_price=sell,
        buy_price=Decimal(str(buy_price)) if buy_price is not None else sell,
        source=source,
        is_manual=is_manual,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture
def client(session_factory, store, sync_service, tmp_path) -> Iterator[TestClient]:
    """
    TestClient whose services share the test database, the isolated store
    and the fake sources. Backup files go to a temporary directory.
    """
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    analytics = AnalyticsService(store=store)
    backup = BackupService(store=store, backup_dir=tmp_path / "backups", max_files=3)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_history_store] = lambda: store
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_analytics_service] = lambda: analytics
    app.dependency_overrides[get_backup_service] = lambda: backup

    yield TestClient(app)

    app.dependency_overrides.clear()
