# backend/bullion/services/history_store.py
"""
Price History Store: read and write paths over assets and price history.

Write path:
    - insert_history: append one PriceHistory row
    - update_current_price: refresh the asset's cached current price
    - commit_price: both of the above in ONE transaction under the asset's
      write lock. This is the only code that writes Asset.current_price.

Read path:
    - get_history_for_asset / get_all_history: ascending by timestamp
    - snapshot: assets plus their ordered series, read in one pass for the
      analytics layer

Locking:
    commit_price serializes writers of the same asset twice over: a
    process-wide per-asset threading.Lock and a row lock on the asset
    (SELECT ... FOR UPDATE, a no-op on SQLite). Different assets never
    block each other.

Timestamps:
    All timestamps leaving the store are timezone-aware UTC. SQLite drops
    tzinfo, so naive values read back are tagged as UTC.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bullion.models import Asset, PriceHistory
from bullion.services.analytics.types import PricePoint
from bullion.services.constants import SOURCE_MANUAL
from bullion.services.exceptions import AssetNotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_point(row: PriceHistory) -> PricePoint:
    return PricePoint(
        asset_id=row.asset_id,
        timestamp=_ensure_utc(row.timestamp),
        sell_price=Decimal(row.sell_price),
        buy_price=Decimal(row.buy_price),
    )


# =============================================================================
# LOCK REGISTRY
# =============================================================================

class AssetLockRegistry:
    """
    Process-wide registry of per-asset locks.

    Locks are created lazily and never removed; the number of assets a
    portfolio holds is small.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = defaultdict(threading.Lock)

    def lock_for(self, asset_id: int) -> threading.Lock:
        with self._guard:
            return self._locks[asset_id]


_default_registry = AssetLockRegistry()


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class StoreSnapshot:
    """
    Consistent view of the store for analytics.

    Attributes:
        assets: All assets, ordered by id
        series: Asset id → price points ascending by timestamp
    """
    assets: list[Asset] = field(default_factory=list)
    series: dict[int, list[PricePoint]] = field(default_factory=dict)


# =============================================================================
# STORE
# =============================================================================

class PriceHistoryStore:
    """
    Data access for assets and their price history.

    All methods take the caller's Session. Read methods never commit;
    add_asset, delete_asset and commit_price commit their own unit of work.
    """

    def __init__(self, lock_registry: AssetLockRegistry | None = None) -> None:
        self._locks = lock_registry or _default_registry

    # =========================================================================
    # ASSETS
    # =========================================================================

    def list_assets(self, db: Session) -> list[Asset]:
        return list(db.scalars(select(Asset).order_by(Asset.id)).all())

    def get_asset(self, db: Session, asset_id: int) -> Asset:
        """
        Raises:
            AssetNotFoundError: No asset with this id
        """
        asset = db.get(Asset, asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    def add_asset(self, db: Session, asset: Asset) -> Asset:
        """Persist a new asset. Its current price stays empty until the first commit_price."""
        asset.current_price = None
        asset.current_buy_price = None
        db.add(asset)
        db.commit()
        db.refresh(asset)
        logger.info(f"Created asset {asset.id} ({asset.name})")
        return asset

    def delete_asset(self, db: Session, asset_id: int) -> None:
        """Delete an asset; its history goes with it (ON DELETE CASCADE)."""
        asset = self.get_asset(db, asset_id)
        db.delete(asset)
        db.commit()
        logger.info(f"Deleted asset {asset_id} and its price history")

    # =========================================================================
    # READ PATH
    # =========================================================================

    def get_history_for_asset(self, db: Session, asset_id: int) -> list[PricePoint]:
        """Price points of one asset, ascending by timestamp."""
        self.get_asset(db, asset_id)
        rows = db.scalars(
            select(PriceHistory)
            .where(PriceHistory.asset_id == asset_id)
            .order_by(PriceHistory.timestamp, PriceHistory.id)
        ).all()
        return [_to_point(row) for row in rows]

    def get_history_rows(self, db: Session, asset_id: int) -> list[PriceHistory]:
        """ORM rows of one asset's history, ascending. Used by the HTTP layer."""
        self.get_asset(db, asset_id)
        return list(db.scalars(
            select(PriceHistory)
            .where(PriceHistory.asset_id == asset_id)
            .order_by(PriceHistory.timestamp, PriceHistory.id)
        ).all())

    def get_all_history(self, db: Session) -> list[PricePoint]:
        """Every price point, ascending by timestamp (ties by asset, then insertion)."""
        return [_to_point(row) for row in self.get_all_history_rows(db)]

    def get_all_history_rows(self, db: Session) -> list[PriceHistory]:
        return list(db.scalars(
            select(PriceHistory)
            .order_by(PriceHistory.timestamp, PriceHistory.asset_id, PriceHistory.id)
        ).all())

    def get_latest_timestamp(self, db: Session, asset_id: int) -> datetime | None:
        latest = db.scalar(
            select(func.max(PriceHistory.timestamp))
            .where(PriceHistory.asset_id == asset_id)
        )
        return _ensure_utc(latest) if latest is not None else None

    def snapshot(self, db: Session) -> StoreSnapshot:
        """Assets and their ordered series, read within one transaction."""
        assets = self.list_assets(db)
        series: dict[int, list[PricePoint]] = {asset.id: [] for asset in assets}
        for point in self.get_all_history(db):
            series.setdefault(point.asset_id, []).append(point)
        return StoreSnapshot(assets=assets, series=series)

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def insert_history(
            self,
            db: Session,
            asset_id: int,
            timestamp: datetime,
            sell_price: Decimal,
            buy_price: Decimal,
            source: str = SOURCE_MANUAL,
            is_manual: bool = False,
    ) -> PriceHistory:
        """Append one history row. Does not commit."""
        row = PriceHistory(
            asset_id=asset_id,
            timestamp=_ensure_utc(timestamp),
            sell_price=sell_price,
            buy_price=buy_price,
            source=source,
            is_manual=is_manual,
        )
        db.add(row)
        return row

    def update_current_price(
            self,
            asset: Asset,
            sell_price: Decimal,
            buy_price: Decimal,
    ) -> None:
        """Refresh the cached current price. Does not commit."""
        asset.current_price = sell_price
        asset.current_buy_price = buy_price

    def commit_price(
            self,
            db: Session,
            asset_id: int,
            timestamp: datetime,
            sell_price: Decimal,
            buy_price: Decimal,
            source: str = SOURCE_MANUAL,
            is_manual: bool = False,
    ) -> PriceHistory:
        """
        Append a history point and refresh current_price atomically.

        The timestamp is raised to the asset's latest existing timestamp if
        it would otherwise go backwards, so each asset's history stays
        non-decreasing and the new point is always the latest one.

        Raises:
            AssetNotFoundError: The asset does not exist (or was deleted)
            ValidationError: Negative price
            SQLAlchemyError: Commit failed; the transaction is rolled back
        """
        if sell_price < 0 or buy_price < 0:
            raise ValidationError("Prices must not be negative", field="sell_price")

        with self._locks.lock_for(asset_id):
            try:
                asset = db.scalars(
                    select(Asset).where(Asset.id == asset_id).with_for_update()
                ).one_or_none()
                if asset is None:
                    raise AssetNotFoundError(asset_id)

                timestamp = _ensure_utc(timestamp)
                latest = self.get_latest_timestamp(db, asset_id)
                if latest is not None and timestamp < latest:
                    logger.debug(
                        f"Asset {asset_id}: raising timestamp {timestamp.isoformat()} "
                        f"to latest {latest.isoformat()}"
                    )
                    timestamp = latest

                row = self.insert_history(
                    db, asset_id, timestamp, sell_price, buy_price,
                    source=source, is_manual=is_manual,
                )
                self.update_current_price(asset, sell_price, buy_price)
                db.commit()
            except (AssetNotFoundError, SQLAlchemyError):
                db.rollback()
                raise

        db.refresh(row)
        return row

    def replace_all(
            self,
            db: Session,
            assets: list[Asset],
            history: list[PriceHistory],
    ) -> None:
        """
        Replace the whole store content in one transaction.

        Existing history and assets are deleted first. Assets keep the ids
        they carry; on PostgreSQL the id sequence is moved past them.

        Raises:
            SQLAlchemyError: Nothing is changed if any statement fails
        """
        try:
            db.execute(delete(PriceHistory))
            db.execute(delete(Asset))
            db.expunge_all()
            db.add_all(assets)
            db.flush()
            for row in history:
                row.timestamp = _ensure_utc(row.timestamp)
            db.add_all(history)
            db.flush()

            if db.get_bind().dialect.name == "postgresql":
                db.execute(text(
                    "SELECT setval(pg_get_serial_sequence('assets', 'id'), "
                    "COALESCE((SELECT MAX(id) FROM assets), 1))"
                ))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info(f"Store replaced: {len(assets)} assets, {len(history)} history rows")
