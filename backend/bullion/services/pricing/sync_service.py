# backend/bullion/services/pricing/sync_service.py
"""
Price Sync Service for refreshing asset prices from both sources.

This service handles:
- Partitioning assets into retailer-priced and spot-priced groups
- Coalescing spot requests so each (metal, currency) pair is fetched once
- Fetching both groups concurrently
- Committing each asset's new price atomically through PriceHistoryStore
- Reporting per-asset outcomes (updated / missing / failed / cancelled)

Design Principles:
- Fault Isolation: A failing source only affects the assets it prices
- Partial Success: One asset's failure never aborts the cycle
- No HTTP Knowledge: Outcomes go into SyncReport, nothing is raised for
  single-asset failures
- Idempotent: Re-running appends another point at the same price

Usage:
    from bullion.services.pricing import PriceSyncService

    service = PriceSyncService()
    report = service.sync_all(db)

    if report.status == "completed":
        print(f"Updated {len(report.updated)} assets")
    else:
        for failure in report.failed:
            print(failure.asset_id, failure.reason, failure.message)
"""

import enum
import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bullion.config import settings
from bullion.models import Asset, Metal, Purity
from bullion.services.constants import ONE, SYNC_FETCH_WORKERS
from bullion.services.exceptions import (
    AssetNotFoundError,
    NoQuoteForKeyError,
    PriceSourceError,
    SourceRejectedError,
    SourceUnavailableError,
    ValidationError,
)
from bullion.services.history_store import PriceHistoryStore
from bullion.services.pricing.base import (
    RetailerPriceSource,
    ScrapedQuote,
    SpotPriceSource,
    SpotQuote,
)
from bullion.services.pricing.goldapi import GoldApiSource
from bullion.services.pricing.retailer import PhiloroRetailerSource
from bullion.utils.context import bind_context

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

class FailureReason(str, enum.Enum):
    """Why an asset could not be updated in a cycle."""
    SOURCE_UNAVAILABLE = "source_unavailable"
    SOURCE_REJECTED = "source_rejected"
    COMMIT_FAILED = "commit_failed"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class AssetSyncInfo:
    """
    Detached copy of the asset fields pricing needs.

    Fetch workers only see these, never ORM objects bound to the session.
    """
    asset_id: int
    name: str
    metal: Metal
    purity: Purity
    weight_grams: Decimal
    retailer_id: str | None = None

    @property
    def is_scraped(self) -> bool:
        return bool(self.retailer_id)

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetSyncInfo":
        return cls(
            asset_id=asset.id,
            name=asset.name,
            metal=asset.metal,
            purity=asset.purity,
            weight_grams=Decimal(asset.weight_grams),
            retailer_id=asset.retailer_id,
        )


@dataclass(frozen=True)
class SyncFailure:
    """A single asset that could not be updated."""
    asset_id: int
    reason: FailureReason
    message: str


@dataclass
class FetchOutcome:
    """Result of fetching one source group, before anything is committed."""
    quotes: dict[int, SpotQuote | ScrapedQuote] = field(default_factory=dict)
    missing: list[int] = field(default_factory=list)
    failed: list[SyncFailure] = field(default_factory=list)
    source_calls: int = 0

    def merge(self, other: "FetchOutcome") -> None:
        self.quotes.update(other.quotes)
        self.missing.extend(other.missing)
        self.failed.extend(other.failed)
        self.source_calls += other.source_calls


@dataclass
class SyncReport:
    """Complete result of one sync cycle."""
    started_at: datetime
    completed_at: datetime | None = None
    updated: list[int] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)
    failed: list[SyncFailure] = field(default_factory=list)
    cancelled: list[int] = field(default_factory=list)
    source_calls: int = 0

    @property
    def status(self) -> str:
        """One of "completed", "partial", "failed"."""
        if not self.failed and not self.missing and not self.cancelled:
            return "completed"
        if not self.updated and self.failed:
            return "failed"
        return "partial"

    @property
    def failed_ids(self) -> list[int]:
        return [f.asset_id for f in self.failed]


def _failure_reason(error: Exception) -> FailureReason:
    if isinstance(error, SourceRejectedError):
        return FailureReason.SOURCE_REJECTED
    if isinstance(error, SourceUnavailableError):
        return FailureReason.SOURCE_UNAVAILABLE
    return FailureReason.UNEXPECTED_ERROR


def _group_failure(
        infos: list[AssetSyncInfo],
        error: Exception,
) -> list[SyncFailure]:
    reason = _failure_reason(error)
    return [SyncFailure(info.asset_id, reason, str(error)) for info in infos]


# =============================================================================
# SYNC SERVICE
# =============================================================================

class PriceSyncService:
    """
    Coordinates one price refresh across both sources.

    Attributes:
        _spot_source: Source of per-gram spot prices
        _retailer_source: Source of retailer catalog prices
        _store: Single writer of history points and current prices
        _currency: Currency spot prices are requested in
        _buy_spread: Fraction subtracted from the spot sell price to get
            the buy price (0.02 = 2%)

    Example:
        service = PriceSyncService(
            spot_source=GoldApiSource(api_key="..."),
            retailer_source=PhiloroRetailerSource(),
        )
        report = service.sync_all(db)
    """

    def __init__(
            self,
            spot_source: SpotPriceSource | None = None,
            retailer_source: RetailerPriceSource | None = None,
            store: PriceHistoryStore | None = None,
            currency: str | None = None,
            buy_spread: Decimal | None = None,
    ) -> None:
        self._spot_source = spot_source or GoldApiSource()
        self._retailer_source = retailer_source or PhiloroRetailerSource()
        self._store = store or PriceHistoryStore()
        self._currency = (currency or settings.spot_currency).upper()
        self._buy_spread = settings.spot_buy_spread if buy_spread is None else buy_spread

        logger.info(
            f"PriceSyncService initialized "
            f"(spot={self._spot_source.name}, retailer={self._retailer_source.name}, "
            f"currency={self._currency}, spread={self._buy_spread})"
        )

    # =========================================================================
    # MAIN SYNC METHOD
    # =========================================================================

    def sync_all(
            self,
            db: Session,
            assets: list[Asset] | None = None,
            cancel_event: threading.Event | None = None,
    ) -> SyncReport:
        """
        Refresh prices of the given assets (all assets if None).

        Steps:
        1. Snapshot the assets and split them by source
        2. Fetch the retailer group and the spot group concurrently
        3. Commit every quoted asset under its write lock, one transaction each
        4. Build the report

        Args:
            db: Database session (used from the calling thread only)
            assets: Assets to refresh; defaults to every asset in the store
            cancel_event: When set, assets not yet committed are skipped and
                listed in SyncReport.cancelled

        Returns:
            SyncReport with per-asset outcomes
        """
        report = SyncReport(started_at=datetime.now(timezone.utc))

        if assets is None:
            assets = self._store.list_assets(db)
        infos = [AssetSyncInfo.from_asset(asset) for asset in assets]

        scraped = [info for info in infos if info.is_scraped]
        spot = [info for info in infos if not info.is_scraped]

        logger.info(
            f"Starting price sync: {len(infos)} assets "
            f"({len(scraped)} retailer, {len(spot)} spot)"
        )

        # 1. Fetch both groups concurrently
        outcome = self._fetch_all(scraped, spot)
        report.missing.extend(outcome.missing)
        report.failed.extend(outcome.failed)
        report.source_calls = outcome.source_calls

        # 2. Commit, one asset at a time, all with the cycle timestamp
        cycle_timestamp = report.started_at
        for info in infos:
            quote = outcome.quotes.get(info.asset_id)
            if quote is None:
                continue

            if cancel_event is not None and cancel_event.is_set():
                report.cancelled.append(info.asset_id)
                continue

            self._commit(db, info, quote, cycle_timestamp, report)

        report.completed_at = datetime.now(timezone.utc)

        if report.cancelled:
            logger.warning(f"Price sync cancelled: {len(report.cancelled)} assets not committed")
        logger.info(
            f"Price sync {report.status}: "
            f"{len(report.updated)} updated, {len(report.missing)} missing, "
            f"{len(report.failed)} failed, {report.source_calls} source calls"
        )
        return report

    # =========================================================================
    # FETCHING
    # =========================================================================

    def _fetch_all(
            self,
            scraped: list[AssetSyncInfo],
            spot: list[AssetSyncInfo],
    ) -> FetchOutcome:
        outcome = FetchOutcome()

        with ThreadPoolExecutor(
                max_workers=SYNC_FETCH_WORKERS,
                thread_name_prefix="price-sync",
        ) as pool:
            futures = {
                "retailer": (pool.submit(bind_context(self._fetch_scraped), scraped), scraped),
                "spot": (pool.submit(bind_context(self._fetch_spot), spot), spot),
            }

            for group, (future, group_infos) in futures.items():
                try:
                    outcome.merge(future.result())
                except Exception as e:
                    logger.exception(f"Unexpected error fetching {group} prices")
                    outcome.failed.extend(_group_failure(group_infos, e))

        return outcome

    def _fetch_scraped(self, infos: list[AssetSyncInfo]) -> FetchOutcome:
        """One retailer request for every scraped asset."""
        outcome = FetchOutcome()
        if not infos:
            return outcome

        retailer_ids = [info.retailer_id for info in infos]
        try:
            outcome.source_calls += 1
            catalog = self._retailer_source.get_prices(retailer_ids)
        except PriceSourceError as e:
            logger.warning(f"Retailer source failed for {len(infos)} assets: {e}")
            outcome.failed.extend(_group_failure(infos, e))
            return outcome
        except Exception as e:
            logger.exception(f"Unexpected error from retailer source for {len(infos)} assets")
            outcome.failed.extend(_group_failure(infos, e))
            return outcome

        if catalog.is_empty:
            logger.warning("Retailer returned an empty catalog")

        for info in infos:
            try:
                product = catalog.require(info.retailer_id)
            except NoQuoteForKeyError as e:
                logger.warning(f"Asset {info.asset_id}: {e}")
                outcome.missing.append(info.asset_id)
                continue
            outcome.quotes[info.asset_id] = ScrapedQuote(
                sell_price=product.sell_price,
                buy_price=product.buy_price,
                retailer_id=product.retailer_id,
            )

        return outcome

    def _fetch_spot(self, infos: list[AssetSyncInfo]) -> FetchOutcome:
        """One spot request per distinct (metal, currency), shared by all its assets."""
        outcome = FetchOutcome()
        if not infos:
            return outcome

        # Coalesce before issuing any request
        groups: dict[tuple[Metal, str], list[AssetSyncInfo]] = defaultdict(list)
        for info in infos:
            groups[(info.metal, self._currency)].append(info)

        for (metal, currency), group_infos in groups.items():
            try:
                outcome.source_calls += 1
                response = self._spot_source.get_spot_price(metal, currency)
            except PriceSourceError as e:
                logger.warning(
                    f"Spot source failed for {metal.value}/{currency} "
                    f"({len(group_infos)} assets): {e}"
                )
                outcome.failed.extend(_group_failure(group_infos, e))
                continue
            except Exception as e:
                logger.exception(f"Unexpected error from spot source for {metal.value}/{currency}")
                outcome.failed.extend(_group_failure(group_infos, e))
                continue

            for info in group_infos:
                try:
                    gram_price = response.require_gram_price(info.purity)
                except NoQuoteForKeyError as e:
                    logger.warning(f"Asset {info.asset_id} ({metal.symbol}/{currency}): {e}")
                    outcome.missing.append(info.asset_id)
                    continue

                sell_price = gram_price * info.weight_grams
                outcome.quotes[info.asset_id] = SpotQuote(
                    sell_price=sell_price,
                    buy_price=sell_price * (ONE - self._buy_spread),
                )

        return outcome

    # =========================================================================
    # COMMIT
    # =========================================================================

    def _commit(
            self,
            db: Session,
            info: AssetSyncInfo,
            quote: SpotQuote | ScrapedQuote,
            timestamp: datetime,
            report: SyncReport,
    ) -> None:
        source = quote.source
        try:
            self._store.commit_price(
                db,
                info.asset_id,
                timestamp,
                quote.sell_price,
                quote.buy_price,
                source=source,
                is_manual=False,
            )
        except (AssetNotFoundError, ValidationError) as e:
            logger.warning(f"Asset {info.asset_id} not committed: {e}")
            report.failed.append(SyncFailure(info.asset_id, FailureReason.COMMIT_FAILED, str(e)))
            return
        except SQLAlchemyError as e:
            logger.error(f"Commit failed for asset {info.asset_id}: {e}")
            report.failed.append(SyncFailure(info.asset_id, FailureReason.COMMIT_FAILED, str(e)))
            return

        report.updated.append(info.asset_id)
        logger.debug(f"Asset {info.asset_id}: {quote.sell_price} ({source})")
