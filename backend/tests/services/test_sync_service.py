# backend/tests/services/test_sync_service.py
"""
Tests for PriceSyncService.

Uses the fake sources from conftest, so no network is involved.

Test Coverage:
- Spot pricing (gram price × weight, buy spread) and request coalescing
- Retailer pricing in one batched call
- Missing quotes, failing sources, fault isolation between sources
- Commit failures, cancellation, idempotence
- current_price always equals the latest history point
"""

import threading
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from bullion.models import Metal, Purity
from bullion.services.exceptions import (
    MalformedPayloadError,
    SourceRejectedError,
    SourceUnavailableError,
)
from bullion.services.pricing.sync_service import FailureReason, SyncReport
from tests.conftest import create_asset

RETAILER_SKU = "1991"


def _latest_sell(store, db, asset_id):
    return store.get_history_for_asset(db, asset_id)[-1].sell_price


# =============================================================================
# SPOT PRICING
# =============================================================================

class TestSpotPricing:
    """Assets without a retailer id are priced from the spot source."""

    def test_sell_is_gram_price_times_weight(self, db, store, sync_service, spot_source):
        asset = create_asset(db, weight_grams="10", purity=Purity.K22)
        spot_source.set_price(Metal.GOLD, Purity.K22, "60")

        report = sync_service.sync_all(db)

        db.refresh(asset)
        assert report.updated == [asset.id]
        assert asset.current_price == Decimal("600")
        assert asset.current_buy_price == Decimal("588")

    def test_history_point_is_tagged_with_spot_source(self, db, store, sync_service, spot_source):
        asset = create_asset(db)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")

        sync_service.sync_all(db)

        rows = store.get_history_rows(db, asset.id)
        assert len(rows) == 1
        assert rows[0].source == "goldapi"
        assert rows[0].is_manual is False

    def test_one_call_per_metal(self, db, sync_service, spot_source):
        """Five gold assets and two silver assets need exactly two spot calls."""
        for i in range(5):
            create_asset(db, name=f"Gold {i}", purity=Purity.K24 if i % 2 else Purity.K22)
        for i in range(2):
            create_asset(db, name=f"Silver {i}", metal=Metal.SILVER)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        spot_source.set_price(Metal.GOLD, Purity.K22, "69")
        spot_source.set_price(Metal.SILVER, Purity.K24, "0.9")

        report = sync_service.sync_all(db)

        assert spot_source.call_count == 2
        assert sorted(spot_source.calls) == sorted([(Metal.GOLD, "CHF"), (Metal.SILVER, "CHF")])
        assert len(report.updated) == 7
        assert report.source_calls == 2

    def test_missing_purity_is_reported_missing(self, db, sync_service, spot_source):
        priced = create_asset(db, name="24K", purity=Purity.K24)
        unpriced = create_asset(db, name="14K", purity=Purity.K14)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")

        report = sync_service.sync_all(db)

        db.refresh(unpriced)
        assert report.updated == [priced.id]
        assert report.missing == [unpriced.id]
        assert unpriced.current_price is None
        assert report.status == "partial"


# =============================================================================
# RETAILER PRICING
# =============================================================================

class TestRetailerPricing:
    """Assets with a retailer id are priced from the retailer catalog."""

    def test_uses_catalog_prices(self, db, sync_service, retailer_source):
        asset = create_asset(db, retailer_id=RETAILER_SKU)
        retailer_source.set_product(RETAILER_SKU, "412.50", "398.00")

        report = sync_service.sync_all(db)

        db.refresh(asset)
        assert report.updated == [asset.id]
        assert asset.current_price == Decimal("412.50")
        assert asset.current_buy_price == Decimal("398.00")

    def test_all_skus_in_one_call(self, db, sync_service, retailer_source, spot_source):
        for sku in ("1", "2", "3"):
            create_asset(db, name=f"SKU {sku}", retailer_id=sku)
            retailer_source.set_product(sku, "100", "90")

        sync_service.sync_all(db)

        assert retailer_source.call_count == 1
        assert sorted(retailer_source.calls[0]) == ["1", "2", "3"]
        assert spot_source.call_count == 0

    def test_absent_sku_is_missing(self, db, sync_service, retailer_source):
        listed = create_asset(db, name="Listed", retailer_id="1")
        delisted = create_asset(db, name="Delisted", retailer_id="2")
        retailer_source.set_product("1", "100", "90")

        report = sync_service.sync_all(db)

        assert report.updated == [listed.id]
        assert report.missing == [delisted.id]

    def test_empty_catalog_makes_every_scraped_asset_missing(self, db, sync_service):
        a = create_asset(db, name="A", retailer_id="1")
        b = create_asset(db, name="B", retailer_id="2")

        report = sync_service.sync_all(db)

        assert report.missing == [a.id, b.id]
        assert report.failed == []

    def test_history_point_is_tagged_with_retailer_source(self, db, store, sync_service, retailer_source):
        asset = create_asset(db, retailer_id=RETAILER_SKU)
        retailer_source.set_product(RETAILER_SKU, "100", "90")

        sync_service.sync_all(db)

        assert store.get_history_rows(db, asset.id)[0].source == "retailer"


# =============================================================================
# FAULT ISOLATION
# =============================================================================

class TestFaultIsolation:
    """A failing source only affects the assets it prices."""

    def test_retailer_down_spot_assets_still_update(
            self, db, sync_service, spot_source, retailer_source,
    ):
        spot_assets = [create_asset(db, name=f"Spot {i}") for i in range(3)]
        scraped = [create_asset(db, name=f"Scraped {i}", retailer_id=str(i)) for i in range(2)]
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        retailer_source.error = SourceUnavailableError("retailer", "timed out")

        report = sync_service.sync_all(db)

        assert report.updated == [a.id for a in spot_assets]
        assert sorted(report.failed_ids) == [a.id for a in scraped]
        assert {f.reason for f in report.failed} == {FailureReason.SOURCE_UNAVAILABLE}
        assert report.status == "partial"

    def test_spot_rejected_retailer_assets_still_update(
            self, db, sync_service, spot_source, retailer_source,
    ):
        spot_asset = create_asset(db, name="Spot")
        scraped = create_asset(db, name="Scraped", retailer_id=RETAILER_SKU)
        retailer_source.set_product(RETAILER_SKU, "100", "90")
        spot_source.set_error(Metal.GOLD, SourceRejectedError("goldapi", "quota exceeded", 429))

        report = sync_service.sync_all(db)

        assert report.updated == [scraped.id]
        assert report.failed_ids == [spot_asset.id]
        assert report.failed[0].reason == FailureReason.SOURCE_REJECTED

    def test_one_metal_failing_leaves_other_metals(self, db, sync_service, spot_source):
        gold = create_asset(db, name="Gold")
        silver = create_asset(db, name="Silver", metal=Metal.SILVER)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        spot_source.set_error(Metal.SILVER, MalformedPayloadError("goldapi", "no price fields"))

        report = sync_service.sync_all(db)

        assert report.updated == [gold.id]
        assert report.failed_ids == [silver.id]
        assert report.failed[0].reason == FailureReason.SOURCE_UNAVAILABLE

    def test_unexpected_error_fails_only_its_group(self, db, sync_service, spot_source, retailer_source):
        spot_asset = create_asset(db, name="Spot")
        scraped = create_asset(db, name="Scraped", retailer_id=RETAILER_SKU)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        retailer_source.error = RuntimeError("boom")

        report = sync_service.sync_all(db)

        assert report.updated == [spot_asset.id]
        assert report.failed_ids == [scraped.id]
        assert report.failed[0].reason == FailureReason.UNEXPECTED_ERROR

    def test_unexpected_error_for_one_metal_keeps_other_metals(self, db, sync_service, spot_source):
        gold = create_asset(db, name="Gold")
        silver = create_asset(db, name="Silver", metal=Metal.SILVER)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        spot_source.set_error(Metal.SILVER, RuntimeError("boom"))

        report = sync_service.sync_all(db)

        assert report.updated == [gold.id]
        assert report.failed_ids == [silver.id]
        assert report.failed[0].reason == FailureReason.UNEXPECTED_ERROR
        assert report.source_calls == 2

    def test_everything_down_is_failed(self, db, sync_service, spot_source, retailer_source):
        create_asset(db, name="Spot")
        create_asset(db, name="Scraped", retailer_id=RETAILER_SKU)
        spot_source.set_error(Metal.GOLD, SourceUnavailableError("goldapi", "connection refused"))
        retailer_source.error = SourceUnavailableError("retailer", "connection refused")

        report = sync_service.sync_all(db)

        assert report.updated == []
        assert len(report.failed) == 2
        assert report.status == "failed"

    def test_failed_assets_keep_previous_price(self, db, store, sync_service, spot_source):
        asset = create_asset(db)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        sync_service.sync_all(db)

        spot_source.set_error(Metal.GOLD, SourceUnavailableError("goldapi", "timed out"))
        sync_service.sync_all(db)

        db.refresh(asset)
        assert len(store.get_history_rows(db, asset.id)) == 1
        assert asset.current_price == Decimal("75") * Decimal("5.806")


# =============================================================================
# COMMIT, CANCELLATION, IDEMPOTENCE
# =============================================================================

class TestCommit:
    """Tests for the per-asset commit step."""

    def test_commit_failure_affects_only_that_asset(self, db, store, sync_service, spot_source):
        first = create_asset(db, name="First")
        second = create_asset(db, name="Second")
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        original = store.commit_price

        def flaky_commit(session, asset_id, *args, **kwargs):
            if asset_id == first.id:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return original(session, asset_id, *args, **kwargs)

        with patch.object(store, "commit_price", side_effect=flaky_commit):
            report = sync_service.sync_all(db)

        assert report.updated == [second.id]
        assert report.failed_ids == [first.id]
        assert report.failed[0].reason == FailureReason.COMMIT_FAILED

    def test_asset_deleted_during_cycle_is_commit_failure(
            self, db, session_factory, store, sync_service, spot_source,
    ):
        asset_id = create_asset(db).id
        assets = store.list_assets(db)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        other = session_factory()
        try:
            store.delete_asset(other, asset_id)
        finally:
            other.close()

        report = sync_service.sync_all(db, assets=assets)

        assert report.failed_ids == [asset_id]
        assert report.failed[0].reason == FailureReason.COMMIT_FAILED

    def test_all_points_share_the_cycle_timestamp(self, db, store, sync_service, spot_source, retailer_source):
        a = create_asset(db, name="Spot")
        b = create_asset(db, name="Scraped", retailer_id=RETAILER_SKU)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        retailer_source.set_product(RETAILER_SKU, "100", "90")

        report = sync_service.sync_all(db)

        ts_a = store.get_history_for_asset(db, a.id)[0].timestamp
        ts_b = store.get_history_for_asset(db, b.id)[0].timestamp
        assert ts_a == ts_b == report.started_at


class TestCancellation:
    """A set cancel event stops further commits."""

    def test_cancelled_before_commit(self, db, store, sync_service, spot_source):
        assets = [create_asset(db, name=f"Gold {i}") for i in range(3)]
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        cancel = threading.Event()
        cancel.set()

        report = sync_service.sync_all(db, cancel_event=cancel)

        assert report.updated == []
        assert report.cancelled == [a.id for a in assets]
        assert report.status == "partial"
        assert store.get_all_history(db) == []

    def test_cancel_midway_keeps_committed_assets(self, db, store, sync_service, spot_source):
        assets = [create_asset(db, name=f"Gold {i}") for i in range(3)]
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")
        cancel = threading.Event()
        original = store.commit_price

        def commit_then_cancel(*args, **kwargs):
            row = original(*args, **kwargs)
            cancel.set()
            return row

        with patch.object(store, "commit_price", side_effect=commit_then_cancel):
            report = sync_service.sync_all(db, cancel_event=cancel)

        assert report.updated == [assets[0].id]
        assert report.cancelled == [assets[1].id, assets[2].id]
        assert len(store.get_all_history(db)) == 1


class TestIdempotence:
    """Re-running appends another point at the same price."""

    def test_second_run_appends_same_price(self, db, store, sync_service, spot_source):
        asset = create_asset(db)
        spot_source.set_price(Metal.GOLD, Purity.K24, "75")

        sync_service.sync_all(db)
        sync_service.sync_all(db)

        points = store.get_history_for_asset(db, asset.id)
        assert len(points) == 2
        assert points[0].sell_price == points[1].sell_price

    def test_current_price_tracks_latest_point(self, db, store, sync_service, spot_source, retailer_source):
        spot_asset = create_asset(db, name="Spot")
        scraped = create_asset(db, name="Scraped", retailer_id=RETAILER_SKU)

        for gram, retail in [("70", "400"), ("72", "390"), ("69", "410")]:
            spot_source.set_price(Metal.GOLD, Purity.K24, gram)
            retailer_source.set_product(RETAILER_SKU, retail, "380")
            sync_service.sync_all(db)

            for asset in (spot_asset, scraped):
                db.refresh(asset)
                assert asset.current_price == _latest_sell(store, db, asset.id)


class TestSyncReport:
    """Status derivation."""

    def test_empty_cycle_is_completed(self, db, sync_service, spot_source, retailer_source):
        report = sync_service.sync_all(db)

        assert report.status == "completed"
        assert report.completed_at is not None
        assert spot_source.call_count == 0
        assert retailer_source.call_count == 0

    def test_missing_only_is_partial(self):
        report = SyncReport(started_at=None, missing=[1])

        assert report.status == "partial"

    def test_all_updated_is_completed(self):
        report = SyncReport(started_at=None, updated=[1, 2])

        assert report.status == "completed"
