# backend/tests/routers/test_sync_api.py
"""
API tests for POST /sync.
"""

from decimal import Decimal

from bullion.middleware import CORRELATION_ID_HEADER
from bullion.models import Metal, Purity
from bullion.services.exceptions import SourceRejectedError

SPOT_ASSET = {
    "name": "1 oz Krugerrand",
    "metal": "GOLD",
    "purity": "22K",
    "weight_grams": "31.1035",
    "quantity": "1",
    "purchase_price": "1800",
}

RETAIL_ASSET = {
    "name": "Vreneli 20 Francs",
    "weight_grams": "5.806",
    "quantity": "2",
    "purchase_price": "350",
    "retailer_id": "1991",
}


def _create(client, payload: dict) -> int:
    return client.post("/assets", json=payload).json()["id"]


class TestSyncEndpoint:
    """Tests for POST /sync."""

    def test_sync_all_assets(self, client, spot_source, retailer_source):
        spot_id = _create(client, SPOT_ASSET)
        retail_id = _create(client, RETAIL_ASSET)
        spot_source.set_price(Metal.GOLD, Purity.K22, "60")
        retailer_source.set_product("1991", "412.50", "398")

        response = client.post("/sync")

        assert response.status_code == 200
        report = response.json()
        assert report["status"] == "completed"
        assert sorted(report["updated"]) == sorted([spot_id, retail_id])
        assert report["failed"] == []
        assert report["source_calls"] == 2
        assert report["completed_at"] is not None

        spot = client.get(f"/assets/{spot_id}").json()
        assert Decimal(spot["current_price"]) == Decimal("60") * Decimal("31.1035")
        retail = client.get(f"/assets/{retail_id}").json()
        assert Decimal(retail["current_price"]) == Decimal("412.50")

    def test_partial_report_lists_failures(self, client, spot_source, retailer_source):
        spot_id = _create(client, SPOT_ASSET)
        retail_id = _create(client, RETAIL_ASSET)
        retailer_source.set_product("1991", "412.50", "398")
        spot_source.set_error(Metal.GOLD, SourceRejectedError("goldapi", "HTTP 401", 401))

        report = client.post("/sync").json()

        assert report["status"] == "partial"
        assert report["updated"] == [retail_id]
        assert report["failed"] == [{
            "asset_id": spot_id,
            "reason": "source_rejected",
            "message": "Source 'goldapi' rejected the request: HTTP 401",
        }]

    def test_missing_quote(self, client, retailer_source):
        retail_id = _create(client, RETAIL_ASSET)

        report = client.post("/sync").json()

        assert report["missing"] == [retail_id]
        assert report["status"] == "partial"

    def test_sync_selected_assets(self, client, spot_source, retailer_source):
        spot_id = _create(client, SPOT_ASSET)
        _create(client, RETAIL_ASSET)
        spot_source.set_price(Metal.GOLD, Purity.K22, "60")

        report = client.post("/sync", json={"asset_ids": [spot_id, spot_id]}).json()

        assert report["updated"] == [spot_id]
        assert retailer_source.call_count == 0

    def test_unknown_asset_id_is_404(self, client, spot_source):
        spot_id = _create(client, SPOT_ASSET)

        response = client.post("/sync", json={"asset_ids": [spot_id, 999]})

        assert response.status_code == 404
        assert spot_source.call_count == 0

    def test_empty_store(self, client):
        report = client.post("/sync").json()

        assert report["status"] == "completed"
        assert report["updated"] == []

    def test_response_carries_correlation_id(self, client):
        response = client.post("/sync", headers={CORRELATION_ID_HEADER: "sync-test-1"})

        assert response.headers[CORRELATION_ID_HEADER] == "sync-test-1"

    def test_sync_appends_history(self, client, spot_source):
        spot_id = _create(client, SPOT_ASSET)
        spot_source.set_price(Metal.GOLD, Purity.K22, "60")

        client.post("/sync")
        client.post("/sync")

        history = client.get(f"/assets/{spot_id}/history").json()
        assert len(history) == 2
        assert all(h["source"] == "goldapi" for h in history)
        assert all(h["is_manual"] is False for h in history)
