# backend/tests/test_dependencies.py
"""
Tests for the singleton service getters and their shutdown.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from bullion import dependencies
from bullion.main import app


@pytest.fixture
def fake_sources(monkeypatch):
    """Replace the real source classes so no HTTP client is built."""
    dependencies.shutdown_services()
    spot_cls = MagicMock(name="GoldApiSource")
    retailer_cls = MagicMock(name="PhiloroRetailerSource")
    monkeypatch.setattr(dependencies, "GoldApiSource", spot_cls)
    monkeypatch.setattr(dependencies, "PhiloroRetailerSource", retailer_cls)
    yield spot_cls, retailer_cls
    dependencies.shutdown_services()


class TestShutdownServices:

    def test_closes_created_sources(self, fake_sources):
        spot_cls, retailer_cls = fake_sources
        dependencies.get_sync_service()

        dependencies.shutdown_services()

        spot_cls.return_value.close.assert_called_once_with()
        retailer_cls.return_value.close.assert_called_once_with()

    def test_does_not_build_unused_sources(self, fake_sources):
        spot_cls, retailer_cls = fake_sources
        dependencies.get_spot_source()

        dependencies.shutdown_services()

        spot_cls.return_value.close.assert_called_once_with()
        retailer_cls.assert_not_called()

    def test_next_getter_call_builds_new_instance(self, fake_sources):
        spot_cls, _ = fake_sources
        spot_cls.side_effect = lambda: MagicMock()
        first = dependencies.get_spot_source()

        dependencies.shutdown_services()

        assert dependencies.get_spot_source() is not first
        assert dependencies.get_history_store.cache_info().currsize == 0

    def test_app_shutdown_runs_it(self):
        with patch("bullion.main.shutdown_services") as shutdown:
            with TestClient(app):
                shutdown.assert_not_called()

        shutdown.assert_called_once_with()
