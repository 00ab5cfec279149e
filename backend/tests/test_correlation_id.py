# backend/tests/test_correlation_id.py
"""
Tests for correlation ID middleware and context management.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor

from bullion.middleware import CORRELATION_ID_HEADER
from bullion.middleware.correlation import REQUEST_ID_HEADER
from bullion.utils.context import (
    bind_context,
    correlation_scope,
    get_correlation_id,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

GENERATED_ID = re.compile(r"^[0-9a-f]{32}$")


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_get_returns_none_when_not_set(self):
        """Should return None outside any scope."""
        assert get_correlation_id() is None

    def test_set_and_reset(self):
        token = set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

        reset_correlation_id(token)
        assert get_correlation_id() is None

    def test_scope_restores_previous_id(self):
        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"
        assert get_correlation_id() is None

    def test_scope_generates_prefixed_id(self):
        with correlation_scope(prefix="sync") as correlation_id:
            assert correlation_id.startswith("sync-")
            assert get_correlation_id() == correlation_id

    def test_new_ids_are_unique(self):
        assert new_correlation_id() != new_correlation_id()
        assert GENERATED_ID.match(new_correlation_id())

    def test_worker_thread_without_binding_has_no_id(self):
        with correlation_scope("request-1"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                seen = pool.submit(get_correlation_id).result()

        assert seen is None

    def test_bind_context_carries_id_into_worker_thread(self):
        with correlation_scope("request-1"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                seen = pool.submit(bind_context(get_correlation_id)).result()

        assert seen == "request-1"


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    def test_generates_id_when_missing(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert GENERATED_ID.match(response.headers[CORRELATION_ID_HEADER])

    def test_each_request_gets_its_own_id(self, client):
        first = client.get("/health").headers[CORRELATION_ID_HEADER]
        second = client.get("/health").headers[CORRELATION_ID_HEADER]

        assert first != second

    def test_echoes_incoming_id(self, client):
        response = client.get("/health", headers={CORRELATION_ID_HEADER: "abc-123"})

        assert response.headers[CORRELATION_ID_HEADER] == "abc-123"

    def test_falls_back_to_request_id_header(self, client):
        response = client.get("/health", headers={REQUEST_ID_HEADER: "req.42"})

        assert response.headers[CORRELATION_ID_HEADER] == "req.42"

    def test_replaces_unsafe_incoming_id(self, client):
        response = client.get("/health", headers={CORRELATION_ID_HEADER: "bad id\tINFO fake"})

        assert GENERATED_ID.match(response.headers[CORRELATION_ID_HEADER])

    def test_replaces_overlong_incoming_id(self, client):
        response = client.get("/health", headers={CORRELATION_ID_HEADER: "a" * 129})

        assert GENERATED_ID.match(response.headers[CORRELATION_ID_HEADER])

    def test_error_body_carries_same_id(self, client):
        response = client.get("/assets/404", headers={CORRELATION_ID_HEADER: "trace-404"})

        assert response.status_code == 404
        assert response.json()["correlation_id"] == "trace-404"

    def test_validation_error_carries_id(self, client):
        response = client.post("/assets", json={}, headers={CORRELATION_ID_HEADER: "trace-422"})

        assert response.status_code == 422
        assert response.json()["correlation_id"] == "trace-422"

    def test_access_log_line(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="bullion.middleware.correlation"):
            client.get("/health")

        assert any("GET /health -> 200" in record.getMessage() for record in caplog.records)
