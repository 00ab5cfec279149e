# backend/bullion/middleware/correlation.py
"""
Correlation id middleware.

For each request:
1. Take the id from X-Correlation-ID (or X-Request-ID), or generate one
2. Run the request under that id (see bullion.utils.context)
3. Echo the id in the X-Correlation-ID response header
4. Log one access line with method, path, status and duration

Incoming ids are accepted only if they are short and made of safe
characters; anything else is replaced so it cannot forge log lines.
"""

import logging
import re
import time
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bullion.utils.context import correlation_scope

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_id(request: Request) -> str | None:
    for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
        value = request.headers.get(header)
        if value and _VALID_ID.match(value):
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags every request (and its log lines) with a correlation id."""

    async def dispatch(
            self,
            request: Request,
            call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        with correlation_scope(_incoming_id(request)) as correlation_id:
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000

            response.headers[CORRELATION_ID_HEADER] = correlation_id
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({elapsed_ms:.1f} ms)"
            )
            return response
