# backend/bullion/services/pricing/base.py
"""
Abstract interfaces for price sources.

Two kinds of source feed the sync service:
- SpotPriceSource: one per-gram price per karat for a (metal, currency) pair
- RetailerPriceSource: a catalog of ready-made per-unit prices keyed by SKU

Both normalize their answers to PriceQuote(sell_price, buy_price) before the
sync service commits them. SpotQuote and ScrapedQuote keep the origin of a
quote attached so the history row can record its source.

Retry Behavior:
    Sources retry SourceUnavailableError inside a single call through
    `_execute_with_retry`. The sync service itself never retries; the next
    cycle tries again.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeVar, Callable, Any

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from bullion.models import Metal, Purity
from bullion.services.constants import SOURCE_SPOT, SOURCE_RETAILER
from bullion.services.exceptions import (
    MalformedPayloadError,
    NoQuoteForKeyError,
    SourceRejectedError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES - QUOTES
# =============================================================================

@dataclass(frozen=True)
class PriceQuote:
    """
    Normalized per-unit price for one asset.

    Attributes:
        sell_price: What the holder receives when selling one unit
        buy_price: What the holder pays when buying one unit
    """
    sell_price: Decimal
    buy_price: Decimal


@dataclass(frozen=True)
class SpotQuote(PriceQuote):
    """Quote derived from a spot per-gram price."""

    @property
    def source(self) -> str:
        return SOURCE_SPOT


@dataclass(frozen=True)
class ScrapedQuote(PriceQuote):
    """Quote read from the retailer catalog."""
    retailer_id: str = ""

    @property
    def source(self) -> str:
        return SOURCE_RETAILER


# =============================================================================
# DATA CLASSES - SOURCE RESPONSES
# =============================================================================

@dataclass(frozen=True)
class SpotPriceResponse:
    """
    One spot API answer for a (metal, currency) pair.

    Attributes:
        metal: Metal the prices refer to
        currency: ISO 4217 currency code
        price_per_ounce: Troy ounce spot price, if reported
        price_per_gram: Per-gram price keyed by purity. A purity the source
            did not report is absent from the mapping.
    """
    metal: Metal
    currency: str
    price_per_ounce: Decimal | None = None
    price_per_gram: dict[Purity, Decimal] = field(default_factory=dict)

    def gram_price(self, purity: Purity) -> Decimal | None:
        return self.price_per_gram.get(purity)

    def require_gram_price(self, purity: Purity) -> Decimal:
        """
        Raises:
            NoQuoteForKeyError: The source did not report this purity
        """
        price = self.gram_price(purity)
        if price is None:
            raise NoQuoteForKeyError(SOURCE_SPOT, purity.quote_field)
        return price


@dataclass(frozen=True)
class RetailerProduct:
    """A single catalog entry with prices already converted from cents."""
    retailer_id: str
    name: str | None
    sell_price: Decimal
    buy_price: Decimal
    weight: str | None = None


@dataclass
class RetailerCatalog:
    """
    Retailer answer for a batch of SKUs.

    SKUs that were requested but are absent from `products` had no usable
    quote in this response.
    """
    products: dict[str, RetailerProduct] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.products)

    def get(self, retailer_id: str) -> RetailerProduct | None:
        return self.products.get(retailer_id)

    def require(self, retailer_id: str) -> RetailerProduct:
        """
        Raises:
            NoQuoteForKeyError: The SKU is absent from this response
        """
        product = self.get(retailer_id)
        if product is None:
            raise NoQuoteForKeyError(SOURCE_RETAILER, retailer_id)
        return product

    @property
    def is_empty(self) -> bool:
        return not self.products


# =============================================================================
# HTTP HELPERS
# =============================================================================

# Status codes that mean "the source refuses us" rather than "try again later"
REJECTED_STATUS_CODES = frozenset({401, 403, 429})


def raise_for_source_status(source: str, response: httpx.Response) -> None:
    """
    Map a non-success HTTP status to the source error taxonomy.

    Raises:
        SourceRejectedError: 401, 403, 429
        SourceUnavailableError: Any other 4xx/5xx
    """
    status = response.status_code
    if status < 400:
        return
    if status in REJECTED_STATUS_CODES:
        raise SourceRejectedError(source, f"HTTP {status}", status_code=status)
    raise SourceUnavailableError(source, f"HTTP {status}")


def get_json(source: str, client: httpx.Client, url: str, **kwargs: Any) -> Any:
    """
    Issue a GET request and return the decoded JSON body.

    Transport errors (timeouts, refused connections) become
    SourceUnavailableError; an undecodable body becomes MalformedPayloadError.
    """
    try:
        response = client.get(url, **kwargs)
    except httpx.TimeoutException as e:
        raise SourceUnavailableError(source, f"timeout: {e}") from e
    except httpx.HTTPError as e:
        raise SourceUnavailableError(source, f"request error: {e}") from e

    raise_for_source_status(source, response)

    try:
        return response.json()
    except ValueError as e:
        raise MalformedPayloadError(source, "response is not JSON") from e


# =============================================================================
# RETRY MIXIN
# =============================================================================

class _RetryingSource:
    """
    Shared retry helper for all sources.

    Subclasses can override the retry configuration with class attributes
    or pass max_attempts to the constructor (tests use 1).
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    def __init__(self, max_attempts: int | None = None) -> None:
        self._max_attempts = max_attempts or self.MAX_RETRY_ATTEMPTS

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function, retrying transient failures with exponential backoff.

        Only SourceUnavailableError (timeouts, connection errors, 5xx,
        malformed payloads) is retried. SourceRejectedError is raised at once.

        Raises:
            The last exception if all attempts fail
        """

        @retry(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(SourceUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()


# =============================================================================
# ABSTRACT BASE CLASSES
# =============================================================================

class SpotPriceSource(_RetryingSource, ABC):
    """
    Source of spot prices per (metal, currency).

    One call returns every purity's per-gram price, so the sync service
    issues one call per distinct (metal, currency) pair.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and error messages."""
        pass

    @abstractmethod
    def get_spot_price(self, metal: Metal, currency: str) -> SpotPriceResponse:
        """
        Fetch the current spot price.

        Raises:
            SourceUnavailableError: Network error, timeout, 5xx or bad payload
            SourceRejectedError: Missing/invalid API key or quota exceeded
        """
        pass


class RetailerPriceSource(_RetryingSource, ABC):
    """Source of per-unit prices for retailer SKUs."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and error messages."""
        pass

    @abstractmethod
    def get_prices(self, retailer_ids: list[str]) -> RetailerCatalog:
        """
        Fetch prices for a batch of SKUs in one request.

        Returns:
            RetailerCatalog with the SKUs the retailer could price

        Raises:
            SourceUnavailableError: Network error, timeout, 5xx or bad payload
            SourceRejectedError: Request refused by the retailer
        """
        pass
