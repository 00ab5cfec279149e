# backend/bullion/services/pricing/retailer.py
"""
Retailer price source backed by the philoro product price API.

Endpoint:
    GET {url}?country=CH&currency=CHF&skus=1991,2000

Response:
    {
        "products": [
            {
                "sku": "1991",
                "name": "Vreneli 20 Francs",
                "weight": "5.81g",
                "prices": [
                    {"type": "sell", "centAmount": "356008", "currency": "CHF"},
                    {"type": "buy", "centAmount": "378873", "currency": "CHF"}
                ]
            }
        ]
    }

"sell" is what the holder receives, "buy" is what the holder pays.
Amounts are integer cents. Products without a positive buy price are dropped.
"""

import logging
from decimal import Decimal, InvalidOperation

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from bullion.config import settings
from bullion.services.constants import CENTS_PER_UNIT, SOURCE_RETAILER, ZERO
from bullion.services.exceptions import MalformedPayloadError
from bullion.services.pricing.base import (
    RetailerCatalog,
    RetailerPriceSource,
    RetailerProduct,
    get_json,
)

logger = logging.getLogger(__name__)


# =============================================================================
# WIRE FORMAT
# =============================================================================

class RetailerPricePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    cent_amount: str | int | float | None = Field(default=None, alias="centAmount")
    currency: str | None = None


class RetailerProductPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sku: str | int
    name: str | None = None
    weight: str | None = None
    prices: list[RetailerPricePayload] = []


class RetailerResponsePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    products: list[RetailerProductPayload]


def _cents_to_amount(raw: str | int | float | None) -> Decimal:
    """Convert a centAmount value to currency units. Unparseable values become 0."""
    if raw is None:
        return ZERO
    try:
        return Decimal(str(raw)) / CENTS_PER_UNIT
    except InvalidOperation:
        return ZERO


def _price_of_type(product: RetailerProductPayload, price_type: str) -> Decimal:
    for price in product.prices:
        if price.type == price_type:
            return _cents_to_amount(price.cent_amount)
    return ZERO


# =============================================================================
# SOURCE
# =============================================================================

class PhiloroRetailerSource(RetailerPriceSource):
    """
    Retailer catalog source.

    All SKUs are requested in a single call. SKUs missing from the response
    (or dropped for lacking a buy price) are simply absent from the returned
    RetailerCatalog; the sync service reports them as missing.
    """

    def __init__(
            self,
            url: str | None = None,
            country: str | None = None,
            currency: str | None = None,
            timeout: float | None = None,
            client: httpx.Client | None = None,
            max_attempts: int | None = None,
    ) -> None:
        super().__init__(max_attempts=max_attempts or settings.source_max_attempts)
        self._url = url or settings.retailer_api_url
        self._country = country or settings.retailer_country
        self._currency = currency or settings.retailer_currency
        self._client = client or httpx.Client(
            timeout=timeout or settings.source_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return SOURCE_RETAILER

    def get_prices(self, retailer_ids: list[str]) -> RetailerCatalog:
        skus = list(dict.fromkeys(str(r) for r in retailer_ids if r))
        if not skus:
            return RetailerCatalog()

        return self._execute_with_retry(self._fetch, skus)

    def _fetch(self, skus: list[str]) -> RetailerCatalog:
        params = {
            "country": self._country,
            "currency": self._currency,
            "skus": ",".join(skus),
        }
        logger.debug(f"Requesting retailer prices for {len(skus)} SKUs")

        data = get_json(self.name, self._client, self._url, params=params)

        try:
            payload = RetailerResponsePayload.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedPayloadError(self.name, f"{e.error_count()} invalid field(s)") from e

        catalog = RetailerCatalog()
        for product in payload.products:
            sku = str(product.sku)
            sell_price = _price_of_type(product, "sell")
            buy_price = _price_of_type(product, "buy")

            if buy_price <= ZERO:
                logger.debug(f"Skipping SKU {sku}: no buy price")
                continue

            catalog.products[sku] = RetailerProduct(
                retailer_id=sku,
                name=product.name,
                sell_price=sell_price,
                buy_price=buy_price,
                weight=product.weight,
            )

        logger.info(f"Retailer returned {len(catalog)} of {len(skus)} requested SKUs")
        return catalog

    def close(self) -> None:
        self._client.close()
