# backend/bullion/services/pricing/goldapi.py
"""
Spot price source backed by goldapi.io.

Endpoint:
    GET {base_url}api/{symbol}/{currency}
    Header: x-access-token: <api key>

Response (only the fields we use):
    {
        "price": 2345.67,            # per troy ounce
        "price_gram_24k": 75.41,
        "price_gram_22k": 69.13,
        ...
    }

Payloads are validated with pydantic; a payload that fails validation is
reported as MalformedPayloadError (retryable).
"""

import logging
from decimal import Decimal

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from bullion.config import settings
from bullion.models import Metal, Purity
from bullion.services.constants import SOURCE_SPOT
from bullion.services.exceptions import MalformedPayloadError, SourceRejectedError
from bullion.services.pricing.base import SpotPriceSource, SpotPriceResponse, get_json

logger = logging.getLogger(__name__)


class GoldApiPayload(BaseModel):
    """Wire format of a goldapi.io quote. Unknown fields are ignored."""
    model_config = ConfigDict(extra="ignore")

    price: Decimal | None = None
    price_gram_24k: Decimal | None = None
    price_gram_22k: Decimal | None = None
    price_gram_21k: Decimal | None = None
    price_gram_20k: Decimal | None = None
    price_gram_18k: Decimal | None = None
    price_gram_16k: Decimal | None = None
    price_gram_14k: Decimal | None = None
    price_gram_10k: Decimal | None = None

    def gram_prices(self) -> dict[Purity, Decimal]:
        """Per-gram prices for the purities present in the payload."""
        prices: dict[Purity, Decimal] = {}
        for purity in Purity:
            value = getattr(self, purity.quote_field, None)
            if value is not None:
                prices[purity] = value
        return prices


class GoldApiSource(SpotPriceSource):
    """
    goldapi.io implementation of SpotPriceSource.

    Configuration:
        api_key: goldapi.io access token (required; an empty key is rejected
            without issuing a request)
        base_url: API root, must end with "/"
        timeout: Per-request timeout in seconds
        client: Optional httpx.Client (tests inject one with MockTransport)

    Example:
        source = GoldApiSource(api_key="goldapi-xxx")
        quote = source.get_spot_price(Metal.GOLD, "CHF")
        quote.gram_price(Purity.K24)  # Decimal("75.41")
    """

    def __init__(
            self,
            api_key: str | None = None,
            base_url: str | None = None,
            timeout: float | None = None,
            client: httpx.Client | None = None,
            max_attempts: int | None = None,
    ) -> None:
        super().__init__(max_attempts=max_attempts or settings.source_max_attempts)
        self._api_key = settings.goldapi_key if api_key is None else api_key
        self._base_url = base_url or settings.goldapi_base_url
        self._client = client or httpx.Client(
            timeout=timeout or settings.source_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return SOURCE_SPOT

    def get_spot_price(self, metal: Metal, currency: str) -> SpotPriceResponse:
        if not self._api_key:
            raise SourceRejectedError(self.name, "API key missing")

        return self._execute_with_retry(self._fetch, metal, currency.upper())

    def _fetch(self, metal: Metal, currency: str) -> SpotPriceResponse:
        url = f"{self._base_url.rstrip('/')}/api/{metal.symbol}/{currency}"
        logger.debug(f"Requesting spot price {metal.symbol}/{currency}")

        data = get_json(
            self.name,
            self._client,
            url,
            headers={"x-access-token": self._api_key, "Accept": "application/json"},
        )

        try:
            payload = GoldApiPayload.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedPayloadError(self.name, f"{e.error_count()} invalid field(s)") from e

        gram_prices = payload.gram_prices()
        if payload.price is None and not gram_prices:
            raise MalformedPayloadError(self.name, "no price fields")

        logger.info(
            f"Spot price {metal.symbol}/{currency}: "
            f"{len(gram_prices)} purities, ounce={payload.price}"
        )

        return SpotPriceResponse(
            metal=metal,
            currency=currency,
            price_per_ounce=payload.price,
            price_per_gram=gram_prices,
        )

    def close(self) -> None:
        self._client.close()
