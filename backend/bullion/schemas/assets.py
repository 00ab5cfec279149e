# backend/bullion/schemas/assets.py
"""
Pydantic schemas for Asset and price history validation.

These schemas define:
- What data clients must send (Create)
- What data clients can update (Update)
- What data the API returns (Response)

Validation layers:
- Field constraints: type, range, length
- Field validators: normalization (trim)
- Service: existence checks

current_price is never accepted from clients. It changes only when a price
point is committed (sync or manual entry).
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bullion.models import AssetType, Metal, Purity


# =============================================================================
# BASE SCHEMA
# =============================================================================

class AssetBase(BaseModel):
    """
    Base schema with fields common to Create and Response.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["Vreneli 20 Francs", "1 oz Krugerrand"],
        description="Display name of the holding"
    )

    asset_type: AssetType = Field(
        default=AssetType.COIN,
        description="Coin or bar"
    )

    metal: Metal = Field(
        default=Metal.GOLD,
        description="Precious metal"
    )

    purity: Purity = Field(
        default=Purity.K24,
        description="Karat used to pick the spot per-gram price"
    )

    weight_grams: Decimal = Field(
        ...,
        gt=0,
        examples=["5.806", "31.1035"],
        description="Fine weight in grams, used for spot pricing"
    )

    quantity: Decimal = Field(
        ...,
        gt=0,
        examples=["1", "10"],
        description="Number of units held"
    )

    purchase_price: Decimal = Field(
        ...,
        ge=0,
        examples=["350.00"],
        description="Cost per unit"
    )

    retailer_id: str | None = Field(
        default=None,
        max_length=50,
        examples=["1991"],
        description="Retailer catalog SKU. Empty means spot-priced."
    )

    # =========================================================================
    # FIELD VALIDATORS (Normalization)
    # =========================================================================

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Normalize name: trim whitespace."""
        return v.strip()

    @field_validator('retailer_id')
    @classmethod
    def normalize_retailer_id(cls, v: str | None) -> str | None:
        """Blank retailer ids mean "spot-priced"."""
        if v is None:
            return None
        v = v.strip()
        return v or None


# =============================================================================
# CREATE SCHEMA
# =============================================================================

class AssetCreate(AssetBase):
    """
    Schema for creating a new asset.

    Inherits all fields and validators from AssetBase.
    """
    pass


# =============================================================================
# UPDATE SCHEMA
# =============================================================================

class AssetUpdate(BaseModel):
    """
    Schema for updating an existing asset.

    All fields are optional; the client only sends fields to update.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    asset_type: AssetType | None = Field(default=None)
    metal: Metal | None = Field(default=None)
    purity: Purity | None = Field(default=None)
    weight_grams: Decimal | None = Field(default=None, gt=0)
    quantity: Decimal | None = Field(default=None, gt=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    retailer_id: str | None = Field(default=None, max_length=50)

    @field_validator('name', 'retailer_id')
    @classmethod
    def normalize_string(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip()


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class AssetResponse(AssetBase):
    """
    Schema for API responses.

    Includes database-generated fields and the cached current price.
    """

    id: int = Field(..., description="Unique identifier")
    current_price: Decimal | None = Field(None, description="Latest sell price per unit")
    current_buy_price: Decimal | None = Field(None, description="Latest buy price per unit")
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    model_config = ConfigDict(from_attributes=True)


class AssetListResponse(BaseModel):
    """Response schema for the asset list."""

    items: list[AssetResponse]
    total: int = Field(..., description="Number of assets")


# =============================================================================
# PRICE HISTORY SCHEMAS
# =============================================================================

class PricePointCreate(BaseModel):
    """
    Manual price entry.

    Goes through the same commit step as synced prices, so the asset's
    current price follows.
    """

    sell_price: Decimal = Field(..., ge=0, description="Sell price per unit")
    buy_price: Decimal = Field(..., ge=0, description="Buy price per unit")
    timestamp: datetime | None = Field(
        default=None,
        description="Observation time (default: now). Never earlier than the latest point."
    )


class PricePointResponse(BaseModel):
    """One stored price history row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    timestamp: datetime
    sell_price: Decimal
    buy_price: Decimal
    is_manual: bool
    source: str

    @field_validator('timestamp')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """SQLite returns naive timestamps; stored values are always UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
