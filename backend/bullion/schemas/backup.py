# backend/bullion/schemas/backup.py
"""
Pydantic schemas for the backup bundle.

A bundle is a full, self-contained copy of the store:

    {
        "version": 1,
        "timestamp": "2026-01-31T12:00:00Z",
        "assets": [...],
        "history": [...]
    }

Money values are serialized as strings so no precision is lost in JSON.
History entries reference assets by their id inside the bundle. A history
entry without a source (older bundles) is restored with source "restore".
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from bullion.models import AssetType, Metal, Purity


def _as_utc(value: datetime | None) -> datetime | None:
    """Bundles always carry UTC; naive values (SQLite) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BackupAsset(BaseModel):
    """One asset as stored in a bundle."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., ge=1)
    name: str
    asset_type: AssetType
    metal: Metal
    purity: Purity
    weight_grams: Decimal = Field(..., ge=0)
    quantity: Decimal = Field(..., ge=0)
    purchase_price: Decimal = Field(..., ge=0)
    retailer_id: str | None = None
    current_price: Decimal | None = None
    current_buy_price: Decimal | None = None
    created_at: datetime | None = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_serializer(
        "weight_grams", "quantity", "purchase_price", "current_price", "current_buy_price",
    )
    def serialize_decimal(self, value: Decimal | None) -> str | None:
        return None if value is None else str(value)


class BackupPricePoint(BaseModel):
    """One price history row. Surrogate row ids are not kept."""
    model_config = ConfigDict(from_attributes=True)

    asset_id: int
    timestamp: datetime
    sell_price: Decimal
    buy_price: Decimal
    is_manual: bool = False
    source: str | None = None

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_serializer("sell_price", "buy_price")
    def serialize_decimal(self, value: Decimal) -> str:
        return str(value)


class BackupData(BaseModel):
    """
    Complete backup bundle.

    Validation:
        - Asset ids are unique
        - Every history row points at an asset in the bundle
    """

    version: int = Field(..., ge=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assets: list[BackupAsset] = Field(default_factory=list)
    history: list[BackupPricePoint] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_references(self) -> "BackupData":
        asset_ids = [asset.id for asset in self.assets]
        if len(asset_ids) != len(set(asset_ids)):
            raise ValueError("duplicate asset id in backup")

        known = set(asset_ids)
        orphans = {point.asset_id for point in self.history} - known
        if orphans:
            raise ValueError(f"history references unknown assets: {sorted(orphans)}")
        return self


class BackupFileInfo(BaseModel):
    """A backup file on disk."""
    name: str
    path: str
    size: int
    modified_at: datetime


class RestoreResponse(BaseModel):
    """Result of restoring a bundle."""
    assets_restored: int
    history_restored: int
    version: int
