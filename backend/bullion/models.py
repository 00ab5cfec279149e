# backend/bullion/models.py
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Enum, Numeric, Boolean, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class AssetType(str, enum.Enum):
    COIN = "COIN"
    BAR = "BAR"


class Metal(str, enum.Enum):
    """Precious metals with their spot API symbols."""
    GOLD = "GOLD"
    SILVER = "SILVER"
    PLATINUM = "PLATINUM"
    PALLADIUM = "PALLADIUM"

    @property
    def symbol(self) -> str:
        return _METAL_SYMBOLS[self]


_METAL_SYMBOLS = {
    Metal.GOLD: "XAU",
    Metal.SILVER: "XAG",
    Metal.PLATINUM: "XPT",
    Metal.PALLADIUM: "XPD",
}


class Purity(str, enum.Enum):
    """
    Karat classification.

    The spot API reports one per-gram price per karat
    (price_gram_24k, price_gram_22k, ...).
    """
    K24 = "24K"
    K22 = "22K"
    K21 = "21K"
    K20 = "20K"
    K18 = "18K"
    K16 = "16K"
    K14 = "14K"
    K10 = "10K"

    @property
    def quote_field(self) -> str:
        return f"price_gram_{self.value.lower()}"


class Asset(Base):
    """
    A precious-metal holding.

    Assets with a retailer_id are priced from the retailer catalog; all others
    are priced from the spot API using metal, purity and weight.

    current_price is a cache of the latest history point's sell price. It is
    written only by PriceHistoryStore.commit_price.
    """
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType), default=AssetType.COIN)
    metal: Mapped[Metal] = mapped_column(Enum(Metal), default=Metal.GOLD)
    purity: Mapped[Purity] = mapped_column(Enum(Purity), default=Purity.K24)
    weight_grams: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))  # Per unit

    # Retailer catalog key, e.g. "1991". NULL = spot priced
    retailer_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    current_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    current_buy_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    history: Mapped[list["PriceHistory"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PriceHistory.timestamp",
    )

    @property
    def is_scraped(self) -> bool:
        return bool(self.retailer_id)


class PriceHistory(Base):
    """
    Append-only price log.

    Rows are never updated. They disappear only with their asset
    (ON DELETE CASCADE) or when a backup is restored.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        # "Get the history of asset X in time order" is the only read pattern
        Index('ix_price_history_asset_timestamp', 'asset_id', 'timestamp'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    asset_id: Mapped[int] = mapped_column(ForeignKey("assets.id", ondelete="CASCADE"), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    sell_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    buy_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)
    source: Mapped[str] = mapped_column(String(50), default="manual")  # e.g. "goldapi", "retailer"

    asset: Mapped["Asset"] = relationship(back_populates="history")
