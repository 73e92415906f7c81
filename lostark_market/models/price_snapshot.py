"""
Lost Ark Market Sync — Price Snapshot Model (split shape)

Append-only log of price observations per item. Never updated — each
sweep appends one row per item it saw.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    TIMESTAMP,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from lostark_market.models.base import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
_SNAPSHOT_PK = BigInteger().with_variant(Integer, "sqlite")


class PriceSnapshot(Base):
    """
    One recorded price point for an item at a sweep's as_of time.

    Index: (item_id, recorded_at DESC) serves "latest N prices for item".
    """

    __tablename__ = "lostark_market_prices"

    id: Mapped[int] = mapped_column(_SNAPSHOT_PK, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("lostark_items.id"), nullable=False
    )
    recent_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    current_min_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    yday_avg_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    category_code: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<PriceSnapshot item_id={self.item_id} recent={self.recent_price} "
            f"at={self.recorded_at}>"
        )


Index(
    "idx_market_prices_item_time",
    PriceSnapshot.item_id,
    PriceSnapshot.recorded_at.desc(),
)
