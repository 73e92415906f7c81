"""
Lost Ark Market Sync — Single-table Market Item Model

One row per market item id holding catalog attributes and the latest
observed price point. Overwritten on every sweep that includes the item.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Integer, Numeric, String, Text, TIMESTAMP, func
from sqlalchemy.orm import Mapped, mapped_column

from lostark_market.models.base import Base


class MarketItemRow(Base):
    """
    Latest-state row per item (single-table persistence shape).

    trade_remain_count stays NULL when the upstream listing has no trade
    count constraint; it is never coerced to zero.
    """

    __tablename__ = "lostark_market_items"

    id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False, comment="Upstream item Id"
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(20), nullable=True)
    icon: Mapped[str | None] = mapped_column(Text, nullable=True)
    bundle_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trade_remain_count: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="NULL means no trade-count constraint"
    )
    yday_avg_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    recent_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    current_min_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    category_code: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot_time: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, comment="as_of of the sweep that wrote the row"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Wall-clock time of the last write",
    )

    def __repr__(self) -> str:
        return (
            f"<MarketItemRow id={self.id} name={self.name!r} "
            f"recent={self.recent_price} min={self.current_min_price}>"
        )
