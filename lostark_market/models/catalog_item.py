"""
Lost Ark Market Sync — Catalog Item Model (split shape)

Current attributes per item. Prices live in price_snapshots.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Integer, String, Text, TIMESTAMP, func
from sqlalchemy.orm import Mapped, mapped_column

from lostark_market.models.base import Base


class CatalogItem(Base):
    """
    One row per item id; created on first sighting, overwritten on every
    later sighting, never deleted. category_code reflects the most recent
    sweep that touched the item.
    """

    __tablename__ = "lostark_items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(20), nullable=True)
    icon: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_code: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<CatalogItem id={self.id} name={self.name!r} category={self.category_code}>"
