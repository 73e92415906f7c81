"""
Lost Ark Market Sync — Name Search

Read-only lookups against the catalog table, independent of the write
path. Used by the search-as-you-type endpoint.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import Table, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lostark_market.config import PersistencePolicyKind
from lostark_market.errors import PersistenceError
from lostark_market.models import CatalogItem, MarketItemRow, PriceSnapshot

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

_CATALOG_TABLES: dict[PersistencePolicyKind, Table] = {
    PersistencePolicyKind.SINGLE_TABLE: MarketItemRow.__table__,
    PersistencePolicyKind.SPLIT: CatalogItem.__table__,
}


class NameHit(BaseModel):
    id: int
    name: str


class PricePoint(BaseModel):
    item_id: int
    recent_price: Decimal | None = None
    current_min_price: Decimal | None = None
    yday_avg_price: Decimal | None = None
    category_code: int
    recorded_at: datetime


def coerce_limit(value: Any, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """
    Positive integer limit, or default when absent/zero/negative/non-numeric.

    Oversized values are clamped to maximum.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    limit = int(number)
    if limit <= 0:
        return default
    return min(limit, maximum)


def _contains_pattern(text: str) -> str:
    """%text% with LIKE wildcards in the user text matched literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class NameSearch:
    """
    Case-insensitive substring search over item names.

    Usage:
        search = NameSearch(session_factory)
        hits = await search.search("potion", limit=5)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        kind: PersistencePolicyKind = PersistencePolicyKind.SPLIT,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ):
        self.session_factory = session_factory
        self.table = _CATALOG_TABLES[PersistencePolicyKind(kind)]
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def search(self, text: str | None, limit: Any = None) -> list[NameHit]:
        """
        Return up to limit {id, name} hits ordered by name ascending.

        Blank text returns [] without touching the store.
        """
        if not text or not text.strip():
            return []

        term = text.strip()
        bounded = coerce_limit(limit, self.default_limit, self.max_limit)
        stmt = (
            select(self.table.c.id, self.table.c.name)
            .where(self.table.c.name.ilike(_contains_pattern(term), escape="\\"))
            .order_by(self.table.c.name.asc())
            .limit(bounded)
        )

        try:
            async with self.session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(
                "name_search_failed",
                table=self.table.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"Name search failed: {e}") from e

        logger.debug("name_search_complete", term=term, limit=bounded, hits=len(rows))
        return [NameHit(id=row.id, name=row.name) for row in rows]

    async def latest_prices(self, item_id: int, limit: Any = None) -> list[PricePoint]:
        """Most recent price snapshots for one item, newest first (split shape)."""
        bounded = coerce_limit(limit, self.default_limit, self.max_limit)
        stmt = (
            select(PriceSnapshot)
            .where(PriceSnapshot.item_id == item_id)
            .order_by(PriceSnapshot.recorded_at.desc(), PriceSnapshot.id.desc())
            .limit(bounded)
        )

        try:
            async with self.session_factory() as session:
                snapshots = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(
                "latest_prices_failed",
                item_id=item_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"Price history lookup failed: {e}") from e

        return [
            PricePoint(
                item_id=s.item_id,
                recent_price=s.recent_price,
                current_min_price=s.current_min_price,
                yday_avg_price=s.yday_avg_price,
                category_code=s.category_code,
                recorded_at=s.recorded_at,
            )
            for s in snapshots
        ]
