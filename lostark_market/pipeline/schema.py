"""
Lost Ark Market Sync — Schema Manager

Creates the tables for the configured persistence shape before any write.
Safe to call before every run and from concurrent runs: every statement is
CREATE ... IF NOT EXISTS, and a lost creation race is accepted once the
tables are confirmed present.
"""

from __future__ import annotations

import structlog
from sqlalchemy import Table, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateIndex, CreateTable

from lostark_market.config import PersistencePolicyKind
from lostark_market.errors import PersistenceError
from lostark_market.models import CatalogItem, MarketItemRow, PriceSnapshot

logger = structlog.get_logger(__name__)

# Creation order matters: FK parents first
SHAPES: dict[PersistencePolicyKind, tuple[Table, ...]] = {
    PersistencePolicyKind.SINGLE_TABLE: (MarketItemRow.__table__,),
    PersistencePolicyKind.SPLIT: (CatalogItem.__table__, PriceSnapshot.__table__),
}


class SchemaManager:
    """Ensures one persistence shape exists in the store."""

    def __init__(self, engine: AsyncEngine, kind: PersistencePolicyKind):
        self.engine = engine
        self.kind = kind
        self.tables = SHAPES[kind]

    async def ensure_schema(self) -> None:
        """Create missing tables and indexes. Existing ones are left untouched."""
        try:
            async with self.engine.begin() as conn:
                for table in self.tables:
                    await conn.execute(CreateTable(table, if_not_exists=True))
                    for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
                        await conn.execute(CreateIndex(index, if_not_exists=True))
        except SQLAlchemyError as e:
            # A concurrent run may have created the same objects first
            if await self._all_tables_exist():
                logger.info(
                    "schema_create_race_ignored",
                    shape=self.kind.value,
                    error_type=type(e).__name__,
                )
                return
            logger.error(
                "schema_create_failed",
                shape=self.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"Failed to create {self.kind.value} schema: {e}") from e

        logger.debug(
            "schema_ensured",
            shape=self.kind.value,
            tables=[t.name for t in self.tables],
        )

    async def _all_tables_exist(self) -> bool:
        names = [t.name for t in self.tables]
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(
                    lambda sync_conn: all(inspect(sync_conn).has_table(n) for n in names)
                )
        except SQLAlchemyError:
            return False
