"""
Lost Ark Market Sync — Upsert Engine

Applies one sweep's item list to the store under a persistence policy:

- SingleTablePolicy: one row per item id, every mutable column overwritten
  with the latest observation.
- SplitPolicy: catalog row overwritten (no prices), plus one new
  price-history row per item per run. History is never deduplicated.

Each item is its own transaction. The first failure stops the loop;
items already committed stay committed and the rest are reported as
skipped, so a failed run is at-least-once per item rather than
all-or-nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Sequence

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import Table, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lostark_market.config import PersistencePolicyKind
from lostark_market.errors import PersistenceError, ValidationError
from lostark_market.models import CatalogItem, MarketItemRow, PriceSnapshot
from lostark_market.pipeline.market_client import MarketItem

logger = structlog.get_logger(__name__)

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


# ---------------------------------------------------------------------------
# Outcome accumulator
# ---------------------------------------------------------------------------


class ItemOutcome(BaseModel):
    """Result of writing one item."""
    item_id: int
    ok: bool
    error: str | None = None


class ApplyReport(BaseModel):
    """Per-item outcomes for one apply() call."""

    policy: PersistencePolicyKind
    category_code: int
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped

    def raise_for_failure(self) -> None:
        if self.ok:
            return
        first = self.failed[0] if self.failed else None
        raise PersistenceError(
            f"{len(self.failed)} item write(s) failed, {len(self.skipped)} skipped"
            + (f": {first.error}" if first and first.error else ""),
            item_id=first.item_id if first else None,
        )


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def _upsert_builder(session: AsyncSession):
    dialect = session.bind.dialect.name if session.bind is not None else ""
    try:
        return _UPSERT_BUILDERS[dialect]
    except KeyError:
        raise PersistenceError(f"Upsert is not supported on dialect '{dialect}'")


def _upsert_by_id(builder: Any, table: Table, values: dict[str, Any]) -> Any:
    """INSERT ... ON CONFLICT (id) DO UPDATE every non-key column."""
    stmt = builder(table).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[table.c.id],
        set_={name: stmt.excluded[name] for name in values if name != "id"},
    )


class PersistencePolicy(ABC):
    """
    One persistence shape. Subclasses write a single item; the shared
    apply() loop owns ordering, commits and failure accounting.
    """

    kind: PersistencePolicyKind

    async def apply(
        self,
        session: AsyncSession,
        items: Sequence[MarketItem],
        category_code: int,
        as_of: datetime,
    ) -> ApplyReport:
        """Write items in order; stop at the first failed write."""
        report = ApplyReport(policy=self.kind, category_code=category_code)
        builder = _upsert_builder(session)

        logger.info(
            "upsert_apply_start",
            policy=self.kind.value,
            category_code=category_code,
            items_count=len(items),
            as_of=as_of.isoformat(),
        )

        for index, item in enumerate(items):
            try:
                await self._write_item(session, builder, item, category_code, as_of)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                report.outcomes.append(ItemOutcome(item_id=item.id, ok=False, error=str(e)))
                report.skipped = [rest.id for rest in items[index + 1:]]
                logger.error(
                    "upsert_apply_failed",
                    policy=self.kind.value,
                    category_code=category_code,
                    item_id=item.id,
                    written=report.succeeded,
                    skipped=len(report.skipped),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return report
            report.outcomes.append(ItemOutcome(item_id=item.id, ok=True))

        logger.info(
            "upsert_apply_complete",
            policy=self.kind.value,
            category_code=category_code,
            written=report.succeeded,
        )
        return report

    @abstractmethod
    async def _write_item(
        self,
        session: AsyncSession,
        builder: Any,
        item: MarketItem,
        category_code: int,
        as_of: datetime,
    ) -> None:
        ...


class SingleTablePolicy(PersistencePolicy):
    """Overwrite-latest: attributes and current prices in one row per id."""

    kind = PersistencePolicyKind.SINGLE_TABLE

    async def _write_item(self, session, builder, item, category_code, as_of) -> None:
        table = MarketItemRow.__table__
        values = {
            "id": item.id,
            "name": item.name,
            "grade": item.grade,
            "icon": item.icon,
            "bundle_count": item.bundle_count,
            "trade_remain_count": item.trade_remain_count,
            "yday_avg_price": item.yday_avg_price,
            "recent_price": item.recent_price,
            "current_min_price": item.current_min_price,
            "category_code": category_code,
            "snapshot_time": as_of,
            "updated_at": datetime.now(timezone.utc),
        }
        await session.execute(_upsert_by_id(builder, table, values))


class SplitPolicy(PersistencePolicy):
    """Catalog row overwritten; price point appended to history."""

    kind = PersistencePolicyKind.SPLIT

    async def _write_item(self, session, builder, item, category_code, as_of) -> None:
        catalog = CatalogItem.__table__
        await session.execute(
            _upsert_by_id(
                builder,
                catalog,
                {
                    "id": item.id,
                    "name": item.name,
                    "grade": item.grade,
                    "icon": item.icon,
                    "category_code": category_code,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
        )

        # Append-only, no conflict clause
        await session.execute(
            insert(PriceSnapshot.__table__).values(
                item_id=item.id,
                recent_price=item.recent_price,
                current_min_price=item.current_min_price,
                yday_avg_price=item.yday_avg_price,
                category_code=category_code,
                recorded_at=as_of,
            )
        )


_POLICIES: dict[PersistencePolicyKind, type[PersistencePolicy]] = {
    PersistencePolicyKind.SINGLE_TABLE: SingleTablePolicy,
    PersistencePolicyKind.SPLIT: SplitPolicy,
}


def build_policy(kind: PersistencePolicyKind | str) -> PersistencePolicy:
    """Map a configured policy kind to a policy instance."""
    try:
        return _POLICIES[PersistencePolicyKind(kind)]()
    except ValueError:
        raise ValidationError(f"Unknown persistence policy '{kind}'")
