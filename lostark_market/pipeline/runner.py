"""
Lost Ark Market Sync — Pipeline Run Driver

One run = validate config → ensure schema → full category sweep →
apply under a persistence policy. Persistence only starts after the whole
sweep succeeded, so a failed or cancelled sweep never writes anything.

A price check is the one-item variant: page-1 lookup by name, then a
single-row apply.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from lostark_market.config import PersistencePolicyKind, Settings
from lostark_market.errors import ConfigError, ValidationError
from lostark_market.pipeline.market_client import MarketClient, MarketItem
from lostark_market.pipeline.paginator import collect_category
from lostark_market.pipeline.schema import SchemaManager
from lostark_market.pipeline.upsert import ApplyReport, PersistencePolicy, build_policy

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Category code parsing
# ---------------------------------------------------------------------------


def parse_category_code(value: Any) -> int:
    """Strictly parse a caller-supplied category code."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid category code: {value!r}")
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid category code: {value!r}")
    if not number.is_integer() or number <= 0:
        raise ValidationError(f"Invalid category code: {value!r}")
    return int(number)


def coerce_category_code(value: Any, default: int) -> int:
    """Use value when it is a positive integer code, otherwise default."""
    if value is None or value == "":
        return default
    try:
        return parse_category_code(value)
    except ValidationError:
        logger.warning("category_code_override_ignored", value=str(value), default=default)
        return default


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class RunResult(BaseModel):
    """Outcome of one pipeline run."""
    category_code: int
    policy: PersistencePolicyKind
    item_count: int = 0
    report: ApplyReport | None = None
    ok: bool


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class PipelineRunner:
    """
    Runs sweeps for a category and persists them.

    Concurrent runs are not excluded: every write is keyed by item id, so
    overlapping runs resolve last-write-wins per row.
    """

    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        client_factory: Callable[[Settings], MarketClient] = MarketClient,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory
        self.client_factory = client_factory

    def _default_category(self) -> int:
        try:
            return parse_category_code(self.settings.DEFAULT_CATEGORY_CODE)
        except ValidationError as e:
            raise ConfigError("DEFAULT_CATEGORY_CODE is not a positive number") from e

    def _prepare(
        self,
        category_code: Any,
        policy: PersistencePolicyKind | str | None,
    ) -> tuple[int, PersistencePolicy]:
        """Validate config, then resolve the category and persistence policy."""
        self.settings.require_api_key()
        self.settings.require_database_url()

        category = coerce_category_code(category_code, self._default_category())
        persistence = build_policy(policy or self.settings.PERSISTENCE_POLICY)
        return category, persistence

    async def run(
        self,
        category_code: Any = None,
        policy: PersistencePolicyKind | str | None = None,
        as_of: datetime | None = None,
        max_pages: int | None = None,
        item_name: str | None = None,
    ) -> RunResult:
        """
        Execute one run.

        Raises:
            ConfigError: missing API key / database URL / default category.
            ValidationError: unknown policy or bad max_pages.
            MarketAPIError: any page failed; nothing was persisted.
            PersistenceError: schema creation failed.

        Item write failures do not raise; they come back as ok=False with
        the per-item report.
        """
        category, persistence = self._prepare(category_code, policy)
        as_of = as_of or datetime.now(timezone.utc)

        logger.info(
            "pipeline_run_start",
            category_code=category,
            policy=persistence.kind.value,
            as_of=as_of.isoformat(),
        )

        await SchemaManager(self.engine, persistence.kind).ensure_schema()

        async with self.client_factory(self.settings) as client:
            items = await collect_category(
                client,
                category,
                sort=self.settings.DEFAULT_SORT,
                direction=self.settings.DEFAULT_SORT_DIRECTION,
                max_pages=max_pages or self.settings.MAX_PAGE,
                item_name=item_name,
            )

        if not items:
            logger.info("pipeline_run_no_items", category_code=category)
            return RunResult(category_code=category, policy=persistence.kind, ok=True)

        async with self.session_factory() as session:
            report = await persistence.apply(session, items, category, as_of)

        logger.info(
            "pipeline_run_complete",
            category_code=category,
            policy=persistence.kind.value,
            items_count=len(items),
            written=report.succeeded,
            ok=report.ok,
        )
        return RunResult(
            category_code=category,
            policy=persistence.kind,
            item_count=len(items),
            report=report,
            ok=report.ok,
        )

    async def trigger(
        self,
        category_code: Any = None,
        policy: PersistencePolicyKind | str | None = None,
    ) -> bool:
        """Collaborator-facing entry: True on success, False on any failure."""
        try:
            result = await self.run(category_code=category_code, policy=policy)
        except Exception as e:
            logger.error(
                "pipeline_run_failed",
                category_code=str(category_code) if category_code is not None else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return result.ok

    async def price_check(
        self,
        item_name: str,
        category_code: Any = None,
        policy: PersistencePolicyKind | str | None = None,
        as_of: datetime | None = None,
    ) -> MarketItem | None:
        """
        Look up one item by name and persist its current prices.

        Returns the saved item, or None when the market has no match.

        Raises:
            ConfigError / ValidationError / MarketAPIError: as run().
            PersistenceError: the single-item write failed.
        """
        if not item_name or not item_name.strip():
            raise ValidationError("item name is required for a price check")

        category, persistence = self._prepare(category_code, policy)
        as_of = as_of or datetime.now(timezone.utc)

        await SchemaManager(self.engine, persistence.kind).ensure_schema()

        async with self.client_factory(self.settings) as client:
            item = await client.find_item_price(item_name, category)

        if item is None:
            logger.info("price_check_no_match", item_name=item_name.strip(), category_code=category)
            return None

        async with self.session_factory() as session:
            report = await persistence.apply(session, [item], category, as_of)
        report.raise_for_failure()

        logger.info(
            "price_check_saved",
            item_id=item.id,
            category_code=category,
            policy=persistence.kind.value,
        )
        return item
