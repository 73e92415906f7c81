"""
Tests for name search (lostark_market/search.py).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import insert

from lostark_market.config import PersistencePolicyKind
from lostark_market.errors import PersistenceError
from lostark_market.models import CatalogItem, MarketItemRow, PriceSnapshot
from lostark_market.pipeline.schema import SchemaManager
from lostark_market.search import NameHit, NameSearch, coerce_limit

NOW = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
async def catalog(db_engine, session_factory) -> NameSearch:
    """Split-shape catalog seeded with a few items."""
    await SchemaManager(db_engine, PersistencePolicyKind.SPLIT).ensure_schema()
    async with db_engine.begin() as conn:
        await conn.execute(
            insert(CatalogItem.__table__),
            [
                {"id": 1, "name": "Health Potion", "category_code": 60000, "updated_at": NOW},
                {"id": 2, "name": "Mana Potion", "category_code": 60000, "updated_at": NOW},
                {"id": 3, "name": "Sword", "category_code": 50000, "updated_at": NOW},
                {"id": 4, "name": "100% Pure Stone", "category_code": 50000, "updated_at": NOW},
                {"id": 5, "name": "Awakening_Potion", "category_code": 60000, "updated_at": NOW},
            ],
        )
    return NameSearch(session_factory)


# ---------------------------------------------------------------------------
# coerce_limit
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 10),
        (0, 10),
        (-3, 10),
        ("abc", 10),
        ("", 10),
        ("nan", 10),
        ("inf", 10),
        (True, 10),
        (5, 5),
        ("7", 7),
        ("2.9", 2),
        ("1e30", 100),
        ("99999999999999999999", 100),
        (250, 100),
    ],
)
def test_coerce_limit(value, expected) -> None:
    assert coerce_limit(value) == expected


def test_coerce_limit_custom_default() -> None:
    assert coerce_limit(None, default=25) == 25


def test_coerce_limit_custom_maximum() -> None:
    assert coerce_limit(500, maximum=50) == 50
    assert coerce_limit(20, maximum=50) == 20


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", None])
async def test_blank_text_never_touches_store(text) -> None:
    session_factory = MagicMock()
    search = NameSearch(session_factory)

    assert await search.search(text, 5) == []
    session_factory.assert_not_called()


@pytest.mark.asyncio
async def test_substring_match_ordered_and_limited(catalog: NameSearch) -> None:
    hits = await catalog.search("pot", 2)

    assert hits == [NameHit(id=5, name="Awakening_Potion"), NameHit(id=1, name="Health Potion")]


@pytest.mark.asyncio
async def test_potion_example_without_extra_rows(db_engine, session_factory) -> None:
    await SchemaManager(db_engine, PersistencePolicyKind.SPLIT).ensure_schema()
    async with db_engine.begin() as conn:
        await conn.execute(
            insert(CatalogItem.__table__),
            [
                {"id": 1, "name": "Health Potion", "category_code": 60000, "updated_at": NOW},
                {"id": 2, "name": "Mana Potion", "category_code": 60000, "updated_at": NOW},
                {"id": 3, "name": "Sword", "category_code": 50000, "updated_at": NOW},
            ],
        )

    hits = await NameSearch(session_factory).search("pot", 2)

    assert [h.model_dump() for h in hits] == [
        {"id": 1, "name": "Health Potion"},
        {"id": 2, "name": "Mana Potion"},
    ]


@pytest.mark.asyncio
async def test_match_is_case_insensitive_and_trimmed(catalog: NameSearch) -> None:
    hits = await catalog.search("  MANA ", 10)

    assert [h.id for h in hits] == [2]


@pytest.mark.asyncio
async def test_wildcards_in_text_match_literally(catalog: NameSearch) -> None:
    assert [h.id for h in await catalog.search("%", 10)] == [4]
    assert [h.id for h in await catalog.search("_", 10)] == [5]


@pytest.mark.asyncio
async def test_bad_limit_uses_default(catalog: NameSearch) -> None:
    hits = await catalog.search("o", "lots")

    assert len(hits) == 5
    assert [h.name for h in hits] == sorted(h.name for h in hits)


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", ["1e30", "99999999999999999999", 10**20])
async def test_oversized_limit_is_clamped(catalog: NameSearch, limit) -> None:
    hits = await catalog.search("pot", limit)

    assert [h.id for h in hits] == [5, 1, 2]


@pytest.mark.asyncio
async def test_max_limit_is_configurable(catalog: NameSearch, session_factory) -> None:
    search = NameSearch(session_factory, max_limit=2)

    assert len(await search.search("o", "1e30")) == 2


@pytest.mark.asyncio
async def test_no_match_returns_empty(catalog: NameSearch) -> None:
    assert await catalog.search("Shield", 10) == []


@pytest.mark.asyncio
async def test_single_table_shape_is_searchable(db_engine, session_factory) -> None:
    await SchemaManager(db_engine, PersistencePolicyKind.SINGLE_TABLE).ensure_schema()
    async with db_engine.begin() as conn:
        await conn.execute(
            insert(MarketItemRow.__table__),
            [{"id": 10, "name": "Destruction Stone", "category_code": 50000, "snapshot_time": NOW}],
        )

    search = NameSearch(session_factory, kind=PersistencePolicyKind.SINGLE_TABLE)

    assert await search.search("stone", 10) == [NameHit(id=10, name="Destruction Stone")]


@pytest.mark.asyncio
async def test_store_failure_raises_persistence_error(session_factory) -> None:
    """No schema created: the query fails and is wrapped."""
    with pytest.raises(PersistenceError):
        await NameSearch(session_factory).search("pot", 5)


# ---------------------------------------------------------------------------
# latest_prices
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_latest_prices_newest_first(catalog: NameSearch, db_engine) -> None:
    async with db_engine.begin() as conn:
        await conn.execute(
            insert(PriceSnapshot.__table__),
            [
                {
                    "item_id": 1,
                    "recent_price": Decimal(price),
                    "current_min_price": Decimal(price),
                    "yday_avg_price": Decimal(price),
                    "category_code": 60000,
                    "recorded_at": NOW + timedelta(minutes=5 * n),
                }
                for n, price in enumerate(["10.00", "11.00", "12.00"])
            ]
            + [
                {
                    "item_id": 2,
                    "recent_price": Decimal("1.00"),
                    "current_min_price": Decimal("1.00"),
                    "yday_avg_price": Decimal("1.00"),
                    "category_code": 60000,
                    "recorded_at": NOW,
                }
            ],
        )

    points = await catalog.latest_prices(1, 2)

    assert [p.recent_price for p in points] == [Decimal("12.00"), Decimal("11.00")]
    assert all(p.item_id == 1 for p in points)
