"""
Lost Ark Market Sync — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Settings pointing at a mocked market API and a temp SQLite file
- Async SQLite engine + session factory (aiosqlite)
- Upstream JSON builders for items and search pages
"""

from __future__ import annotations

from typing import Any, AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from lostark_market.config import Settings


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)

MARKET_BASE_URL = "https://market.test"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the developer's .env and environment."""
    return Settings(
        _env_file=None,
        API_KEY="test-key",
        API_BASE_URL=MARKET_BASE_URL,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'market.db'}",
        DEFAULT_CATEGORY_CODE=50000,
        MAX_PAGE=50,
    )


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so every session gets its own connection."""
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ---------------------------------------------------------------------------
# Upstream payload builders
# ---------------------------------------------------------------------------


@pytest.fixture
def item_json() -> Callable[..., dict[str, Any]]:
    """Build one upstream MarketItem dict."""

    def _build(item_id: int, name: str | None = None, **overrides: Any) -> dict[str, Any]:
        data = {
            "Id": item_id,
            "Name": name or f"Item {item_id}",
            "Grade": "일반",
            "Icon": f"https://cdn.test/icons/{item_id}.png",
            "BundleCount": 10,
            "TradeRemainCount": None,
            "YDayAvgPrice": 12.3,
            "RecentPrice": 12,
            "CurrentMinPrice": 11.5,
        }
        data.update(overrides)
        return data

    return _build


@pytest.fixture
def page_json() -> Callable[..., dict[str, Any]]:
    """Build one upstream search response dict."""

    def _build(
        items: list[dict[str, Any]],
        page_no: int = 1,
        total_count: int | None = None,
        page_size: int = 10,
    ) -> dict[str, Any]:
        return {
            "PageNo": page_no,
            "PageSize": page_size,
            "TotalCount": len(items) if total_count is None else total_count,
            "Items": items,
        }

    return _build
