"""
Lost Ark Market Sync — Database engine and session factory.

One engine per process, shared by the schema manager, the upsert engine
and name search.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from lostark_market.config import Settings

logger = structlog.get_logger(__name__)


def _async_url(url: str) -> str:
    """Accept plain postgres:// URLs (Neon/Netlify style) and pick asyncpg."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def create_db_engine(settings: Settings) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    Raises:
        ConfigError: no database URL configured.
    """
    url = _async_url(settings.require_database_url())
    backend = make_url(url).get_backend_name()

    logger.info("database_engine_initializing", backend=backend)

    engine_kwargs: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if backend != "sqlite":
        engine_kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    engine = create_async_engine(url, **engine_kwargs)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_engine_ready", backend=backend)
    return engine, session_factory
