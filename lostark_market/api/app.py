"""Main FastAPI application."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from lostark_market import __version__
from lostark_market.api.routers import health, items, pipeline
from lostark_market.config import Settings
from lostark_market.database import create_db_engine
from lostark_market.pipeline.runner import PipelineRunner
from lostark_market.pipeline.schema import SchemaManager
from lostark_market.search import NameSearch

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings,
    engine: AsyncEngine | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """
    Build the app. When no engine is injected, the lifespan creates one
    from settings, ensures the search table exists, and disposes it on exit.
    """

    def _wire(app: FastAPI, db_engine: AsyncEngine, factory: async_sessionmaker[AsyncSession]) -> None:
        app.state.settings = settings
        app.state.search = NameSearch(
            factory,
            kind=settings.PERSISTENCE_POLICY,
            default_limit=settings.SEARCH_DEFAULT_LIMIT,
            max_limit=settings.SEARCH_MAX_LIMIT,
        )
        app.state.runner = PipelineRunner(settings, db_engine, factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if engine is not None and session_factory is not None:
            _wire(app, engine, session_factory)
            yield
            return

        db_engine, factory = create_db_engine(settings)
        try:
            await SchemaManager(db_engine, settings.PERSISTENCE_POLICY).ensure_schema()
            _wire(app, db_engine, factory)
            logger.info("api_startup_complete", policy=settings.PERSISTENCE_POLICY.value)
            yield
        finally:
            await db_engine.dispose()
            logger.info("api_shutdown_complete")

    app = FastAPI(
        title="Lost Ark Market Sync",
        version=__version__,
        description="Market listing search and sweep trigger",
        lifespan=lifespan,
    )

    # Routers also work without the lifespan running (e.g. tests using an injected engine)
    if engine is not None and session_factory is not None:
        _wire(app, engine, session_factory)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(items.router, prefix="/api/items", tags=["Items"])
    app.include_router(pipeline.router, prefix="/api/pipeline", tags=["Pipeline"])
    return app
