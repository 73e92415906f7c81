"""
Lost Ark Market Sync — Application Entrypoint

Configures structlog, builds the settings and database engine once, and
starts either the sweep scheduler or the HTTP API.

Run via:
    python -m lostark_market.main            # scheduler
    python -m lostark_market.main serve      # FastAPI (uvicorn)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog
import uvicorn
from sqlalchemy import text

from lostark_market import __version__
from lostark_market.api import create_app
from lostark_market.config import Settings, load_settings
from lostark_market.database import create_db_engine
from lostark_market.errors import ConfigError
from lostark_market.pipeline.runner import PipelineRunner
from lostark_market.pipeline.scheduler import run_scheduler


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # stdlib logging for third-party libraries (httpx, sqlalchemy, uvicorn)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Scheduler mode
# ---------------------------------------------------------------------------


async def run_worker(settings: Settings) -> None:
    """
    Execution order:
    1. Validate critical config (fatal if missing)
    2. Create async database engine and session factory
    3. Verify database connection (health check)
    4. Run the scheduler until a shutdown signal arrives
    """
    logger = structlog.get_logger(__name__)
    logger.info("market_sync_startup_begin", version=__version__)

    settings.require_api_key()
    engine, session_factory = create_db_engine(settings)

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        logger.info("database_health_check_passed")
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        await engine.dispose()
        raise

    logger.info(
        "market_sync_startup_complete",
        default_category=settings.DEFAULT_CATEGORY_CODE,
        policy=settings.PERSISTENCE_POLICY.value,
        max_page=settings.MAX_PAGE,
    )

    runner = PipelineRunner(settings, engine, session_factory)
    try:
        await run_scheduler(runner, settings)
    finally:
        await engine.dispose()
        logger.info("market_sync_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lost Ark market sync service.")
    parser.add_argument(
        "mode",
        nargs="?",
        default="worker",
        choices=["worker", "serve"],
        help="worker: run scheduled sweeps (default). serve: run the HTTP API.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    _configure_logging(settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    try:
        if args.mode == "serve":
            uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)
        else:
            asyncio.run(run_worker(settings))
    except ConfigError as e:
        logger.error("market_sync_config_error", error=str(e))
        return 2
    except KeyboardInterrupt:
        logger.info("market_sync_interrupted_by_user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
