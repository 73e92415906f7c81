"""
Lost Ark Market Sync — Polling Scheduler

Keeps two independent poll clocks:
- Price sweep: PERSISTENCE_POLICY shape, every PRICE_POLL_INTERVAL_MINUTES
- Catalog + history refresh: CATALOG_REFRESH_POLICY shape (split by
  default), every CATALOG_REFRESH_INTERVAL_HOURS

Both jobs are due immediately at startup. Jobs run one after another in
the scheduler task; a failed job is logged and retried on its next window.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timezone
from typing import Any

import structlog

from lostark_market.config import Settings
from lostark_market.pipeline.runner import PipelineRunner

logger = structlog.get_logger(__name__)


class Scheduler:
    """Async scheduler for periodic category sweeps."""

    def __init__(self, runner: PipelineRunner, settings: Settings):
        self.runner = runner
        self.settings = settings
        self._shutdown_event = asyncio.Event()

        self._price_last_poll: datetime | None = None
        self._price_cadence_minutes = settings.PRICE_POLL_INTERVAL_MINUTES

        self._catalog_last_poll: datetime | None = None
        self._catalog_cadence_minutes = settings.CATALOG_REFRESH_INTERVAL_HOURS * 60

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    @staticmethod
    def _elapsed(last_poll: datetime | None, cadence_minutes: int) -> bool:
        if last_poll is None:
            return True
        elapsed_minutes = (datetime.now(timezone.utc) - last_poll).total_seconds() / 60
        return elapsed_minutes >= cadence_minutes

    def _should_poll_prices(self) -> bool:
        return self._elapsed(self._price_last_poll, self._price_cadence_minutes)

    def _should_refresh_catalog(self) -> bool:
        return self._elapsed(self._catalog_last_poll, self._catalog_cadence_minutes)

    async def _poll_prices(self) -> bool:
        logger.info("scheduler_price_poll_start")
        ok = await self.runner.trigger(policy=self.settings.PERSISTENCE_POLICY)
        self._price_last_poll = datetime.now(timezone.utc)
        logger.info(
            "scheduler_price_poll_complete",
            ok=ok,
            next_poll_in_minutes=self._price_cadence_minutes,
        )
        return ok

    async def _refresh_catalog(self) -> bool:
        logger.info(
            "scheduler_catalog_refresh_start",
            policy=self.settings.CATALOG_REFRESH_POLICY.value,
        )
        ok = await self.runner.trigger(policy=self.settings.CATALOG_REFRESH_POLICY)
        self._catalog_last_poll = datetime.now(timezone.utc)
        logger.info(
            "scheduler_catalog_refresh_complete",
            ok=ok,
            next_refresh_in_hours=self.settings.CATALOG_REFRESH_INTERVAL_HOURS,
        )
        return ok

    async def run(self) -> None:
        """
        Main scheduler loop. Runs until shutdown is signaled.

        Polls run independently; if one fails, the other still runs.
        """
        logger.info(
            "scheduler_started",
            price_cadence_minutes=self._price_cadence_minutes,
            catalog_cadence_hours=self.settings.CATALOG_REFRESH_INTERVAL_HOURS,
        )

        tick = self.settings.SCHEDULER_TICK_SECONDS

        try:
            while not self._shutdown_event.is_set():
                try:
                    if self._should_poll_prices():
                        await self._poll_prices()

                    if self._should_refresh_catalog():
                        await self._refresh_catalog()

                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=tick)
                except asyncio.TimeoutError:
                    continue
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(tick)

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(runner: PipelineRunner, settings: Settings) -> None:
    """
    Run the scheduler with SIGTERM/SIGINT triggering graceful shutdown.
    """
    scheduler = Scheduler(runner, settings)

    def handle_signal(_signum: int, _frame: Any) -> None:
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise
