"""
Lost Ark Market Sync — Manual Sweep Script

Runs one category sweep (or a one-item price check) and persists it,
outside the scheduler.

Usage:
    python scripts/run_sweep.py
    python scripts/run_sweep.py --category 50000 --policy split
    python scripts/run_sweep.py --category 50010 --max-pages 5 --item-name "Destruction Stone"
    python scripts/run_sweep.py --category 50010 --price-check "Destruction Stone"
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lostark_market.config import PersistencePolicyKind, load_settings
from lostark_market.database import create_db_engine
from lostark_market.errors import MarketSyncError
from lostark_market.main import _configure_logging
from lostark_market.pipeline.market_client import MarketItem
from lostark_market.pipeline.runner import PipelineRunner, RunResult


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sweep one market category and persist the listings.",
    )
    parser.add_argument(
        "--category",
        type=str,
        default=None,
        help="Category code (default: DEFAULT_CATEGORY_CODE).",
    )
    parser.add_argument(
        "--policy",
        type=str,
        default=None,
        choices=[k.value for k in PersistencePolicyKind],
        help="Persistence shape (default: PERSISTENCE_POLICY).",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Page safety bound for this sweep (default: MAX_PAGE).",
    )
    parser.add_argument(
        "--item-name",
        type=str,
        default=None,
        help="Only sweep items whose name matches this filter.",
    )
    parser.add_argument(
        "--price-check",
        type=str,
        default=None,
        metavar="NAME",
        help="Look up one item by name and save its current prices instead of sweeping.",
    )
    return parser.parse_args(argv)


async def sweep(args: argparse.Namespace) -> RunResult | MarketItem | None:
    settings = load_settings()
    _configure_logging(settings.LOG_LEVEL)

    engine, session_factory = create_db_engine(settings)
    try:
        runner = PipelineRunner(settings, engine, session_factory)
        if args.price_check is not None:
            return await runner.price_check(
                args.price_check,
                category_code=args.category,
                policy=args.policy,
            )
        return await runner.run(
            category_code=args.category,
            policy=args.policy,
            max_pages=args.max_pages,
            item_name=args.item_name,
        )
    finally:
        await engine.dispose()


def report_price_check(name: str, item: MarketItem | None) -> None:
    if item is None:
        print(f"No market listing found for {name!r}", file=sys.stderr)
        sys.exit(1)
    print(f"id            = {item.id}")
    print(f"name          = {item.name}")
    print(f"recent_price  = {item.recent_price}")
    print(f"current_min   = {item.current_min_price}")
    print(f"yday_avg      = {item.yday_avg_price}")


def main() -> None:
    args = parse_args()

    try:
        result = asyncio.run(sweep(args))
    except MarketSyncError as e:
        print(f"Sweep failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.price_check is not None:
        report_price_check(args.price_check, result)
        return

    print(f"category_code = {result.category_code}")
    print(f"policy        = {result.policy.value}")
    print(f"items         = {result.item_count}")
    if result.report is not None:
        print(f"written       = {result.report.succeeded}")
        print(f"skipped       = {len(result.report.skipped)}")
    if not result.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
