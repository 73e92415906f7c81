"""
Lost Ark Market Sync — Category Paginator

Drives the market client across pages until exhaustion. Pages are
fetched strictly one after another: each stop decision depends on the
previous page, and the upstream API is rate-sensitive.
"""

from __future__ import annotations

import structlog

from lostark_market.config import MarketSortKey, SortDirection
from lostark_market.errors import ValidationError
from lostark_market.pipeline.market_client import MarketClient, MarketItem, RequestPayload

logger = structlog.get_logger(__name__)

DEFAULT_MAX_PAGES = 50


async def collect_category(
    client: MarketClient,
    category_code: int,
    sort: MarketSortKey = MarketSortKey.RECENT_PRICE,
    direction: SortDirection = SortDirection.ASC,
    max_pages: int = DEFAULT_MAX_PAGES,
    item_name: str | None = None,
) -> list[MarketItem]:
    """
    Sweep one category from page 1 and return every item in page order.

    Stops when a page comes back empty, when the accumulated count reaches
    the reported TotalCount, or after max_pages requests. A missing or zero
    TotalCount never ends the sweep by itself.

    No deduplication happens here; persistence is keyed by item id.
    Any client error aborts the sweep and propagates unchanged, so callers
    never see a partial item list.
    """
    if max_pages < 1:
        raise ValidationError(f"max_pages must be at least 1, got {max_pages}")

    logger.info(
        "paginator_sweep_start",
        category_code=category_code,
        sort=sort.value,
        direction=direction.value,
        max_pages=max_pages,
    )

    items: list[MarketItem] = []
    total_count = 0
    page_no = 1

    while page_no <= max_pages:
        page = await client.fetch_page(
            RequestPayload(
                category_code=category_code,
                page_no=page_no,
                sort=sort,
                sort_condition=direction,
                item_name=item_name,
            )
        )

        if not page.items:
            break

        items.extend(page.items)
        total_count = page.total_count

        if total_count and len(items) >= total_count:
            break

        page_no += 1
    else:
        logger.warning(
            "paginator_max_pages_reached",
            category_code=category_code,
            max_pages=max_pages,
            collected=len(items),
            total_count=total_count,
        )

    logger.info(
        "paginator_sweep_complete",
        category_code=category_code,
        pages=min(page_no, max_pages),
        items_count=len(items),
        total_count=total_count,
    )
    return items
