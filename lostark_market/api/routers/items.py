"""Item name search endpoints."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

router = APIRouter()

_SEARCH_FAILED = {"error": "Failed to search items"}


@router.get("/search")
async def search_items(request: Request, q: str = "", limit: Optional[str] = None):
    """
    Search item names for the search-as-you-type box.

    limit is taken as a raw string so a bad value falls back to the
    default instead of a 422.
    """
    try:
        hits = await request.app.state.search.search(q, limit)
    except Exception as e:
        logger.error("search_items_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content=_SEARCH_FAILED)
    return [hit.model_dump() for hit in hits]


@router.get("/{item_id}/prices")
async def item_prices(request: Request, item_id: int, limit: Optional[str] = None):
    """Latest recorded price points for one item, newest first."""
    try:
        points = await request.app.state.search.latest_prices(item_id, limit)
    except Exception as e:
        logger.error(
            "item_prices_failed",
            item_id=item_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(status_code=500, content={"error": "Failed to load prices"})
    return [point.model_dump(mode="json") for point in points]
