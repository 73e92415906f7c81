"""
Lost Ark Market Sync — Market API Client

Issues one page-search request at a time against POST /markets/items.
No retries at this layer: a failed page surfaces to the caller unchanged
and retry policy, if any, belongs to whoever drives the sweep.
"""

from __future__ import annotations

import asyncio
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lostark_market.config import MarketSortKey, Settings, SortDirection
from lostark_market.errors import AuthError, TransportError, UpstreamError

logger = structlog.get_logger(__name__)

SEARCH_PATH = "/markets/items"

_TWO_DP = Decimal("0.01")


# ---------------------------------------------------------------------------
# Pydantic Request / Response Models
# ---------------------------------------------------------------------------


class MarketItem(BaseModel):
    """One marketplace listing at fetch time."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., alias="Id")
    name: str = Field(..., alias="Name")
    grade: str = Field(default="", alias="Grade")
    icon: str = Field(default="", alias="Icon")
    bundle_count: int = Field(default=1, alias="BundleCount")
    trade_remain_count: Optional[int] = Field(default=None, alias="TradeRemainCount")
    yday_avg_price: Optional[Decimal] = Field(default=None, alias="YDayAvgPrice")
    recent_price: Optional[Decimal] = Field(default=None, alias="RecentPrice")
    current_min_price: Optional[Decimal] = Field(default=None, alias="CurrentMinPrice")

    @field_validator("yday_avg_price", "recent_price", "current_min_price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> Decimal | None:
        """Convert upstream numbers to 2dp Decimal. Never use float for money."""
        if v is None or v == "":
            return None
        try:
            price = Decimal(str(v)).quantize(_TWO_DP, rounding=ROUND_HALF_UP)
        except (InvalidOperation, ValueError):
            raise ValueError(f"invalid price value: {v!r}")
        if price < 0:
            raise ValueError("price must be non-negative")
        return price


class RequestPayload(BaseModel):
    """One page query against the market search endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    category_code: int = Field(..., alias="CategoryCode")
    page_no: int = Field(default=1, ge=1, alias="PageNo")
    sort: MarketSortKey = Field(default=MarketSortKey.RECENT_PRICE, alias="Sort")
    sort_condition: SortDirection = Field(default=SortDirection.ASC, alias="SortCondition")
    item_name: Optional[str] = Field(default=None, alias="ItemName")

    @field_validator("item_name", mode="before")
    @classmethod
    def strip_item_name(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def to_body(self) -> dict[str, Any]:
        """JSON body with upstream field names; ItemName only when set."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class SearchPage(BaseModel):
    """One API response page."""

    model_config = ConfigDict(populate_by_name=True)

    page_no: int = Field(default=0, alias="PageNo")
    page_size: int = Field(default=0, alias="PageSize")
    total_count: int = Field(default=0, alias="TotalCount")
    items: list[MarketItem] = Field(default_factory=list, alias="Items")

    @field_validator("page_no", "page_size", "total_count", mode="before")
    @classmethod
    def null_as_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("items", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_authorization(api_key: str) -> str:
    """Send the key as a bearer token unless it already carries the scheme."""
    key = api_key.strip()
    if key[:7].lower() == "bearer ":
        return key
    return f"Bearer {key}"


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class MarketClient:
    """
    Async client for the Lost Ark market search API.

    Usage:
        async with MarketClient(settings) as client:
            page = await client.fetch_page(RequestPayload(category_code=50000))
    """

    def __init__(
        self,
        settings: Settings,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.API_KEY
        self._base_url = base_url or settings.API_BASE_URL
        self._timeout = settings.HTTP_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> MarketClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "accept": "application/json",
                "content-type": "application/json",
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def fetch_page(self, payload: RequestPayload) -> SearchPage:
        """
        Fetch one page of search results.

        Raises:
            AuthError: no key configured, or upstream answered 401/403.
            UpstreamError: any other non-2xx status, or an unreadable body.
            TransportError: connection/timeout failure.
        """
        if not self._api_key or not self._api_key.strip():
            raise AuthError()

        assert self._client is not None, "Client not initialized. Use 'async with'."

        logger.debug(
            "market_fetch_page",
            category_code=payload.category_code,
            page_no=payload.page_no,
            sort=payload.sort.value,
        )

        try:
            response = await self._client.post(
                SEARCH_PATH,
                json=payload.to_body(),
                headers={"authorization": normalize_authorization(self._api_key)},
            )
        except httpx.RequestError as e:
            logger.error(
                "market_request_error",
                error=str(e),
                error_type=type(e).__name__,
                page_no=payload.page_no,
            )
            raise TransportError(str(e) or type(e).__name__) from e
        except asyncio.CancelledError:
            logger.warning(
                "market_fetch_cancelled",
                category_code=payload.category_code,
                page_no=payload.page_no,
            )
            raise

        if not response.is_success:
            body = response.text or response.reason_phrase
            logger.error(
                "market_http_error",
                status_code=response.status_code,
                page_no=payload.page_no,
            )
            if response.status_code in (401, 403):
                raise AuthError(response.status_code, body)
            raise UpstreamError(response.status_code, body)

        try:
            page = SearchPage.model_validate(response.json())
        except ValueError as e:
            logger.error(
                "market_response_invalid",
                error=str(e),
                page_no=payload.page_no,
            )
            raise UpstreamError(response.status_code, "malformed response body") from e

        logger.debug(
            "market_fetch_page_complete",
            page_no=payload.page_no,
            items_count=len(page.items),
            total_count=page.total_count,
        )
        return page

    async def find_item_price(
        self,
        item_name: str,
        category_code: int,
    ) -> MarketItem | None:
        """
        Look up one item's current prices by name (page 1 only).

        Returns the exact name match if present, else the first result,
        else None.
        """
        page = await self.fetch_page(
            RequestPayload(
                category_code=category_code,
                page_no=1,
                sort=MarketSortKey.RECENT_PRICE,
                sort_condition=SortDirection.ASC,
                item_name=item_name,
            )
        )
        if not page.items:
            logger.info("market_item_not_found", item_name=item_name)
            return None

        wanted = item_name.strip()
        for item in page.items:
            if item.name == wanted:
                return item
        return page.items[0]
