"""
Tests for the market API client (lostark_market/pipeline/market_client.py).

Covers:
- Authorization header normalization
- Request body shape (upstream field names, optional ItemName)
- Response parsing: 2dp Decimal prices, null TradeRemainCount, null Items
- Error mapping: 401/403 → AuthError, 429/5xx → UpstreamError,
  network failure → TransportError, missing key → AuthError (no request),
  cancellation → CancelledError (not wrapped)
- find_item_price lookup
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from lostark_market.config import MarketSortKey, SortDirection
from lostark_market.errors import AuthError, TransportError, UpstreamError
from lostark_market.pipeline.market_client import (
    MarketClient,
    MarketItem,
    RequestPayload,
    SearchPage,
    normalize_authorization,
)


# ---------------------------------------------------------------------------
# Authorization header
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "key, expected",
    [
        ("abc123", "Bearer abc123"),
        ("Bearer abc123", "Bearer abc123"),
        ("bearer abc123", "bearer abc123"),
        ("  abc123  ", "Bearer abc123"),
    ],
)
def test_normalize_authorization(key: str, expected: str) -> None:
    assert normalize_authorization(key) == expected


# ---------------------------------------------------------------------------
# Request payload
# ---------------------------------------------------------------------------


def test_request_payload_body_omits_blank_item_name() -> None:
    body = RequestPayload(category_code=50000, page_no=2, item_name="   ").to_body()

    assert body == {
        "CategoryCode": 50000,
        "PageNo": 2,
        "Sort": "RECENT_PRICE",
        "SortCondition": "ASC",
    }


def test_request_payload_body_trims_item_name() -> None:
    body = RequestPayload(
        category_code=50010,
        sort=MarketSortKey.GRADE,
        sort_condition=SortDirection.DESC,
        item_name="  Destruction Stone ",
    ).to_body()

    assert body["ItemName"] == "Destruction Stone"
    assert body["Sort"] == "GRADE"
    assert body["SortCondition"] == "DESC"


def test_request_payload_rejects_page_zero() -> None:
    with pytest.raises(ValueError):
        RequestPayload(category_code=50000, page_no=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


def test_market_item_parses_prices_as_two_dp_decimal(item_json) -> None:
    item = MarketItem.model_validate(
        item_json(1, YDayAvgPrice=10.456, RecentPrice=7, CurrentMinPrice="3.1")
    )

    assert item.yday_avg_price == Decimal("10.46")
    assert item.recent_price == Decimal("7.00")
    assert item.current_min_price == Decimal("3.10")
    assert item.trade_remain_count is None


def test_market_item_rejects_negative_price(item_json) -> None:
    with pytest.raises(ValueError):
        MarketItem.model_validate(item_json(1, RecentPrice=-1))


def test_search_page_null_items_is_empty() -> None:
    page = SearchPage.model_validate(
        {"PageNo": 3, "PageSize": 10, "TotalCount": None, "Items": None}
    )

    assert page.items == []
    assert page.total_count == 0


# ---------------------------------------------------------------------------
# fetch_page — success path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_page_success(settings, item_json, page_json) -> None:
    """fetch_page posts the payload and parses the page."""
    response = page_json(
        [item_json(101, "Health Potion", TradeRemainCount=2), item_json(102)],
        total_count=2,
    )

    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        route = mock.post("/markets/items").mock(
            return_value=httpx.Response(200, json=response)
        )

        async with MarketClient(settings) as client:
            page = await client.fetch_page(RequestPayload(category_code=50000))

    assert route.call_count == 1
    request = route.calls.last.request
    assert request.headers["authorization"] == "Bearer test-key"
    assert request.headers["accept"] == "application/json"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {
        "CategoryCode": 50000,
        "PageNo": 1,
        "Sort": "RECENT_PRICE",
        "SortCondition": "ASC",
    }

    assert page.total_count == 2
    assert [i.id for i in page.items] == [101, 102]
    assert page.items[0].name == "Health Potion"
    assert page.items[0].trade_remain_count == 2
    assert page.items[1].trade_remain_count is None


@pytest.mark.asyncio
async def test_fetch_page_passes_prefixed_key_unchanged(settings, page_json) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        route = mock.post("/markets/items").mock(
            return_value=httpx.Response(200, json=page_json([]))
        )

        async with MarketClient(settings, api_key="Bearer already-prefixed") as client:
            await client.fetch_page(RequestPayload(category_code=50000))

    assert route.calls.last.request.headers["authorization"] == "Bearer already-prefixed"


# ---------------------------------------------------------------------------
# fetch_page — failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_page_without_key_raises_auth_error(settings) -> None:
    """No credential configured: fail before any request is sent."""
    with respx.mock(base_url=settings.API_BASE_URL, assert_all_called=False) as mock:
        route = mock.post("/markets/items")

        async with MarketClient(settings, api_key="") as client:
            with pytest.raises(AuthError):
                await client.fetch_page(RequestPayload(category_code=50000))

    assert route.call_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_fetch_page_rejected_key_raises_auth_error(settings, status: int) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        mock.post("/markets/items").mock(
            return_value=httpx.Response(status, text="Unauthorized")
        )

        async with MarketClient(settings) as client:
            with pytest.raises(AuthError) as exc_info:
                await client.fetch_page(RequestPayload(category_code=50000))

    assert exc_info.value.status == status
    assert exc_info.value.body == "Unauthorized"


@pytest.mark.asyncio
async def test_fetch_page_rate_limited_raises_upstream_error(settings) -> None:
    """429 is surfaced with status and body; no retry at this layer."""
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        route = mock.post("/markets/items").mock(
            return_value=httpx.Response(429, text="Too Many Requests")
        )

        async with MarketClient(settings) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.fetch_page(RequestPayload(category_code=50000))

    assert route.call_count == 1
    assert exc_info.value.status == 429
    assert exc_info.value.body == "Too Many Requests"
    assert not isinstance(exc_info.value, AuthError)


@pytest.mark.asyncio
async def test_fetch_page_server_error_raises_upstream_error(settings) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        mock.post("/markets/items").mock(return_value=httpx.Response(503, text="maintenance"))

        async with MarketClient(settings) as client:
            with pytest.raises(UpstreamError, match=r"\(503\) maintenance"):
                await client.fetch_page(RequestPayload(category_code=50000))


@pytest.mark.asyncio
async def test_fetch_page_network_failure_raises_transport_error(settings) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        mock.post("/markets/items").mock(side_effect=httpx.ConnectError("connection refused"))

        async with MarketClient(settings) as client:
            with pytest.raises(TransportError, match="connection refused"):
                await client.fetch_page(RequestPayload(category_code=50000))


@pytest.mark.asyncio
async def test_fetch_page_cancellation_is_not_wrapped(settings) -> None:
    """Cancelling an in-flight request surfaces CancelledError, not TransportError."""
    started = asyncio.Event()

    async def _hang(*args, **kwargs):
        started.set()
        await asyncio.sleep(10)

    async with MarketClient(settings) as client:
        client._client.post = AsyncMock(side_effect=_hang)
        task = asyncio.create_task(client.fetch_page(RequestPayload(category_code=50000)))
        await asyncio.wait_for(started.wait(), timeout=5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_fetch_page_malformed_body_raises_upstream_error(settings) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        mock.post("/markets/items").mock(return_value=httpx.Response(200, text="<html>"))

        async with MarketClient(settings) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.fetch_page(RequestPayload(category_code=50000))

    assert exc_info.value.status == 200
    assert exc_info.value.body == "malformed response body"


# ---------------------------------------------------------------------------
# find_item_price
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_find_item_price_prefers_exact_match(settings, item_json, page_json) -> None:
    response = page_json(
        [
            item_json(1, "Crystallized Destruction Stone", RecentPrice=40),
            item_json(2, "Destruction Stone", RecentPrice=5),
        ]
    )

    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        route = mock.post("/markets/items").mock(
            return_value=httpx.Response(200, json=response)
        )

        async with MarketClient(settings) as client:
            item = await client.find_item_price("Destruction Stone", 50000)

    assert item is not None
    assert item.id == 2
    assert item.recent_price == Decimal("5.00")
    assert json.loads(route.calls.last.request.content)["ItemName"] == "Destruction Stone"


@pytest.mark.asyncio
async def test_find_item_price_no_results(settings, page_json) -> None:
    with respx.mock(base_url=settings.API_BASE_URL) as mock:
        mock.post("/markets/items").mock(return_value=httpx.Response(200, json=page_json([])))

        async with MarketClient(settings) as client:
            assert await client.find_item_price("Nothing", 50000) is None
