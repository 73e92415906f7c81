"""
Lost Ark Market Sync — Error taxonomy

Market client and paginator raise these unchanged up to the run driver;
the run driver and the HTTP routers are the only places that log and
translate them into success/failure signals.
"""

from __future__ import annotations


class MarketSyncError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(MarketSyncError):
    """Missing credential or store location. Fatal: no run is attempted."""


class ValidationError(MarketSyncError):
    """Malformed category code or limit supplied by a caller."""


class MarketAPIError(MarketSyncError):
    """Base class for failures talking to the market API."""


class UpstreamError(MarketAPIError):
    """The market API answered with a non-success status."""

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Market API request failed ({status}) {body}")


class AuthError(UpstreamError):
    """
    Credential missing or rejected.

    status is 0 when the credential was never sent (nothing configured).
    """

    def __init__(self, status: int = 0, body: str = "API key is not configured") -> None:
        super().__init__(status, body)


class TransportError(MarketAPIError):
    """Network failure (connect, read, timeout) while a page request was in flight."""


class PersistenceError(MarketSyncError):
    """Store write, schema or read failure."""

    def __init__(self, message: str, item_id: int | None = None) -> None:
        self.item_id = item_id
        super().__init__(message)
