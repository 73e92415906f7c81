"""HTTP surface: name search, manual pipeline trigger, health."""

from lostark_market.api.app import create_app

__all__ = ["create_app"]
