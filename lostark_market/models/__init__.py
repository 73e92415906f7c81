"""
Models package — export all SQLAlchemy models.
"""

from lostark_market.models.base import Base
from lostark_market.models.catalog_item import CatalogItem
from lostark_market.models.market_item import MarketItemRow
from lostark_market.models.price_snapshot import PriceSnapshot

__all__ = ["Base", "CatalogItem", "MarketItemRow", "PriceSnapshot"]
