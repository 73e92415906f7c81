"""
Pipeline package — fetch, paginate, persist.
"""

from lostark_market.pipeline.market_client import (
    MarketClient,
    MarketItem,
    RequestPayload,
    SearchPage,
)
from lostark_market.pipeline.paginator import collect_category
from lostark_market.pipeline.runner import PipelineRunner, RunResult
from lostark_market.pipeline.schema import SchemaManager
from lostark_market.pipeline.upsert import (
    ApplyReport,
    PersistencePolicy,
    SingleTablePolicy,
    SplitPolicy,
    build_policy,
)

__all__ = [
    "ApplyReport",
    "MarketClient",
    "MarketItem",
    "PersistencePolicy",
    "PipelineRunner",
    "RequestPayload",
    "RunResult",
    "SchemaManager",
    "SearchPage",
    "SingleTablePolicy",
    "SplitPolicy",
    "build_policy",
    "collect_category",
]
