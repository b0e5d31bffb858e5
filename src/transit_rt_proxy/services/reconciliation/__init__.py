"""Feed reconciliation: windowing, matching, merge, dedup and cancellation."""

from transit_rt_proxy.services.reconciliation.merge import try_merge
from transit_rt_proxy.services.reconciliation.pipeline import (
    FeedResult,
    ReconciliationPipeline,
    RouteResult,
)

__all__ = [
    "FeedResult",
    "ReconciliationPipeline",
    "RouteResult",
    "try_merge",
]
