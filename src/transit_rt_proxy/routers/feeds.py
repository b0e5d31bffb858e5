"""Corrected GTFS-RT feed endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from transit_rt_proxy.services.gtfs_rt.worker import get_worker

router = APIRouter(prefix="/feeds", tags=["feeds"])

PROTOBUF_MEDIA_TYPE = "application/x-protobuf"


class FeedSummaryResponse(BaseModel):
    """Summary of the latest reconciliation of one feed."""

    feed_id: str
    updated_at: str
    size_bytes: int
    timestamp: int
    latency_sec: Optional[int] = None
    dropped: bool = False
    records_in: int = 0
    expired: int = 0
    records_out: int = 0
    canceled: int = 0
    statuses: Dict[str, int] = {}


def _published(feed_id: str) -> Any:
    worker = get_worker()
    published = worker.latest(feed_id) if worker is not None else None
    if published is None:
        raise HTTPException(status_code=404, detail=f"No corrected feed for {feed_id}")
    return published


@router.get("/{feed_id}", summary="Latest corrected feed as protobuf")
async def get_feed(feed_id: str) -> Response:
    published = _published(feed_id)
    return Response(content=published.data, media_type=PROTOBUF_MEDIA_TYPE)


@router.get(
    "/{feed_id}/summary",
    response_model=FeedSummaryResponse,
    summary="Match summary of the latest corrected feed",
)
async def get_feed_summary(feed_id: str) -> dict[str, Any]:
    published = _published(feed_id)
    return {
        **published.summary,
        "feed_id": feed_id,
        "updated_at": published.updated_at.isoformat(),
        "size_bytes": len(published.data),
    }
