"""Admin routes controlling the proxy polling worker."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from transit_rt_proxy.services.gtfs_rt.worker import ProxyWorker, get_worker

router = APIRouter(prefix="/admin/poll", tags=["admin"])


class WorkerStatusResponse(BaseModel):
    """Response for worker status."""

    running: bool
    poll_count: int
    last_poll_at: Optional[str] = None
    poll_interval_sec: int
    feeds: List[str] = []


class RunOnceResponse(BaseModel):
    """Response for run-once endpoint."""

    poll_id: str
    poll_count: int
    started_at: str
    ended_at: str = ""
    feeds: Dict[str, Any]


def _require_worker() -> ProxyWorker:
    worker = get_worker()
    if worker is None:
        raise HTTPException(status_code=503, detail="Proxy worker is not configured")
    return worker


@router.post("/run-once", response_model=RunOnceResponse, summary="Run a single poll cycle")
async def run_once() -> dict[str, Any]:
    """Fetch and reconcile every configured feed immediately."""
    return await _require_worker().run_once()


@router.post("/start", response_model=WorkerStatusResponse, summary="Start the polling worker")
async def start_worker() -> dict[str, Any]:
    worker = _require_worker()
    await worker.start()
    return await worker.get_status()


@router.post("/stop", response_model=WorkerStatusResponse, summary="Stop the polling worker")
async def stop_worker() -> dict[str, Any]:
    worker = _require_worker()
    await worker.stop()
    return await worker.get_status()


@router.get("/status", response_model=WorkerStatusResponse, summary="Get polling worker status")
async def worker_status() -> dict[str, Any]:
    return await _require_worker().get_status()
