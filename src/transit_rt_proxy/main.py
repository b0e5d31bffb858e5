"""FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from transit_rt_proxy.config import ReconciliationConfig, Settings, get_settings
from transit_rt_proxy.logging import (
    bind_feed_context,
    clear_feed_context,
    get_logger,
    setup_logging,
)
from transit_rt_proxy.routers.admin import router as admin_router
from transit_rt_proxy.routers.feeds import router as feeds_router
from transit_rt_proxy.services.directions import DirectionsService
from transit_rt_proxy.services.gtfs_rt.worker import ProxyWorker, get_worker, set_worker
from transit_rt_proxy.services.gtfs_static.loader import load_schedule_from_source
from transit_rt_proxy.services.matching.matcher import ActivatedTripMatcher
from transit_rt_proxy.services.metrics import LoggingMetricsSink, MetricsReporter
from transit_rt_proxy.services.reconciliation.pipeline import ReconciliationPipeline

logger = get_logger(__name__)


async def build_worker(settings: Settings) -> ProxyWorker:
    """Load the static schedule and wire the reconciliation pipeline and worker."""
    schedule = await load_schedule_from_source(
        settings.gtfs_static_path,
        timezone=settings.agency_timezone,
        strict=settings.gtfs_static_strict,
    )
    config = ReconciliationConfig.from_settings(settings)

    directions = None
    if settings.directions_csv_path:
        directions = DirectionsService.from_csv(schedule, settings.directions_csv_path)

    reporter = MetricsReporter(
        LoggingMetricsSink(verbose=settings.debug),
        namespace=settings.metrics_namespace,
    )
    pipeline = ReconciliationPipeline(
        schedule,
        ActivatedTripMatcher(schedule, coercion_tolerance_sec=config.coercion_tolerance_sec),
        config,
        directions=directions,
        reporter=reporter,
    )
    return ProxyWorker.from_settings(settings, pipeline, reporter)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()
    settings = get_settings()
    logger.info("Starting Transit RT Proxy", feeds=sorted(settings.feed_urls))

    try:
        set_worker(await build_worker(settings))
    except Exception as exc:
        logger.error("Could not initialize proxy worker", exc_info=exc)

    worker = get_worker()
    if worker is not None and settings.poll_auto_start:
        await worker.start()

    yield

    worker = get_worker()
    if worker is not None and worker.is_running:
        await worker.stop()
    set_worker(None)
    logger.info("Shutting down Transit RT Proxy")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="GTFS-Realtime proxy reconciling subway trip reports with the static schedule",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_feed_context(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        clear_feed_context("request_id", "path")
        return response

    app.include_router(admin_router)
    app.include_router(feeds_router)

    @app.get("/health", tags=["meta"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint returning application status."""
        settings = get_settings()
        missing_env = settings.missing_required_env()

        worker = get_worker()
        worker_status = await worker.get_status() if worker is not None else None
        running = bool(worker_status and worker_status["running"])

        issues: list[str] = []
        if missing_env:
            issues.append("Missing required environment variables: " + ", ".join(missing_env))
        if worker is None:
            issues.append("Proxy worker is not initialized")
        elif settings.poll_auto_start and not running:
            issues.append("Proxy worker is not running")

        status = "unhealthy" if missing_env else "degraded" if issues else "healthy"

        return {
            "service": settings.app_name,
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "worker": {
                    "initialized": worker is not None,
                    "running": running,
                    "pollCount": worker_status["poll_count"] if worker_status else 0,
                    "lastPollAt": worker_status["last_poll_at"] if worker_status else None,
                    "feeds": worker_status["feeds"] if worker_status else [],
                },
            },
            "issues": issues,
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
