"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

from transit_rt_proxy.config import ReconciliationConfig
from transit_rt_proxy.main import app
from transit_rt_proxy.services.gtfs_rt.worker import ProxyWorker, reset_worker, set_worker
from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule
from transit_rt_proxy.services.matching.matcher import ActivatedTripMatcher
from transit_rt_proxy.services.reconciliation.pipeline import ReconciliationPipeline

from .fixtures.gtfs_fixture import at, build_schedule

# Feed header time used across tests: 06:01 local on the service date
FEED_TIMESTAMP = at(6, 1)


@pytest.fixture(scope="session")
def schedule() -> StaticSchedule:
    """Subway fixture schedule (read-only, shared)."""
    return build_schedule()


@pytest.fixture
def config() -> ReconciliationConfig:
    return ReconciliationConfig(latency_limit_sec=300)


@pytest.fixture
def pipeline(schedule: StaticSchedule, config: ReconciliationConfig) -> ReconciliationPipeline:
    """Pipeline whose clock reads five seconds after the feed timestamp."""
    return ReconciliationPipeline(
        schedule,
        ActivatedTripMatcher(schedule),
        config,
        clock=lambda: FEED_TIMESTAMP + 5,
    )


@pytest.fixture
def worker(pipeline: ReconciliationPipeline) -> Generator[ProxyWorker, None, None]:
    """Worker installed as the application singleton."""
    proxy_worker = ProxyWorker(pipeline, {"1": "https://example.com/gtfs"}, poll_interval_sec=30)
    set_worker(proxy_worker)
    yield proxy_worker
    reset_worker()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
