"""Proxy polling worker: fetch, reconcile and publish each configured feed."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from transit_rt_proxy.logging import bind_feed_context, clear_feed_context, get_logger
from transit_rt_proxy.services.gtfs_rt.decoder import FeedDecodeError, GtfsRtDecoder
from transit_rt_proxy.services.gtfs_rt.encoder import GtfsRtEncoder
from transit_rt_proxy.services.gtfs_rt.fetcher import FeedFetchError, GtfsRtFetcher
from transit_rt_proxy.services.gtfs_rt.normalizer import GtfsRtNormalizer
from transit_rt_proxy.services.metrics import MatchMetrics

if TYPE_CHECKING:
    from transit_rt_proxy.config import Settings
    from transit_rt_proxy.services.metrics import MetricsReporter
    from transit_rt_proxy.services.reconciliation.pipeline import ReconciliationPipeline

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL_SEC = 30


@dataclass
class PublishedFeed:
    """Latest corrected output of one feed."""

    feed_id: str
    data: bytes
    summary: Dict[str, Any]
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ProxyWorker:
    """Polls the configured feeds and keeps the latest corrected feed per id.

    Usage:
        worker = ProxyWorker(pipeline, {"1": "https://..."})
        await worker.start()   # launches background task
        await worker.stop()    # cancels background task

        # Or run a single poll cycle:
        report = await worker.run_once()
    """

    def __init__(
        self,
        pipeline: ReconciliationPipeline,
        feed_urls: Mapping[str, str],
        fetcher: Optional[GtfsRtFetcher] = None,
        reporter: Optional[MetricsReporter] = None,
        poll_interval_sec: int = DEFAULT_POLL_INTERVAL_SEC,
    ) -> None:
        self._pipeline = pipeline
        self._feed_urls = dict(feed_urls)
        self._fetcher = fetcher or GtfsRtFetcher()
        self._reporter = reporter
        self._poll_interval = poll_interval_sec
        self._decoder = GtfsRtDecoder()
        self._normalizer = GtfsRtNormalizer()
        self._encoder = GtfsRtEncoder()

        self._published: Dict[str, PublishedFeed] = {}
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._poll_count = 0
        self._last_poll_at: datetime | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        pipeline: ReconciliationPipeline,
        reporter: Optional[MetricsReporter] = None,
    ) -> ProxyWorker:
        fetcher = GtfsRtFetcher(
            timeout_sec=settings.fetch_timeout_sec,
            max_retries=settings.fetch_max_retries,
            backoff_base=settings.fetch_backoff_base,
            api_key=settings.feed_api_key,
        )
        return cls(
            pipeline,
            settings.feed_urls,
            fetcher=fetcher,
            reporter=reporter,
            poll_interval_sec=settings.poll_interval_sec,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def poll_count(self) -> int:
        return self._poll_count

    @property
    def feed_ids(self) -> list[str]:
        return list(self._feed_urls)

    def latest(self, feed_id: str) -> Optional[PublishedFeed]:
        """Latest corrected feed, or None if the feed has not been published yet."""
        return self._published.get(feed_id)

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            logger.warning("Worker already running, ignoring start request")
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Proxy worker started", poll_interval_sec=self._poll_interval)

    async def stop(self) -> None:
        """Stop the background polling loop."""
        if not self._running:
            return

        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Proxy worker stopped")

    async def run_once(self) -> dict[str, Any]:
        """Execute a single poll cycle across all feeds, one after another.

        Returns:
            Report dict with per-feed results.
        """
        poll_id = str(uuid.uuid4())[:8]
        self._poll_count += 1
        self._last_poll_at = datetime.now(timezone.utc)
        bind_feed_context(poll_id=poll_id)
        logger.info("Starting poll cycle", poll_count=self._poll_count)

        report: dict[str, Any] = {
            "poll_id": poll_id,
            "poll_count": self._poll_count,
            "started_at": self._last_poll_at.isoformat(),
            "feeds": {},
        }

        total = MatchMetrics()
        try:
            for feed_id, url in self._feed_urls.items():
                report["feeds"][feed_id] = await self._process_feed(feed_id, url, poll_id, total)

            if self._reporter is not None:
                self._reporter.report_total(total)
        finally:
            clear_feed_context("poll_id")

        report["ended_at"] = datetime.now(timezone.utc).isoformat()
        logger.info("Poll cycle complete", poll_id=poll_id, feeds=len(report["feeds"]))
        return report

    async def get_status(self) -> dict[str, Any]:
        """Current worker status for health/status endpoints."""
        return {
            "running": self._running,
            "poll_count": self._poll_count,
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "poll_interval_sec": self._poll_interval,
            "feeds": sorted(self._published),
        }

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as exc:
                logger.error("Poll cycle failed unexpectedly", exc_info=exc)

            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break

    async def _process_feed(
        self,
        feed_id: str,
        url: str,
        poll_id: str,
        total: MatchMetrics,
    ) -> dict[str, Any]:
        """Fetch, decode, reconcile and publish one feed.

        Isolated per feed: a failure in one doesn't affect others.
        """
        result: dict[str, Any] = {"status": "error", "entity_count": 0, "error": None}
        bind_feed_context(feed_id=feed_id)

        try:
            data, _feed_hash = await self._fetcher.fetch(url, feed_id, poll_id)
            feed = self._decoder.decode(data, feed_id, poll_id)
            snapshot = self._normalizer.to_snapshot(feed, feed_id)
            result["entity_count"] = len(snapshot.trip_reports)

            feed_result = await asyncio.to_thread(self._pipeline.process, snapshot, total)
            output = self._encoder.encode(
                feed_result.trip_updates,
                snapshot.timestamp,
                snapshot.replacement_periods,
            )
            summary = feed_result.summary()
            self._published[feed_id] = PublishedFeed(feed_id=feed_id, data=output, summary=summary)

            result.update(summary)
            result["status"] = "dropped" if feed_result.dropped else "ok"

        except (FeedFetchError, FeedDecodeError) as exc:
            result["error"] = str(exc)
            logger.error("Feed processing failed", feed_id=feed_id, error=str(exc))

        except Exception as exc:
            result["error"] = str(exc)
            logger.error("Unexpected feed processing error", feed_id=feed_id, exc_info=exc)

        finally:
            clear_feed_context("feed_id")

        return result


# Singleton instance for the app lifecycle
_worker_instance: ProxyWorker | None = None


def get_worker() -> ProxyWorker | None:
    """Get the worker configured at startup, if any."""
    return _worker_instance


def set_worker(worker: ProxyWorker | None) -> None:
    """Install the worker built at startup (or a test double)."""
    global _worker_instance
    _worker_instance = worker


def reset_worker() -> None:
    """Reset the singleton (for testing)."""
    set_worker(None)
