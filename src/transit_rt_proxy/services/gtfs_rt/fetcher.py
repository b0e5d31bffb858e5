"""Polls one GTFS-RT endpoint per call, authenticating with the MTA key."""

from __future__ import annotations

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.services.download import DownloadError, RetryPolicy, download

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0

API_KEY_HEADER = "x-api-key"


class FeedFetchError(DownloadError):
    """Raised when a GTFS-RT feed fetch fails after all retries."""


def _require_body(data: bytes) -> None:
    if not data:
        raise FeedFetchError("Empty response body")


class GtfsRtFetcher:
    """Downloads raw protobuf feed messages."""

    def __init__(
        self,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        api_key: str = "",
    ) -> None:
        self.policy = RetryPolicy(timeout_sec, max_retries, backoff_base)
        self.api_key = api_key

    @property
    def headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {API_KEY_HEADER: self.api_key}

    async def fetch(self, url: str, feed_id: str, poll_id: str = "") -> tuple[bytes, str]:
        """Return ``(payload, sha256)`` for the feed at ``url``.

        An empty body counts as a failed attempt.

        Raises:
            FeedFetchError: If every attempt failed.
        """
        payload, digest = await download(
            url,
            self.policy,
            what=f"feed {feed_id}",
            headers=self.headers,
            accept=_require_body,
            retry_on=(FeedFetchError,),
            error=FeedFetchError,
            feed_id=feed_id,
            poll_id=poll_id,
        )
        logger.info(
            "GTFS-RT feed downloaded",
            feed_id=feed_id,
            poll_id=poll_id,
            size_bytes=len(payload),
            feed_hash=digest[:12],
        )
        return payload, digest
