"""Tests for the shared download loop."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from transit_rt_proxy.services.download import DownloadError, RetryPolicy, download
from transit_rt_proxy.services.gtfs_static.fetcher import GtfsStaticFetcher, InvalidZipError

from .fixtures.gtfs_fixture import build_invalid_zip

URL = "https://example.com/feed"


def _response(content: bytes = b"payload", status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=content, request=httpx.Request("GET", URL))


class TestRetryPolicy:
    def test_delay_grows_exponentially(self) -> None:
        policy = RetryPolicy(timeout_sec=5, max_retries=3, backoff_base=2.0)
        assert [policy.delay(attempt) for attempt in (1, 2, 3)] == [2.0, 4.0, 8.0]


class TestDownload:
    """Tests for retry and rejection handling."""

    async def test_returns_body_and_digest(self) -> None:
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_response()):
            body, digest = await download(URL, RetryPolicy(5, 1, 0.01), what="feed")

        assert body == b"payload"
        assert digest == "239f59ed55e737c77147cf55ad0c1b030b6d7ee748a7426952f9b852d5a935e5"

    async def test_status_errors_are_retried(self) -> None:
        get = AsyncMock(side_effect=[_response(status=503), _response()])
        with patch("httpx.AsyncClient.get", get):
            body, _ = await download(URL, RetryPolicy(5, 2, 0.01), what="feed")

        assert body == b"payload"
        assert get.await_count == 2

    async def test_exhausted_attempts_raise_given_error(self) -> None:
        class CustomError(DownloadError):
            pass

        get = AsyncMock(return_value=_response(status=500))
        with patch("httpx.AsyncClient.get", get):
            with pytest.raises(CustomError, match="Failed to fetch feed after 3 attempts"):
                await download(URL, RetryPolicy(5, 3, 0.01), what="feed", error=CustomError)

        assert get.await_count == 3

    async def test_rejection_listed_in_retry_on_is_retried(self) -> None:
        def accept(body: bytes) -> None:
            if body == b"bad":
                raise ValueError("rejected")

        get = AsyncMock(side_effect=[_response(b"bad"), _response()])
        with patch("httpx.AsyncClient.get", get):
            body, _ = await download(
                URL, RetryPolicy(5, 2, 0.01), what="feed", accept=accept, retry_on=(ValueError,)
            )

        assert body == b"payload"

    async def test_invalid_archive_is_not_retried(self) -> None:
        get = AsyncMock(return_value=_response(build_invalid_zip()))
        with patch("httpx.AsyncClient.get", get):
            fetcher = GtfsStaticFetcher(max_retries=3, backoff_base=0.01)
            with pytest.raises(InvalidZipError):
                await fetcher.fetch_remote("https://example.com/gtfs.zip")

        assert get.await_count == 1
