"""HTTP download loop shared by the static and real-time feed fetchers."""

from __future__ import annotations

import asyncio
import hashlib
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx

from transit_rt_proxy.logging import get_logger

logger = get_logger(__name__)


class DownloadError(Exception):
    """Raised when a download keeps failing until the attempts run out."""


@dataclass(frozen=True)
class RetryPolicy:
    """Per-request timeout plus exponential backoff between attempts."""

    timeout_sec: float
    max_retries: int
    backoff_base: float

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after the 1-based ``attempt`` failed."""
        return self.backoff_base**attempt


async def get_bytes(
    url: str,
    timeout_sec: float,
    headers: Optional[Mapping[str, str]] = None,
) -> bytes:
    """One GET; non-2xx responses raise :class:`httpx.HTTPStatusError`."""
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_sec),
        follow_redirects=True,
        headers=dict(headers or {}),
    ) as client:
        response = await client.get(url)
        checked = response.raise_for_status()
        if inspect.isawaitable(checked):
            await checked
        return response.content


async def download(
    url: str,
    policy: RetryPolicy,
    *,
    what: str,
    headers: Optional[Mapping[str, str]] = None,
    accept: Optional[Callable[[bytes], None]] = None,
    retry_on: tuple[type[Exception], ...] = (),
    error: type[DownloadError] = DownloadError,
    **log_fields: Any,
) -> tuple[bytes, str]:
    """Fetch ``url`` until it succeeds or ``policy.max_retries`` attempts fail.

    ``accept`` inspects the body and raises to reject it. Rejections are only
    retried when their type is listed in ``retry_on``; transport and status
    errors always are.

    Returns:
        Tuple of (body, sha256_hex_digest).

    Raises:
        DownloadError: ``error`` once every attempt has failed.
    """
    failure: Optional[Exception] = None
    for attempt in range(1, policy.max_retries + 1):
        logger.info(
            f"Fetching {what}",
            url=url,
            attempt=attempt,
            max_retries=policy.max_retries,
            **log_fields,
        )
        try:
            body = await get_bytes(url, policy.timeout_sec, headers)
            if accept is not None:
                accept(body)
        except (httpx.HTTPError, *retry_on) as exc:
            failure = exc
            if attempt < policy.max_retries:
                pause = policy.delay(attempt)
                logger.warning(
                    f"{what} fetch failed, retrying",
                    attempt=attempt,
                    delay_sec=pause,
                    error=str(exc),
                    **log_fields,
                )
                await asyncio.sleep(pause)
            continue
        return body, hashlib.sha256(body).hexdigest()

    msg = f"Failed to fetch {what} after {policy.max_retries} attempts"
    logger.error(msg, error=str(failure), **log_fields)
    raise error(msg) from failure
