"""Obtains the static GTFS archive from a download URL or a file on disk."""

from __future__ import annotations

import hashlib
import io
import zipfile
from pathlib import Path
from urllib.parse import urlsplit

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.services.download import DownloadError, RetryPolicy, download

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 120
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0

# local file header signature
ZIP_MAGIC = b"PK\x03\x04"


class FetchError(DownloadError):
    """Raised when the GTFS archive cannot be downloaded after all retries."""


class InvalidZipError(Exception):
    """Raised when the content is not a valid ZIP."""


class GtfsStaticFetcher:
    """Returns archive bytes together with their sha256 digest."""

    def __init__(
        self,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ) -> None:
        self.policy = RetryPolicy(timeout_sec, max_retries, backoff_base)

    async def fetch(self, source: str | Path) -> tuple[bytes, str]:
        """Download http(s) sources; treat everything else as a path."""
        if isinstance(source, str) and urlsplit(source).scheme in ("http", "https"):
            return await self.fetch_remote(source)
        return self.fetch_local(source)

    async def fetch_remote(self, url: str) -> tuple[bytes, str]:
        """Raises :class:`FetchError` or, without retrying, :class:`InvalidZipError`."""
        data, digest = await download(
            url,
            self.policy,
            what="GTFS archive",
            accept=self._validate_zip,
            error=FetchError,
        )
        logger.info("GTFS archive downloaded", size_bytes=len(data), feed_hash=digest)
        return data, digest

    def fetch_local(self, path: str | Path) -> tuple[bytes, str]:
        archive = Path(path)
        if not archive.is_file():
            raise FileNotFoundError(f"Local GTFS file not found: {archive}")

        data = archive.read_bytes()
        self._validate_zip(data)
        digest = hashlib.sha256(data).hexdigest()
        logger.info("GTFS archive read from disk", path=str(archive), feed_hash=digest)
        return data, digest

    @staticmethod
    def _validate_zip(data: bytes) -> None:
        if not data.startswith(ZIP_MAGIC) or not zipfile.is_zipfile(io.BytesIO(data)):
            raise InvalidZipError("Content is not a valid ZIP file")
