"""GTFS static loader - reads, parses and normalizes an archive into a StaticSchedule."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.services.gtfs_static.fetcher import GtfsStaticFetcher
from transit_rt_proxy.services.gtfs_static.normalizer import (
    GtfsNormalizer,
    NormalizationError,
    TimeParseError,
)
from transit_rt_proxy.services.gtfs_static.parser import GtfsParser
from transit_rt_proxy.services.gtfs_static.reader import GtfsZipReader
from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)

T = TypeVar("T")

# Cap on row errors kept in the report
MAX_REPORTED_ERRORS = 100


class LoadReport:
    """Row counts and errors collected while loading a schedule."""

    def __init__(self) -> None:
        self.counts: dict[str, dict[str, int]] = {}
        self.errors: list[str] = []

    def init_file(self, filename: str) -> None:
        self.counts[filename] = {"read": 0, "loaded": 0, "failed": 0}

    def to_dict(self) -> dict[str, Any]:
        return {"counts": self.counts, "errors": self.errors[:MAX_REPORTED_ERRORS]}


def _normalize_rows(
    rows: Callable[[], Iterator[dict[str, Any]]],
    normalize: Callable[[dict[str, Any]], T],
    filename: str,
    report: LoadReport,
    strict: bool,
) -> list[T]:
    """Normalize every row, skipping (or, when strict, raising on) bad rows."""
    report.init_file(filename)
    results: list[T] = []

    for row in rows():
        report.counts[filename]["read"] += 1
        try:
            results.append(normalize(row))
            report.counts[filename]["loaded"] += 1
        except (NormalizationError, TimeParseError) as exc:
            report.counts[filename]["failed"] += 1
            if strict:
                raise
            report.errors.append(f"{filename} row error: {exc}")
            logger.warning("Skipping GTFS row", filename=filename, error=str(exc))

    return results


def load_schedule(
    data: bytes,
    timezone: str = "America/New_York",
    strict: bool = False,
    report: LoadReport | None = None,
) -> StaticSchedule:
    """Build a :class:`StaticSchedule` from GTFS ZIP bytes.

    Args:
        data: The GTFS archive.
        timezone: Agency time zone used to resolve service days.
        strict: Raise on the first row that fails normalization.
        report: Optional report receiving row counts and errors.

    Raises:
        MissingRequiredFileError: If a required file is absent.
        MissingColumnError: If a required column is absent.
        NormalizationError: In strict mode, on the first bad row.
        TimeParseError: In strict mode, on the first bad time.
    """
    report = report if report is not None else LoadReport()
    normalizer = GtfsNormalizer()
    started = time.monotonic()

    with GtfsZipReader(data) as reader:
        parser = GtfsParser(reader)
        stops = _normalize_rows(
            parser.parse_stops, normalizer.normalize_stop, "stops.txt", report, strict
        )
        routes = _normalize_rows(
            parser.parse_routes, normalizer.normalize_route, "routes.txt", report, strict
        )
        trips = _normalize_rows(
            parser.parse_trips, normalizer.normalize_trip, "trips.txt", report, strict
        )
        stop_times = _normalize_rows(
            parser.parse_stop_times,
            normalizer.normalize_stop_time,
            "stop_times.txt",
            report,
            strict,
        )
        calendars = _normalize_rows(
            parser.parse_calendar, normalizer.normalize_calendar, "calendar.txt", report, strict
        )
        exceptions = _normalize_rows(
            parser.parse_calendar_dates,
            normalizer.normalize_calendar_date,
            "calendar_dates.txt",
            report,
            strict,
        )

    schedule = StaticSchedule(
        stops=stops,
        trips=trips,
        stop_times=stop_times,
        calendars=calendars,
        calendar_exceptions=exceptions,
        timezone=timezone,
        route_ids=routes,
    )
    logger.info(
        "Static schedule loaded",
        duration_ms=int((time.monotonic() - started) * 1000),
        stops=len(stops),
        routes=len(routes),
        trips=len(trips),
        stop_times=len(stop_times),
        errors=len(report.errors),
    )
    return schedule


async def load_schedule_from_source(
    source: str | Path,
    timezone: str = "America/New_York",
    strict: bool = False,
    fetcher: GtfsStaticFetcher | None = None,
) -> StaticSchedule:
    """Fetch the archive from a URL or path, then :func:`load_schedule` it."""
    fetcher = fetcher or GtfsStaticFetcher()
    data, feed_hash = await fetcher.fetch(source)
    logger.info("Loading static schedule", source=str(source), feed_hash=feed_hash)
    return load_schedule(data, timezone=timezone, strict=strict)
