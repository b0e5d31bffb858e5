"""GTFS data normalizer - cleans raw CSV rows into schedule records."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.schedule import (
    CalendarException,
    CalendarRule,
    ScheduledStopTime,
    ScheduledTrip,
    Stop,
)

logger = get_logger(__name__)

_WEEKDAY_COLUMNS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class TimeParseError(Exception):
    """Raised when a GTFS time string cannot be parsed."""


class NormalizationError(Exception):
    """Raised when a row cannot be normalized."""


class GtfsNormalizer:
    """Normalizes raw GTFS CSV rows into immutable schedule records."""

    @staticmethod
    def normalize_stop(row: dict[str, Any]) -> Stop:
        """Normalize a stops.txt row.

        Raises:
            NormalizationError: If stop_id or stop_name is missing.
        """
        stop_id = _clean_str(row.get("stop_id"))
        name = _clean_str(row.get("stop_name"))

        if not stop_id:
            raise NormalizationError("Missing stop_id")
        if not name:
            raise NormalizationError(f"Missing stop_name for stop_id={stop_id}")

        return Stop(
            stop_id=stop_id,
            name=name,
            parent_station=_clean_str(row.get("parent_station")) or None,
        )

    @staticmethod
    def normalize_route(row: dict[str, Any]) -> str:
        """Normalize a routes.txt row to its route id.

        Raises:
            NormalizationError: If route_id is missing.
        """
        route_id = _clean_str(row.get("route_id"))
        if not route_id:
            raise NormalizationError("Missing route_id")
        return route_id

    @staticmethod
    def normalize_trip(row: dict[str, Any]) -> ScheduledTrip:
        """Normalize a trips.txt row.

        ``direction_id`` is optional; values other than 0/1 are dropped with a
        warning.

        Raises:
            NormalizationError: If required fields are missing.
        """
        trip_id = _clean_str(row.get("trip_id"))
        route_id = _clean_str(row.get("route_id"))
        service_id = _clean_str(row.get("service_id"))
        direction_id_str = _clean_str(row.get("direction_id"))

        if not trip_id:
            raise NormalizationError("Missing trip_id")
        if not route_id:
            raise NormalizationError(f"Missing route_id for trip_id={trip_id}")
        if not service_id:
            raise NormalizationError(f"Missing service_id for trip_id={trip_id}")

        direction_id: Optional[int] = None
        if direction_id_str:
            if direction_id_str in ("0", "1"):
                direction_id = int(direction_id_str)
            else:
                logger.warning(
                    "Invalid direction_id, ignoring",
                    trip_id=trip_id,
                    direction_id=direction_id_str,
                )

        return ScheduledTrip(
            trip_id=trip_id,
            route_id=route_id,
            service_id=service_id,
            direction_id=direction_id,
            headsign=_clean_str(row.get("trip_headsign")) or None,
        )

    @staticmethod
    def normalize_stop_time(row: dict[str, Any]) -> ScheduledStopTime:
        """Normalize a stop_times.txt row.

        Converts GTFS times (HH:MM:SS, may be >24:00:00) to seconds from
        service-day midnight. A blank departure falls back to the arrival and
        vice versa.

        Raises:
            NormalizationError: If required fields are missing/invalid.
            TimeParseError: If a time string is malformed.
        """
        trip_id = _clean_str(row.get("trip_id"))
        stop_id = _clean_str(row.get("stop_id"))
        seq_str = _clean_str(row.get("stop_sequence"))
        arrival_str = _clean_str(row.get("arrival_time"))
        departure_str = _clean_str(row.get("departure_time"))

        if not trip_id:
            raise NormalizationError("Missing trip_id in stop_times")
        if not stop_id:
            raise NormalizationError(f"Missing stop_id in stop_times for trip_id={trip_id}")

        try:
            stop_sequence = int(seq_str)
        except ValueError as exc:
            raise NormalizationError(
                f"Invalid stop_sequence={seq_str!r} for trip_id={trip_id}"
            ) from exc

        if not arrival_str and not departure_str:
            raise NormalizationError(
                f"Missing arrival/departure for trip_id={trip_id}, stop_sequence={stop_sequence}"
            )

        arrival = parse_gtfs_time(arrival_str or departure_str)
        departure = parse_gtfs_time(departure_str) if departure_str else arrival

        return ScheduledStopTime(
            trip_id=trip_id,
            stop_id=stop_id,
            stop_sequence=stop_sequence,
            arrival_time=arrival,
            departure_time=departure,
        )

    @staticmethod
    def normalize_calendar(row: dict[str, Any]) -> CalendarRule:
        """Normalize a calendar.txt row.

        Raises:
            NormalizationError: If the service id, a weekday flag or a date is invalid.
        """
        service_id = _clean_str(row.get("service_id"))
        if not service_id:
            raise NormalizationError("Missing service_id in calendar")

        flags = []
        for column in _WEEKDAY_COLUMNS:
            value = _clean_str(row.get(column))
            if value not in ("0", "1"):
                raise NormalizationError(
                    f"Invalid {column}={value!r} for service_id={service_id}"
                )
            flags.append(value == "1")

        return CalendarRule(
            service_id=service_id,
            weekdays=tuple(flags),  # type: ignore[arg-type]
            start_date=parse_gtfs_date(_clean_str(row.get("start_date"))),
            end_date=parse_gtfs_date(_clean_str(row.get("end_date"))),
        )

    @staticmethod
    def normalize_calendar_date(row: dict[str, Any]) -> CalendarException:
        """Normalize a calendar_dates.txt row (exception_type 1 adds, 2 removes).

        Raises:
            NormalizationError: If the row is incomplete or the type is unknown.
        """
        service_id = _clean_str(row.get("service_id"))
        exception_type = _clean_str(row.get("exception_type"))

        if not service_id:
            raise NormalizationError("Missing service_id in calendar_dates")
        if exception_type not in ("1", "2"):
            raise NormalizationError(
                f"Invalid exception_type={exception_type!r} for service_id={service_id}"
            )

        return CalendarException(
            service_id=service_id,
            service_date=parse_gtfs_date(_clean_str(row.get("date"))),
            added=exception_type == "1",
        )


def parse_gtfs_time(time_str: str) -> int:
    """Parse a GTFS time string (HH:MM:SS) to seconds from midnight.

    Supports times >= 24:00:00 for trips spanning past midnight.

    Examples:
        "08:30:00" -> 30600
        "25:01:30" -> 90090

    Raises:
        TimeParseError: If the format is invalid.
    """
    time_str = time_str.strip()
    parts = time_str.split(":")
    if len(parts) != 3:
        msg = f"Invalid GTFS time format: {time_str!r} (expected HH:MM:SS)"
        raise TimeParseError(msg)

    try:
        hours, minutes, seconds = (int(part) for part in parts)
    except ValueError as exc:
        msg = f"Non-numeric components in GTFS time: {time_str!r}"
        raise TimeParseError(msg) from exc

    if hours < 0 or not 0 <= minutes <= 59 or not 0 <= seconds <= 59:
        msg = f"Out of range component in GTFS time: {time_str!r}"
        raise TimeParseError(msg)

    return hours * 3600 + minutes * 60 + seconds


def parse_gtfs_date(date_str: str) -> date:
    """Parse a GTFS date (YYYYMMDD).

    Raises:
        NormalizationError: If the string is not a valid date.
    """
    try:
        return datetime.strptime(date_str, "%Y%m%d").date()
    except ValueError as exc:
        raise NormalizationError(f"Invalid GTFS date: {date_str!r}") from exc


def _clean_str(value: Any) -> str:
    """Trim whitespace from a value, return empty string for None."""
    if value is None:
        return ""
    return str(value).strip()
