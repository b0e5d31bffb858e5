"""Real-time feed records: decoded trip reports and replacement periods."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

# Reports whose latest event is older than this (relative to the feed
# timestamp) are considered expired.
EXPIRY_WINDOW_SEC = 300


class ScheduleRelationship(str, Enum):
    """Schedule relationship of an output trip record."""

    SCHEDULED = "SCHEDULED"
    ADDED = "ADDED"
    CANCELED = "CANCELED"


@dataclass(frozen=True)
class StopTimeEvent:
    """Arrival or departure event of a stop time update."""

    time: Optional[int] = None
    delay: Optional[int] = None

    @property
    def has_time(self) -> bool:
        return self.time is not None


@dataclass(frozen=True)
class StopTimeUpdate:
    """Predicted arrival/departure at one stop."""

    stop_id: str
    arrival: Optional[StopTimeEvent] = None
    departure: Optional[StopTimeEvent] = None
    stop_sequence: Optional[int] = None
    stop_headsign: Optional[str] = None

    def event_for_expiry(self) -> Optional[StopTimeEvent]:
        """Departure when present, arrival otherwise."""
        return self.departure if self.departure is not None else self.arrival


@dataclass(frozen=True)
class TripReport:
    """One real-time trip update entity."""

    trip_id: str
    route_id: str = ""
    start_date: str = ""
    schedule_relationship: ScheduleRelationship = ScheduleRelationship.SCHEDULED
    train_id: Optional[str] = None
    stop_time_updates: Tuple[StopTimeUpdate, ...] = ()
    timestamp: Optional[int] = None
    trip_headsign: Optional[str] = None
    entity_id: Optional[str] = None

    @property
    def first_stop_id(self) -> Optional[str]:
        return self.stop_time_updates[0].stop_id if self.stop_time_updates else None

    @property
    def last_stop_id(self) -> Optional[str]:
        return self.stop_time_updates[-1].stop_id if self.stop_time_updates else None

    def latest_event_time(self) -> Optional[int]:
        """Latest timed event across stop updates (departure preferred), if any."""
        times = [
            event.time
            for event in (stu.event_for_expiry() for stu in self.stop_time_updates)
            if event is not None and event.time is not None
        ]
        return max(times) if times else None

    def earliest_event_time(self) -> Optional[int]:
        """Earliest timed arrival or departure across stop updates, if any."""
        times = [
            event.time
            for stu in self.stop_time_updates
            for event in (stu.arrival, stu.departure)
            if event is not None and event.time is not None
        ]
        return min(times) if times else None

    def is_expired(self, feed_timestamp: int) -> bool:
        """True if the latest timed event is more than 5 minutes before the feed.

        Reports without timed events never expire.
        """
        latest = self.latest_event_time()
        return latest is not None and latest < feed_timestamp - EXPIRY_WINDOW_SEC


@dataclass(frozen=True)
class ReplacementPeriod:
    """Routes and window for which real-time data replaces the schedule.

    ``route_id`` may list several routes separated by commas.
    """

    route_id: str
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def route_tokens(self) -> list[str]:
        return [token.strip() for token in self.route_id.split(",") if token.strip()]

    def bounds(self, timestamp: int) -> tuple[int, int]:
        """Window bounds; open ends default to ``timestamp``."""
        start = self.start if self.start is not None else timestamp
        end = self.end if self.end is not None else timestamp
        return start, end


@dataclass(frozen=True)
class FeedSnapshot:
    """Decoded real-time feed message."""

    feed_id: str
    timestamp: int
    replacement_periods: Tuple[ReplacementPeriod, ...] = ()
    trip_reports: Tuple[TripReport, ...] = field(default_factory=tuple)
