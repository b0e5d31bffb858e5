"""Static schedule records and service-day activation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Optional, Tuple
from zoneinfo import ZoneInfo

from transit_rt_proxy.models.trip_identity import TripIdentity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from transit_rt_proxy.models.realtime import ReplacementPeriod


@dataclass(frozen=True)
class Stop:
    """A GTFS stop (platform or station)."""

    stop_id: str
    name: str
    parent_station: Optional[str] = None


@dataclass(frozen=True)
class ScheduledTrip:
    """A GTFS trip, independent of service day."""

    trip_id: str
    route_id: str
    service_id: str
    direction_id: Optional[int] = None
    headsign: Optional[str] = None


@dataclass(frozen=True)
class ScheduledStopTime:
    """A GTFS stop time; times are seconds after service-day midnight."""

    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: int
    departure_time: int


@dataclass(frozen=True)
class CalendarRule:
    """A calendar.txt row: weekly pattern over a date range (inclusive)."""

    service_id: str
    weekdays: Tuple[bool, bool, bool, bool, bool, bool, bool]
    start_date: date
    end_date: date

    def runs_on(self, service_date: date) -> bool:
        if not self.start_date <= service_date <= self.end_date:
            return False
        return self.weekdays[service_date.weekday()]


@dataclass(frozen=True)
class CalendarException:
    """A calendar_dates.txt row; ``added`` False means service removed."""

    service_id: str
    service_date: date
    added: bool


def service_day_midnight(service_date: date, tz: ZoneInfo) -> int:
    """Epoch seconds of local midnight starting ``service_date``."""
    return int(datetime.combine(service_date, time.min, tzinfo=tz).timestamp())


def local_date(timestamp: int, tz: ZoneInfo) -> date:
    """Agency-local calendar date of an epoch timestamp."""
    return datetime.fromtimestamp(timestamp, tz).date()


@dataclass(frozen=True)
class ActivatedScheduleEntry:
    """A scheduled trip instantiated on one concrete service day.

    ``start`` and ``end`` are absolute epoch seconds: service-day midnight
    plus the first departure and last arrival offsets. A trip without stop
    times has ``start == end == midnight`` and no identity.
    """

    service_date: date
    trip: ScheduledTrip
    start: int
    end: int
    stop_times: Tuple[ScheduledStopTime, ...] = ()
    identity: Optional[TripIdentity] = field(default=None, compare=False)

    @classmethod
    def activate(
        cls,
        trip: ScheduledTrip,
        stop_times: Iterable[ScheduledStopTime],
        service_date: date,
        tz: ZoneInfo,
    ) -> ActivatedScheduleEntry:
        """Instantiate ``trip`` on ``service_date`` in the agency time zone."""
        ordered = tuple(sorted(stop_times, key=lambda st: st.stop_sequence))
        midnight = service_day_midnight(service_date, tz)

        if ordered:
            start = midnight + ordered[0].departure_time
            end = midnight + ordered[-1].arrival_time
        else:
            start = end = midnight

        return cls(
            service_date=service_date,
            trip=trip,
            start=start,
            end=max(start, end),
            stop_times=ordered,
            identity=TripIdentity.from_schedule(trip, ordered),
        )

    @property
    def trip_id(self) -> str:
        return self.trip.trip_id

    @property
    def route_id(self) -> str:
        return self.trip.route_id

    @property
    def midnight(self) -> int:
        """Absolute service-day midnight, recovered from the first departure."""
        if not self.stop_times:
            return self.start
        return self.start - self.stop_times[0].departure_time

    @property
    def start_date(self) -> str:
        """Service date as ``YYYYMMDD``."""
        return self.service_date.strftime("%Y%m%d")

    def stop_ids(self) -> list[str]:
        return [st.stop_id for st in self.stop_times]

    def active_for(self, period: ReplacementPeriod, timestamp: int) -> bool:
        """True if the entry overlaps the replacement period window."""
        period_start, period_end = period.bounds(timestamp)
        return self.start < period_end and self.end > period_start
