"""In-memory static schedule with service-day activation queries."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.schedule import (
    ActivatedScheduleEntry,
    CalendarException,
    CalendarRule,
    ScheduledStopTime,
    ScheduledTrip,
    Stop,
    local_date,
    service_day_midnight,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

logger = get_logger(__name__)


class StaticSchedule:
    """Read-only view over a loaded GTFS schedule.

    All times in the underlying records are offsets from service-day midnight;
    queries take absolute epoch seconds and resolve service days in the
    agency time zone.
    """

    def __init__(
        self,
        stops: Iterable[Stop],
        trips: Iterable[ScheduledTrip],
        stop_times: Iterable[ScheduledStopTime],
        calendars: Iterable[CalendarRule] = (),
        calendar_exceptions: Iterable[CalendarException] = (),
        timezone: str = "America/New_York",
        route_ids: Iterable[str] = (),
    ) -> None:
        self.tz = ZoneInfo(timezone)
        self._stops: Dict[str, Stop] = {stop.stop_id: stop for stop in stops}
        self._trips: Dict[str, ScheduledTrip] = {trip.trip_id: trip for trip in trips}

        grouped: Dict[str, list[ScheduledStopTime]] = defaultdict(list)
        for stop_time in stop_times:
            grouped[stop_time.trip_id].append(stop_time)
        self._stop_times: Dict[str, Tuple[ScheduledStopTime, ...]] = {
            trip_id: tuple(sorted(rows, key=lambda st: st.stop_sequence))
            for trip_id, rows in grouped.items()
        }

        self._trips_by_route: Dict[str, list[ScheduledTrip]] = defaultdict(list)
        self._services_by_route: Dict[str, set[str]] = defaultdict(set)
        for trip in self._trips.values():
            self._trips_by_route[trip.route_id].append(trip)
            self._services_by_route[trip.route_id].add(trip.service_id)
        self._route_ids = set(route_ids) | set(self._trips_by_route)

        self._calendars: Dict[str, list[CalendarRule]] = defaultdict(list)
        for rule in calendars:
            self._calendars[rule.service_id].append(rule)
        self._exceptions: Dict[date, Dict[str, bool]] = defaultdict(dict)
        for exception in calendar_exceptions:
            self._exceptions[exception.service_date][exception.service_id] = exception.added

        self._services_cache: Dict[date, frozenset[str]] = {}
        self._entry_cache: Dict[Tuple[str, date], ActivatedScheduleEntry] = {}
        # Local date whose neighbourhood the caches currently cover
        self._cache_anchor: Optional[date] = None

    def __repr__(self) -> str:
        return (
            f"StaticSchedule(stops={len(self._stops)}, trips={len(self._trips)}, "
            f"routes={len(self._route_ids)})"
        )

    # -- stops ---------------------------------------------------------------

    def stop_exists(self, stop_id: str) -> bool:
        return stop_id in self._stops

    def stop_name(self, stop_id: str) -> Optional[str]:
        stop = self._stops.get(stop_id)
        return stop.name if stop else None

    def parent_station(self, stop_id: str) -> Optional[str]:
        stop = self._stops.get(stop_id)
        return stop.parent_station if stop else None

    # -- trips ---------------------------------------------------------------

    @property
    def route_ids(self) -> frozenset[str]:
        return frozenset(self._route_ids)

    def trip(self, trip_id: str) -> Optional[ScheduledTrip]:
        return self._trips.get(trip_id)

    def stop_times_for(self, trip_id: str) -> Sequence[ScheduledStopTime]:
        return self._stop_times.get(trip_id, ())

    # -- calendar ------------------------------------------------------------

    def services_on(self, service_date: date) -> frozenset[str]:
        """Service ids running on ``service_date`` after calendar exceptions."""
        cached = self._services_cache.get(service_date)
        if cached is not None:
            return cached

        active = {
            service_id
            for service_id, rules in self._calendars.items()
            if any(rule.runs_on(service_date) for rule in rules)
        }
        for service_id, added in self._exceptions.get(service_date, {}).items():
            if added:
                active.add(service_id)
            else:
                active.discard(service_id)

        result = frozenset(active)
        self._services_cache[service_date] = result
        return result

    def has_service(self, route_id: str, service_date: date) -> bool:
        """True if any trip of ``route_id`` runs on ``service_date``."""
        services = self._services_by_route.get(route_id)
        if not services:
            return False
        return not services.isdisjoint(self.services_on(service_date))

    def local_date(self, timestamp: int) -> date:
        return local_date(timestamp, self.tz)

    def midnight(self, service_date: date) -> int:
        return service_day_midnight(service_date, self.tz)

    # -- activation ----------------------------------------------------------

    def entry(self, trip: ScheduledTrip, service_date: date) -> ActivatedScheduleEntry:
        """Activate ``trip`` on ``service_date`` (memoized)."""
        key = (trip.trip_id, service_date)
        entry = self._entry_cache.get(key)
        if entry is None:
            entry = ActivatedScheduleEntry.activate(
                trip, self.stop_times_for(trip.trip_id), service_date, self.tz
            )
            self._entry_cache[key] = entry
        return entry

    @property
    def cached_dates(self) -> frozenset[date]:
        """Service dates with memoized activations."""
        return frozenset(service_date for _, service_date in self._entry_cache)

    def _trim_caches(self, anchor: date) -> None:
        """Forget service days more than one day away from ``anchor``."""
        if anchor == self._cache_anchor:
            return
        self._cache_anchor = anchor
        keep = {anchor + timedelta(days=offset) for offset in (-1, 0, 1)}
        self._entry_cache = {
            key: entry for key, entry in self._entry_cache.items() if key[1] in keep
        }
        self._services_cache = {
            day: services for day, services in self._services_cache.items() if day in keep
        }

    def entries_on(self, route_id: str, service_date: date) -> Iterator[ActivatedScheduleEntry]:
        """All entries of ``route_id`` running on ``service_date``.

        Trips without stop times are never activated.
        """
        services = self.services_on(service_date)
        for trip in self._trips_by_route.get(route_id, ()):
            if trip.service_id in services and self._stop_times.get(trip.trip_id):
                yield self.entry(trip, service_date)

    def active_entries(
        self,
        start: int,
        end: int,
        route_ids: Iterable[str],
    ) -> Iterator[ActivatedScheduleEntry]:
        """Entries of the given routes whose run overlaps ``[start, end]``.

        Service days previous/current/next of the agency-local date of
        ``start`` are searched so that post-midnight trips of the previous day
        and pre-midnight trips of the next day are found.
        """
        routes = list(dict.fromkeys(route_ids))
        start_date = self.local_date(start)
        self._trim_caches(start_date)

        for offset in (-1, 0, 1):
            service_date = start_date + timedelta(days=offset)
            midnight = self.midnight(service_date)
            start_rel = start - midnight
            end_rel = end - midnight

            for route_id in routes:
                for entry in self.entries_on(route_id, service_date):
                    trip_start = entry.start - midnight
                    trip_end = entry.end - midnight
                    if trip_end >= start_rel and trip_start <= end_rel:
                        yield entry
