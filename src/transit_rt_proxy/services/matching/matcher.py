"""Trip matcher: binds real-time reports to activated schedule entries."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Protocol, Tuple

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.match_result import MatchResult
from transit_rt_proxy.models.status import MatchStatus
from transit_rt_proxy.models.trip_identity import hundredths_to_seconds, seconds_to_hundredths

if TYPE_CHECKING:
    from transit_rt_proxy.models.realtime import TripReport
    from transit_rt_proxy.models.schedule import ActivatedScheduleEntry
    from transit_rt_proxy.models.trip_identity import TripIdentity
    from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule

logger = get_logger(__name__)

DEFAULT_COERCION_TOLERANCE_SEC = 600


class TripMatcher(Protocol):
    """Binds reports to schedule entries within a prepared time window."""

    def prepare_window(self, start: int, end: int, route_ids: Iterable[str]) -> None:
        """Index the candidate entries active in ``[start, end]`` for the routes."""

    def match(
        self,
        report: TripReport,
        identity: Optional[TripIdentity],
        feed_timestamp: int,
        rt_trip_id: Optional[str] = None,
    ) -> MatchResult:
        """Classify ``report`` against the prepared candidates."""


def parse_start_date(start_date: str) -> Optional[date]:
    """Parse a ``YYYYMMDD`` start date, returning None when absent or invalid."""
    if not start_date or len(start_date) != 8 or not start_date.isdigit():
        return None
    try:
        return datetime.strptime(start_date, "%Y%m%d").date()
    except ValueError:
        return None


def _representative(entries: List[ActivatedScheduleEntry]) -> ActivatedScheduleEntry:
    return min(entries, key=lambda entry: (entry.start, entry.trip_id))


class ActivatedTripMatcher:
    """Default :class:`TripMatcher` over a :class:`StaticSchedule`.

    Tiers, best first: strict (same origin and compatible path), loose (same
    origin, different path), other service date (absolute start coincides on
    an adjacent day), coercion (same day, origin within tolerance). A tie at
    the winning tier yields ``MULTI_MATCH``.
    """

    def __init__(
        self,
        schedule: StaticSchedule,
        coercion_tolerance_sec: int = DEFAULT_COERCION_TOLERANCE_SEC,
    ) -> None:
        self.schedule = schedule
        self.coercion_tolerance_sec = coercion_tolerance_sec
        self._window: Optional[Tuple[int, int]] = None
        self._candidates: Dict[Tuple[str, str], List[ActivatedScheduleEntry]] = {}

    @property
    def window(self) -> Optional[Tuple[int, int]]:
        return self._window

    def prepare_window(self, start: int, end: int, route_ids: Iterable[str]) -> None:
        candidates: Dict[Tuple[str, str], List[ActivatedScheduleEntry]] = defaultdict(list)
        count = 0
        # Entries without stop times have no identity and can never match
        for entry in self.schedule.active_entries(start, end, route_ids):
            if entry.identity is None:
                continue
            candidates[(entry.identity.route_id, entry.identity.direction)].append(entry)
            count += 1

        self._window = (start, end)
        self._candidates = dict(candidates)
        logger.debug("Matcher window prepared", start=start, end=end, candidates=count)

    def candidates_for(self, route_id: str, direction: str) -> List[ActivatedScheduleEntry]:
        return self._candidates.get((route_id, direction), [])

    def service_date_for(self, report: TripReport, feed_timestamp: int) -> date:
        """Implied service date: the report's start date, else the feed's local date."""
        parsed = parse_start_date(report.start_date)
        if parsed is not None:
            return parsed
        return self.schedule.local_date(feed_timestamp)

    def match(
        self,
        report: TripReport,
        identity: Optional[TripIdentity],
        feed_timestamp: int,
        rt_trip_id: Optional[str] = None,
    ) -> MatchResult:
        rt_trip_id = rt_trip_id if rt_trip_id is not None else report.trip_id

        if identity is None:
            return MatchResult.unbound(MatchStatus.BAD_TRIP_ID, report, rt_trip_id)

        service_date = self.service_date_for(report, feed_timestamp)
        if not self.schedule.has_service(identity.route_id, service_date):
            return MatchResult.unbound(
                MatchStatus.NO_TRIP_WITH_START_DATE, report, rt_trip_id, identity
            )

        candidates = self.candidates_for(identity.route_id, identity.direction)
        same_day = [entry for entry in candidates if entry.service_date == service_date]

        strict: List[ActivatedScheduleEntry] = []
        loose: List[ActivatedScheduleEntry] = []
        for entry in same_day:
            if entry.identity.origin_hundredths != identity.origin_hundredths:
                continue
            if entry.identity.path_compatible(identity):
                strict.append(entry)
            else:
                loose.append(entry)

        midnight = self.schedule.midnight(service_date)
        adjacent = {service_date - timedelta(days=1), service_date + timedelta(days=1)}
        other_day = [
            entry
            for entry in candidates
            if entry.service_date in adjacent
            and seconds_to_hundredths(entry.start - midnight) == identity.origin_hundredths
        ]

        for status, entries in (
            (MatchStatus.STRICT_MATCH, strict),
            (MatchStatus.LOOSE_MATCH, loose),
            (MatchStatus.LOOSE_MATCH_ON_OTHER_SERVICE_DATE, other_day),
        ):
            if entries:
                return self._result(status, entries, report, rt_trip_id, identity)

        return self._coerce(same_day, report, rt_trip_id, identity)

    def _coerce(
        self,
        same_day: List[ActivatedScheduleEntry],
        report: TripReport,
        rt_trip_id: str,
        identity: TripIdentity,
    ) -> MatchResult:
        best: List[ActivatedScheduleEntry] = []
        best_distance: Optional[int] = None

        for entry in same_day:
            # hundredths of a minute; the tolerance is in seconds
            distance = abs(identity.origin_hundredths - entry.identity.origin_hundredths)
            if distance == 0 or distance * 60 > self.coercion_tolerance_sec * 100:
                continue
            if best_distance is None or distance < best_distance:
                best, best_distance = [entry], distance
            elif distance == best_distance:
                best.append(entry)

        if not best:
            return MatchResult.unbound(MatchStatus.NO_MATCH, report, rt_trip_id, identity)
        return self._result(MatchStatus.LOOSE_MATCH_COERCION, best, report, rt_trip_id, identity)

    @staticmethod
    def _result(
        status: MatchStatus,
        entries: List[ActivatedScheduleEntry],
        report: TripReport,
        rt_trip_id: str,
        identity: TripIdentity,
    ) -> MatchResult:
        entry = _representative(entries)
        delta = 0
        if status == MatchStatus.LOOSE_MATCH_COERCION:
            delta = hundredths_to_seconds(
                identity.origin_hundredths - entry.identity.origin_hundredths
            )

        if len(entries) > 1:
            logger.debug(
                "Multiple schedule entries match report",
                trip_id=rt_trip_id,
                tier=status.name,
                candidates=[candidate.trip_id for candidate in entries],
            )
            status = MatchStatus.MULTI_MATCH

        return MatchResult(
            status=status,
            report=report,
            rt_trip_id=rt_trip_id,
            entry=entry,
            delta=delta,
            identity=identity,
        )
