"""Per-feed reconciliation of real-time reports against the static schedule.

For each replacement period declared by the feed, the reports of every route
in the period are matched to activated schedule entries. Reports split at a
relief point are merged, duplicate reports for one entry are demoted,
unbound reports are published as additions and entries nobody claimed are
published as cancellations.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.realtime import ScheduleRelationship, TripReport
from transit_rt_proxy.models.status import MatchStatus
from transit_rt_proxy.models.trip_identity import DIRECTIONS, TripIdentity
from transit_rt_proxy.services.reconciliation.merge import try_merge

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from transit_rt_proxy.config import ReconciliationConfig
    from transit_rt_proxy.models.match_result import MatchResult
    from transit_rt_proxy.models.realtime import FeedSnapshot, ReplacementPeriod, StopTimeUpdate
    from transit_rt_proxy.services.directions import DirectionsService
    from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule
    from transit_rt_proxy.services.matching.matcher import TripMatcher
    from transit_rt_proxy.services.metrics import MatchMetrics, MetricsReporter

logger = get_logger(__name__)


@dataclass
class RouteResult:
    """Final match results and cancellations of one route in one period."""

    route_id: str
    records_in: int = 0
    results: List[MatchResult] = field(default_factory=list)
    claimed_trip_ids: List[str] = field(default_factory=list)
    canceled_trip_ids: List[str] = field(default_factory=list)


@dataclass
class FeedResult:
    """Output of reconciling one feed message."""

    feed_id: str
    timestamp: int
    latency: Optional[int] = None
    dropped: bool = False
    records_in: int = 0
    expired: int = 0
    trip_updates: List[TripReport] = field(default_factory=list)
    routes: List[RouteResult] = field(default_factory=list)

    def status_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for route in self.routes:
            for result in route.results:
                counts[result.status.name] = counts.get(result.status.name, 0) + 1
        return counts

    def summary(self) -> Dict[str, object]:
        return {
            "feed_id": self.feed_id,
            "timestamp": self.timestamp,
            "latency_sec": self.latency,
            "dropped": self.dropped,
            "records_in": self.records_in,
            "expired": self.expired,
            "records_out": len(self.trip_updates),
            "canceled": sum(len(route.canceled_trip_ids) for route in self.routes),
            "statuses": self.status_counts(),
        }


def repair_start_date(start_date: str) -> str:
    """Keep the first eight digits of an over-long start date."""
    if len(start_date) <= 8:
        return start_date
    return "".join(ch for ch in start_date if ch.isdigit())[:8]


def period_route_ids(
    period: ReplacementPeriod,
    aliases: Mapping[str, str],
    implied_routes: Mapping[str, str],
) -> List[str]:
    """Ordered, de-duplicated static route ids covered by a replacement period.

    The feed blacklist applies to whole periods only; a blacklisted route
    listed next to others in one period is still processed.
    """
    routes = list(dict.fromkeys(aliases.get(token, token) for token in period.route_tokens))
    for route_id in list(routes):
        implied = implied_routes.get(route_id)
        if implied is not None and implied not in routes:
            routes.append(implied)
    return routes


class ReconciliationPipeline:
    """Reconciles feed snapshots against a static schedule.

    Args:
        schedule: Loaded static schedule.
        matcher: Trip matcher over the same schedule.
        config: Immutable reconciliation settings.
        directions: Optional station directions for per-stop headsigns.
        reporter: Optional metrics reporter fed with every :class:`FeedResult`.
        clock: Returns the current epoch time (used by the latency gate).
    """

    def __init__(
        self,
        schedule: StaticSchedule,
        matcher: TripMatcher,
        config: ReconciliationConfig,
        directions: Optional[DirectionsService] = None,
        reporter: Optional[MetricsReporter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.schedule = schedule
        self.matcher = matcher
        self.config = config
        self.directions = directions
        self.reporter = reporter
        self.clock = clock
        # The matcher keeps per-window state between prepare_window and match
        self._lock = threading.Lock()

    def process(
        self,
        snapshot: FeedSnapshot,
        total_metrics: Optional[MatchMetrics] = None,
    ) -> FeedResult:
        """Reconcile one feed snapshot.

        Never raises for data problems: every report ends in a classification.
        """
        result = self._process(snapshot)
        if self.reporter is not None:
            self.reporter.report_feed_result(result, total_metrics)
        return result

    def _process(self, snapshot: FeedSnapshot) -> FeedResult:
        feed_id = snapshot.feed_id
        timestamp = snapshot.timestamp
        result = FeedResult(
            feed_id=feed_id,
            timestamp=timestamp,
            latency=int(self.clock()) - timestamp,
        )

        if self.config.latency_limit_sec > 0 and result.latency > self.config.latency_limit_sec:
            logger.info("Feed ignored, latency too high", feed_id=feed_id, latency_sec=result.latency)
            result.dropped = True
            return result

        aliases = self.config.aliases_for(feed_id)
        reports_by_route: Dict[str, List[TripReport]] = {}
        for report in snapshot.trip_reports:
            result.records_in += 1
            if report.is_expired(timestamp):
                result.expired += 1
                continue
            route_id = aliases.get(report.route_id, report.route_id)
            reports_by_route.setdefault(route_id, []).append(report)

        blacklist = self.config.blacklist_for(feed_id)
        for period in snapshot.replacement_periods:
            if period.route_id in blacklist:
                continue

            start = period.start
            if start is None:
                start = self._earliest_event(reports_by_route, timestamp)
            end = period.end if period.end is not None else timestamp

            route_ids = period_route_ids(period, aliases, self.config.implied_routes)
            with self._lock:
                self.matcher.prepare_window(start, end, route_ids)
                for route_id in route_ids:
                    route_result = self._process_route(
                        route_id,
                        reports_by_route.get(route_id, []),
                        feed_id,
                        timestamp,
                        result.trip_updates,
                    )
                    if self.config.cancel_unmatched_trips:
                        self._cancel_unclaimed(
                            route_result, period, start, end, timestamp, result.trip_updates
                        )
                    result.routes.append(route_result)

        logger.info(
            "Feed reconciled",
            feed_id=feed_id,
            records_in=result.records_in,
            expired=result.expired,
            records_out=len(result.trip_updates),
        )
        return result

    @staticmethod
    def _earliest_event(reports_by_route: Dict[str, List[TripReport]], timestamp: int) -> int:
        times = [
            report.earliest_event_time()
            for reports in reports_by_route.values()
            for report in reports
        ]
        times = [event_time for event_time in times if event_time is not None]
        return min(times) if times else timestamp

    # -- per route -----------------------------------------------------------

    def _prepare_report(
        self,
        report: TripReport,
        feed_id: str,
    ) -> Tuple[TripReport, Optional[TripIdentity]]:
        """Rewrite the route, prune unknown stops and normalize ids."""
        aliases = self.config.aliases_for(feed_id)
        reversed_routes = self.config.reversed_direction_routes
        route_id = aliases.get(report.route_id, report.route_id)

        updates = [stu for stu in report.stop_time_updates if self.schedule.stop_exists(stu.stop_id)]
        identity = TripIdentity.from_report(report.trip_id, report.train_id, reversed_routes)

        trip_id = report.trip_id
        if identity is not None:
            updates = [
                replace(stu, stop_id=self._normalize_stop_id(stu.stop_id, route_id, identity))
                for stu in updates
            ]
            trip_id = str(identity)
        else:
            logger.error("Invalid trip id", trip_id=report.trip_id, train_id=report.train_id)

        prepared = replace(
            report,
            trip_id=trip_id,
            route_id=route_id,
            start_date=repair_start_date(report.start_date),
            stop_time_updates=tuple(updates),
        )
        return prepared, identity

    def _normalize_stop_id(self, stop_id: str, route_id: str, identity: TripIdentity) -> str:
        if stop_id[-1:] not in DIRECTIONS:
            stop_id = stop_id + identity.direction
        elif route_id in self.config.reversed_direction_routes:
            stop_id = stop_id[:-1] + identity.direction

        transform = self.config.stop_id_transform
        if transform is not None:
            stop_id = transform(identity.route_id, identity.direction, stop_id)
        return stop_id

    def _process_route(
        self,
        route_id: str,
        reports: Sequence[TripReport],
        feed_id: str,
        timestamp: int,
        output: List[TripReport],
    ) -> RouteResult:
        route_result = RouteResult(route_id=route_id, records_in=len(reports))

        buckets: Dict[str, List[MatchResult]] = {}
        for report in reports:
            prepared, identity = self._prepare_report(report, feed_id)
            match = self.matcher.match(prepared, identity, timestamp, rt_trip_id=report.trip_id)
            buckets.setdefault(match.trip_id, []).append(match)

        for bucket in buckets.values():
            if try_merge(bucket):
                continue
            live = [index for index, match in enumerate(bucket) if match.status != MatchStatus.MERGED]
            if len(live) > 1 and not self.config.allow_duplicates:
                self._drop_duplicates(bucket, live)

        claimed: Set[str] = set()
        for bucket in buckets.values():
            for index, match in enumerate(bucket):
                if match.status != MatchStatus.MERGED:
                    match = self._emit(match, timestamp, output, claimed)
                    bucket[index] = match
                route_result.results.append(match)

        route_result.claimed_trip_ids = sorted(claimed)
        return route_result

    @staticmethod
    def _drop_duplicates(bucket: List[MatchResult], live: List[int]) -> None:
        ranked = sorted(live, key=lambda index: bucket[index].rank_key, reverse=True)
        best = bucket[ranked[0]]
        for index in ranked[1:]:
            logger.debug(
                "Dropping duplicate report",
                trip_id=best.trip_id,
                rt_trip_id=bucket[index].rt_trip_id,
                status=bucket[index].status.name,
                better_rt_trip_id=best.rt_trip_id,
                better_status=best.status.name,
            )
            bucket[index] = bucket[index].demoted()

    def _emit(
        self,
        match: MatchResult,
        timestamp: int,
        output: List[TripReport],
        claimed: Set[str],
    ) -> MatchResult:
        """Build the output record of a live result; returns the final result."""
        if match.has_result and (
            not match.report.stop_time_updates or not match.stops_match_to_end()
        ):
            logger.info(
                "No stop match",
                rt_trip_id=match.report.trip_id,
                static_trip_id=match.trip_id,
            )
            match = match.demoted()

        report = match.report
        if match.entry is not None:
            scheduled_stops = set(match.entry.stop_ids())
            report = replace(
                report,
                trip_id=match.entry.trip_id,
                stop_time_updates=tuple(
                    stu for stu in report.stop_time_updates if stu.stop_id in scheduled_stops
                ),
            )
            claimed.add(match.entry.trip_id)
        else:
            if not report.stop_time_updates:
                return match
            report = self._as_addition(report)

        output.append(replace(report, timestamp=timestamp))
        return match

    def _as_addition(self, report: TripReport) -> TripReport:
        headsign = self.schedule.stop_name(report.last_stop_id or "")
        if headsign is None or not headsign.strip():
            return replace(report, schedule_relationship=ScheduleRelationship.ADDED)

        updates: List[StopTimeUpdate] = list(report.stop_time_updates)
        if self.directions is not None:
            self.directions.fill_stop_headsigns(updates)
        return replace(
            report,
            schedule_relationship=ScheduleRelationship.ADDED,
            trip_headsign=headsign,
            stop_time_updates=tuple(updates),
        )

    def _cancel_unclaimed(
        self,
        route_result: RouteResult,
        period: ReplacementPeriod,
        start: int,
        end: int,
        timestamp: int,
        output: List[TripReport],
    ) -> None:
        claimed = set(route_result.claimed_trip_ids)
        canceled: List[str] = []
        for entry in self.schedule.active_entries(start, end, [route_result.route_id]):
            if entry.trip_id in claimed or not entry.active_for(period, timestamp):
                continue
            output.append(
                TripReport(
                    trip_id=entry.trip_id,
                    route_id=entry.route_id,
                    start_date=entry.start_date,
                    schedule_relationship=ScheduleRelationship.CANCELED,
                )
            )
            canceled.append(entry.trip_id)
        route_result.canceled_trip_ids = canceled
