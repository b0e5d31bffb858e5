"""Outcome of binding one real-time report to a schedule entry."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from transit_rt_proxy.models.status import MatchStatus

if TYPE_CHECKING:
    from transit_rt_proxy.models.realtime import TripReport
    from transit_rt_proxy.models.schedule import ActivatedScheduleEntry
    from transit_rt_proxy.models.trip_identity import TripIdentity


@dataclass(frozen=True)
class MatchResult:
    """Tagged match outcome.

    ``delta`` is ``reported - scheduled`` origin seconds and only carries
    meaning for ``LOOSE_MATCH_COERCION``. ``rt_trip_id`` is the trip id as it
    arrived in the feed, before any rewriting.
    """

    status: MatchStatus
    report: TripReport
    rt_trip_id: str
    entry: Optional[ActivatedScheduleEntry] = None
    delta: int = 0
    identity: Optional[TripIdentity] = None

    @property
    def has_result(self) -> bool:
        return self.entry is not None

    @property
    def trip_id(self) -> str:
        """Bound schedule trip id, or the report's (normalized) trip id."""
        if self.entry is not None:
            return self.entry.trip_id
        return self.report.trip_id

    @property
    def rank_key(self) -> tuple[int, int]:
        """Sort key; larger is better."""
        if self.status == MatchStatus.LOOSE_MATCH_COERCION:
            return (int(self.status), -abs(self.delta))
        return (int(self.status), 0)

    def demoted(self) -> MatchResult:
        """Copy downgraded to an unbound ``NO_MATCH``."""
        return replace(self, status=MatchStatus.NO_MATCH, entry=None, delta=0)

    def merged(self) -> MatchResult:
        """Copy marked as absorbed into another report."""
        return replace(self, status=MatchStatus.MERGED)

    def with_report(self, report: TripReport) -> MatchResult:
        return replace(self, report=report)

    def stops_match_to_end(self) -> bool:
        """True if the report's stops align with the tail of the entry's stops.

        Both sequences are walked backwards from their last element; every
        pair must be equal and the report may not be longer than the entry.
        """
        if self.entry is None:
            return False

        scheduled = self.entry.stop_ids()
        reported = [stu.stop_id for stu in self.report.stop_time_updates]
        if len(reported) > len(scheduled):
            return False

        return all(
            rt_stop == sched_stop
            for rt_stop, sched_stop in zip(reversed(reported), reversed(scheduled))
        )

    @classmethod
    def unbound(
        cls,
        status: MatchStatus,
        report: TripReport,
        rt_trip_id: str,
        identity: Optional[TripIdentity] = None,
    ) -> MatchResult:
        return cls(status=status, report=report, rt_trip_id=rt_trip_id, identity=identity)
