"""Domain records for Transit RT Proxy."""

from transit_rt_proxy.models.match_result import MatchResult
from transit_rt_proxy.models.realtime import (
    FeedSnapshot,
    ReplacementPeriod,
    ScheduleRelationship,
    StopTimeEvent,
    StopTimeUpdate,
    TripReport,
)
from transit_rt_proxy.models.schedule import (
    ActivatedScheduleEntry,
    ScheduledStopTime,
    ScheduledTrip,
    Stop,
)
from transit_rt_proxy.models.status import MatchStatus, is_match
from transit_rt_proxy.models.trip_identity import TripIdentity

__all__ = [
    "ActivatedScheduleEntry",
    "FeedSnapshot",
    "MatchResult",
    "MatchStatus",
    "ReplacementPeriod",
    "ScheduleRelationship",
    "ScheduledStopTime",
    "ScheduledTrip",
    "Stop",
    "StopTimeEvent",
    "StopTimeUpdate",
    "TripIdentity",
    "TripReport",
    "is_match",
]
