"""GTFS-RT normalizer: protobuf FeedMessage to immutable feed records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.realtime import (
    FeedSnapshot,
    ReplacementPeriod,
    ScheduleRelationship,
    StopTimeEvent,
    StopTimeUpdate,
    TripReport,
)
from transit_rt_proxy.services.gtfs_rt import extensions
from transit_rt_proxy.services.gtfs_rt.decoder import GtfsRtDecoder

if TYPE_CHECKING:
    from google.transit import gtfs_realtime_pb2  # type: ignore[import-untyped]

logger = get_logger(__name__)

# TripDescriptor.ScheduleRelationship values we keep; others read as SCHEDULED
SCHEDULE_RELATIONSHIP = {
    0: ScheduleRelationship.SCHEDULED,
    1: ScheduleRelationship.ADDED,
    3: ScheduleRelationship.CANCELED,
}


def _event(stu: Any, name: str) -> Optional[StopTimeEvent]:
    if not stu.HasField(name):
        return None
    event = getattr(stu, name)
    return StopTimeEvent(
        time=event.time if event.HasField("time") else None,
        delay=event.delay if event.HasField("delay") else None,
    )


class GtfsRtNormalizer:
    """Converts decoded GTFS-RT messages into :class:`FeedSnapshot` records."""

    @staticmethod
    def normalize_stop_time_update(stu: Any) -> StopTimeUpdate:
        headsign = None
        if stu.HasExtension(extensions.stop_time_update_headsign):
            headsign = stu.Extensions[extensions.stop_time_update_headsign].stop_headsign or None
        return StopTimeUpdate(
            stop_id=stu.stop_id,
            arrival=_event(stu, "arrival"),
            departure=_event(stu, "departure"),
            stop_sequence=stu.stop_sequence if stu.HasField("stop_sequence") else None,
            stop_headsign=headsign,
        )

    @staticmethod
    def normalize_trip_update(entity: Any) -> TripReport:
        """Normalize one trip update entity (train id read from the subway extension)."""
        tu = entity.trip_update
        trip = tu.trip

        train_id = None
        if trip.HasExtension(extensions.nyct_trip_descriptor):
            train_id = trip.Extensions[extensions.nyct_trip_descriptor].train_id or None

        trip_headsign = None
        if tu.HasExtension(extensions.trip_update_headsign):
            trip_headsign = tu.Extensions[extensions.trip_update_headsign].trip_headsign or None

        return TripReport(
            trip_id=trip.trip_id,
            route_id=trip.route_id,
            start_date=trip.start_date,
            schedule_relationship=SCHEDULE_RELATIONSHIP.get(
                trip.schedule_relationship, ScheduleRelationship.SCHEDULED
            ),
            train_id=train_id,
            stop_time_updates=tuple(
                GtfsRtNormalizer.normalize_stop_time_update(stu) for stu in tu.stop_time_update
            ),
            timestamp=tu.timestamp if tu.HasField("timestamp") else None,
            trip_headsign=trip_headsign,
            entity_id=entity.id or None,
        )

    @staticmethod
    def to_snapshot(feed: gtfs_realtime_pb2.FeedMessage, feed_id: str) -> FeedSnapshot:
        """Convert a decoded message into a :class:`FeedSnapshot`.

        Entities without a trip update (vehicle positions, alerts) are skipped.
        """
        periods = []
        for period in GtfsRtDecoder.replacement_periods(feed):
            window = period.replacement_period
            periods.append(
                ReplacementPeriod(
                    route_id=period.route_id,
                    start=window.start if window.HasField("start") else None,
                    end=window.end if window.HasField("end") else None,
                )
            )

        reports = [
            GtfsRtNormalizer.normalize_trip_update(entity)
            for entity in feed.entity
            if entity.HasField("trip_update")
        ]
        skipped = len(feed.entity) - len(reports)
        if skipped:
            logger.debug("Skipped non trip update entities", feed_id=feed_id, count=skipped)

        return FeedSnapshot(
            feed_id=feed_id,
            timestamp=GtfsRtDecoder.get_feed_timestamp(feed),
            replacement_periods=tuple(periods),
            trip_reports=tuple(reports),
        )
