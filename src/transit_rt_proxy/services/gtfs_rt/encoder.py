"""GTFS-RT encoder: corrected trip records back to a serialized FeedMessage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

from google.transit import gtfs_realtime_pb2

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.realtime import ScheduleRelationship
from transit_rt_proxy.services.gtfs_rt import extensions

if TYPE_CHECKING:
    from transit_rt_proxy.models.realtime import ReplacementPeriod, StopTimeEvent, TripReport

logger = get_logger(__name__)

GTFS_REALTIME_VERSION = "1.0"

_TRIP_RELATIONSHIP = {
    ScheduleRelationship.SCHEDULED: gtfs_realtime_pb2.TripDescriptor.SCHEDULED,
    ScheduleRelationship.ADDED: gtfs_realtime_pb2.TripDescriptor.ADDED,
    ScheduleRelationship.CANCELED: gtfs_realtime_pb2.TripDescriptor.CANCELED,
}


def _set_event(target: Any, event: Optional[StopTimeEvent]) -> None:
    if event is None:
        return
    target.SetInParent()
    if event.time is not None:
        target.time = event.time
    if event.delay is not None:
        target.delay = event.delay


class GtfsRtEncoder:
    """Builds full-dataset FeedMessages from trip records."""

    @staticmethod
    def build(
        trip_reports: Iterable[TripReport],
        timestamp: int,
        replacement_periods: Iterable[ReplacementPeriod] = (),
    ) -> gtfs_realtime_pb2.FeedMessage:
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.header.gtfs_realtime_version = GTFS_REALTIME_VERSION
        feed.header.incrementality = gtfs_realtime_pb2.FeedHeader.FULL_DATASET
        feed.header.timestamp = timestamp

        periods = list(replacement_periods)
        if periods:
            nyct_header = feed.header.Extensions[extensions.nyct_feed_header]
            nyct_header.nyct_subway_version = GTFS_REALTIME_VERSION
            for period in periods:
                trp = nyct_header.trip_replacement_period.add(route_id=period.route_id)
                trp.replacement_period.SetInParent()
                if period.start is not None:
                    trp.replacement_period.start = period.start
                if period.end is not None:
                    trp.replacement_period.end = period.end

        for index, report in enumerate(trip_reports):
            entity = feed.entity.add(id=report.entity_id or str(index + 1))
            GtfsRtEncoder._fill_trip_update(entity.trip_update, report)

        return feed

    @staticmethod
    def encode(
        trip_reports: Iterable[TripReport],
        timestamp: int,
        replacement_periods: Iterable[ReplacementPeriod] = (),
    ) -> bytes:
        """Serialize trip records as a GTFS-RT FeedMessage."""
        feed = GtfsRtEncoder.build(trip_reports, timestamp, replacement_periods)
        data = feed.SerializeToString()
        logger.debug("GTFS-RT feed encoded", entity_count=len(feed.entity), size_bytes=len(data))
        return data

    @staticmethod
    def _fill_trip_update(tu: Any, report: TripReport) -> None:
        trip = tu.trip
        trip.trip_id = report.trip_id
        if report.route_id:
            trip.route_id = report.route_id
        if report.start_date:
            trip.start_date = report.start_date
        trip.schedule_relationship = _TRIP_RELATIONSHIP[report.schedule_relationship]
        if report.train_id:
            trip.Extensions[extensions.nyct_trip_descriptor].train_id = report.train_id

        if report.timestamp is not None:
            tu.timestamp = report.timestamp
        if report.trip_headsign:
            tu.Extensions[extensions.trip_update_headsign].trip_headsign = report.trip_headsign

        for update in report.stop_time_updates:
            stu = tu.stop_time_update.add(stop_id=update.stop_id)
            if update.stop_sequence is not None:
                stu.stop_sequence = update.stop_sequence
            _set_event(stu.arrival, update.arrival)
            _set_event(stu.departure, update.departure)
            if update.stop_headsign:
                stu.Extensions[extensions.stop_time_update_headsign].stop_headsign = (
                    update.stop_headsign
                )
