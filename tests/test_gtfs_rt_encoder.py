"""Tests for the GTFS-RT encoder used to publish corrected feeds."""

from google.transit import gtfs_realtime_pb2

from transit_rt_proxy.models.realtime import (
    ReplacementPeriod,
    ScheduleRelationship,
    StopTimeEvent,
    StopTimeUpdate,
    TripReport,
)
from transit_rt_proxy.services.gtfs_rt import extensions
from transit_rt_proxy.services.gtfs_rt.decoder import GtfsRtDecoder
from transit_rt_proxy.services.gtfs_rt.encoder import GtfsRtEncoder
from transit_rt_proxy.services.gtfs_rt.normalizer import GtfsRtNormalizer

from .fixtures.gtfs_rt_fixture import trip_report

TS = 1710324060


class TestGtfsRtEncoder:
    """Unit tests for GtfsRtEncoder."""

    def test_header(self) -> None:
        feed = GtfsRtEncoder.build([], TS)
        assert feed.header.gtfs_realtime_version == "1.0"
        assert feed.header.incrementality == gtfs_realtime_pb2.FeedHeader.FULL_DATASET
        assert feed.header.timestamp == TS
        assert not feed.header.HasExtension(extensions.nyct_feed_header)

    def test_entity_ids(self) -> None:
        reports = [
            trip_report("036000_1..S03R", [("101S", TS)]),
            TripReport(trip_id="036600_1..N03R", entity_id="000042"),
        ]
        feed = GtfsRtEncoder.build(reports, TS)
        assert [entity.id for entity in feed.entity] == ["1", "000042"]

    def test_added_trip_with_headsigns(self) -> None:
        report = TripReport(
            trip_id="036200_1..S03R",
            route_id="1",
            start_date="20240313",
            schedule_relationship=ScheduleRelationship.ADDED,
            train_id="01 0602 242/SFY",
            trip_headsign="South Ferry",
            stop_time_updates=(
                StopTimeUpdate(
                    "101S",
                    departure=StopTimeEvent(time=TS + 60, delay=120),
                    stop_headsign="Downtown",
                ),
            ),
        )

        tu = GtfsRtEncoder.build([report], TS).entity[0].trip_update

        assert tu.trip.schedule_relationship == gtfs_realtime_pb2.TripDescriptor.ADDED
        assert tu.trip.Extensions[extensions.nyct_trip_descriptor].train_id == "01 0602 242/SFY"
        assert tu.Extensions[extensions.trip_update_headsign].trip_headsign == "South Ferry"
        stu = tu.stop_time_update[0]
        assert not stu.HasField("arrival")
        assert stu.departure.time == TS + 60
        assert stu.departure.delay == 120
        assert stu.Extensions[extensions.stop_time_update_headsign].stop_headsign == "Downtown"

    def test_cancellation_has_no_stops_or_timestamp(self) -> None:
        report = TripReport(
            trip_id="A20240101WKD_037200_1..S03R",
            route_id="1",
            start_date="20240313",
            schedule_relationship=ScheduleRelationship.CANCELED,
        )
        tu = GtfsRtEncoder.build([report], TS).entity[0].trip_update

        assert tu.trip.schedule_relationship == gtfs_realtime_pb2.TripDescriptor.CANCELED
        assert len(tu.stop_time_update) == 0
        assert not tu.HasField("timestamp")
        assert not tu.trip.HasExtension(extensions.nyct_trip_descriptor)

    def test_encoded_feed_reads_back(self) -> None:
        reports = [
            TripReport(
                trip_id="A20240101WKD_036000_1..S03R",
                route_id="1",
                start_date="20240313",
                train_id="01 0600 242/SFY",
                trip_headsign="South Ferry",
                timestamp=TS - 10,
                stop_time_updates=(
                    StopTimeUpdate("102S", arrival=StopTimeEvent(TS + 60), stop_sequence=2),
                ),
            ),
        ]
        periods = [ReplacementPeriod("1", end=TS + 1800)]

        data = GtfsRtEncoder.encode(reports, TS, periods)
        snapshot = GtfsRtNormalizer.to_snapshot(GtfsRtDecoder.decode(data, "1"), "1")

        assert snapshot.timestamp == TS
        assert snapshot.replacement_periods == tuple(periods)
        assert snapshot.trip_reports == (
            TripReport(
                trip_id="A20240101WKD_036000_1..S03R",
                route_id="1",
                start_date="20240313",
                train_id="01 0600 242/SFY",
                trip_headsign="South Ferry",
                timestamp=TS - 10,
                stop_time_updates=(
                    StopTimeUpdate("102S", arrival=StopTimeEvent(TS + 60), stop_sequence=2),
                ),
                entity_id="1",
            ),
        )
