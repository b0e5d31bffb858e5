"""Tests for GtfsNormalizer and time/date parsing."""

from __future__ import annotations

from datetime import date

import pytest

from transit_rt_proxy.models.schedule import Stop
from transit_rt_proxy.services.gtfs_static.normalizer import (
    GtfsNormalizer,
    NormalizationError,
    TimeParseError,
    parse_gtfs_date,
    parse_gtfs_time,
)


class TestParseGtfsTime:
    """Tests for GTFS time string parsing (supports >24h)."""

    def test_normal_time(self) -> None:
        assert parse_gtfs_time("08:30:00") == 30600

    def test_midnight(self) -> None:
        assert parse_gtfs_time("00:00:00") == 0

    def test_past_midnight_25h(self) -> None:
        assert parse_gtfs_time("25:01:30") == 90090

    def test_whitespace_stripped(self) -> None:
        assert parse_gtfs_time("  08:30:00  ") == 30600

    def test_invalid_format_too_few_parts(self) -> None:
        with pytest.raises(TimeParseError, match="Invalid GTFS time format"):
            parse_gtfs_time("08:30")

    def test_invalid_non_numeric(self) -> None:
        with pytest.raises(TimeParseError, match="Non-numeric"):
            parse_gtfs_time("ab:cd:ef")

    def test_invalid_minutes_over_59(self) -> None:
        with pytest.raises(TimeParseError, match="Out of range"):
            parse_gtfs_time("08:60:00")

    def test_negative_hours(self) -> None:
        with pytest.raises(TimeParseError, match="Out of range"):
            parse_gtfs_time("-1:00:00")


class TestParseGtfsDate:
    def test_valid_date(self) -> None:
        assert parse_gtfs_date("20240313") == date(2024, 3, 13)

    def test_invalid_date_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Invalid GTFS date"):
            parse_gtfs_date("20241332")


class TestNormalizeStop:
    """Tests for stop normalization."""

    def test_platform_with_parent(self) -> None:
        row = {"stop_id": " 101N ", "stop_name": " Van Cortlandt Park-242 St ", "parent_station": "101"}
        assert GtfsNormalizer.normalize_stop(row) == Stop(
            stop_id="101N", name="Van Cortlandt Park-242 St", parent_station="101"
        )

    def test_station_has_no_parent(self) -> None:
        row = {"stop_id": "101", "stop_name": "Van Cortlandt Park-242 St", "parent_station": ""}
        assert GtfsNormalizer.normalize_stop(row).parent_station is None

    def test_missing_stop_id_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Missing stop_id"):
            GtfsNormalizer.normalize_stop({"stop_id": "", "stop_name": "Test"})

    def test_missing_name_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Missing stop_name"):
            GtfsNormalizer.normalize_stop({"stop_id": "101", "stop_name": ""})


class TestNormalizeRoute:
    def test_valid_route(self) -> None:
        assert GtfsNormalizer.normalize_route({"route_id": " GS "}) == "GS"

    def test_missing_route_id_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Missing route_id"):
            GtfsNormalizer.normalize_route({"route_id": ""})


class TestNormalizeTrip:
    """Tests for trip normalization."""

    def test_valid_trip(self) -> None:
        row = {
            "trip_id": "A20240101WKD_036000_1..S03R",
            "route_id": "1",
            "service_id": "WKD",
            "direction_id": "1",
            "trip_headsign": "South Ferry",
        }
        trip = GtfsNormalizer.normalize_trip(row)
        assert trip.trip_id == "A20240101WKD_036000_1..S03R"
        assert trip.direction_id == 1
        assert trip.headsign == "South Ferry"

    def test_direction_id_is_optional(self) -> None:
        row = {"trip_id": "t1", "route_id": "1", "service_id": "WKD", "direction_id": ""}
        assert GtfsNormalizer.normalize_trip(row).direction_id is None

    def test_invalid_direction_id_dropped(self) -> None:
        row = {"trip_id": "t1", "route_id": "1", "service_id": "WKD", "direction_id": "5"}
        assert GtfsNormalizer.normalize_trip(row).direction_id is None

    def test_missing_trip_id_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Missing trip_id"):
            GtfsNormalizer.normalize_trip({"trip_id": "", "route_id": "1", "service_id": "WKD"})

    def test_missing_service_id_raises(self) -> None:
        with pytest.raises(NormalizationError, match="Missing service_id"):
            GtfsNormalizer.normalize_trip({"trip_id": "t1", "route_id": "1", "service_id": ""})


class TestNormalizeStopTime:
    """Tests for stop_time normalization."""

    def test_valid_stop_time(self) -> None:
        row = {
            "trip_id": "t1",
            "stop_id": "101S",
            "stop_sequence": "1",
            "arrival_time": "06:00:00",
            "departure_time": "06:00:30",
        }
        stop_time = GtfsNormalizer.normalize_stop_time(row)
        assert stop_time.stop_sequence == 1
        assert stop_time.arrival_time == 21600
        assert stop_time.departure_time == 21630

    def test_blank_departure_falls_back_to_arrival(self) -> None:
        row = {
            "trip_id": "t1",
            "stop_id": "101S",
            "stop_sequence": "1",
            "arrival_time": "25:01:30",
            "departure_time": "",
        }
        stop_time = GtfsNormalizer.normalize_stop_time(row)
        assert stop_time.departure_time == stop_time.arrival_time == 90090

    def test_blank_arrival_falls_back_to_departure(self) -> None:
        row = {
            "trip_id": "t1",
            "stop_id": "101S",
            "stop_sequence": "1",
            "arrival_time": "",
            "departure_time": "06:00:00",
        }
        assert GtfsNormalizer.normalize_stop_time(row).arrival_time == 21600

    def test_missing_both_times_raises(self) -> None:
        row = {"trip_id": "t1", "stop_id": "101S", "stop_sequence": "1"}
        with pytest.raises(NormalizationError, match="Missing arrival/departure"):
            GtfsNormalizer.normalize_stop_time(row)

    def test_invalid_sequence_raises(self) -> None:
        row = {
            "trip_id": "t1",
            "stop_id": "101S",
            "stop_sequence": "abc",
            "arrival_time": "06:30:00",
        }
        with pytest.raises(NormalizationError, match="Invalid stop_sequence"):
            GtfsNormalizer.normalize_stop_time(row)


class TestNormalizeCalendar:
    def test_weekday_rule(self) -> None:
        row = {
            "service_id": "WKD",
            "monday": "1",
            "tuesday": "1",
            "wednesday": "1",
            "thursday": "1",
            "friday": "1",
            "saturday": "0",
            "sunday": "0",
            "start_date": "20240101",
            "end_date": "20241231",
        }
        rule = GtfsNormalizer.normalize_calendar(row)
        assert rule.weekdays == (True, True, True, True, True, False, False)
        assert rule.runs_on(date(2024, 3, 13))
        assert not rule.runs_on(date(2024, 3, 16))
        assert not rule.runs_on(date(2025, 1, 1))

    def test_invalid_flag_raises(self) -> None:
        row = {"service_id": "WKD", "monday": "yes"}
        with pytest.raises(NormalizationError, match="monday"):
            GtfsNormalizer.normalize_calendar(row)

    def test_calendar_date_exception(self) -> None:
        row = {"service_id": "WKD", "date": "20240318", "exception_type": "2"}
        exception = GtfsNormalizer.normalize_calendar_date(row)
        assert exception.service_date == date(2024, 3, 18)
        assert not exception.added

    def test_unknown_exception_type_raises(self) -> None:
        row = {"service_id": "WKD", "date": "20240318", "exception_type": "3"}
        with pytest.raises(NormalizationError, match="exception_type"):
            GtfsNormalizer.normalize_calendar_date(row)
