"""GTFS test fixture builder - creates in-memory subway schedule ZIP files for testing."""

from __future__ import annotations

import io
import zipfile
from datetime import date, datetime
from zoneinfo import ZoneInfo

from transit_rt_proxy.services.gtfs_static.loader import load_schedule
from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule

TIMEZONE = "America/New_York"

# Wednesday; weekday service runs, daylight saving time already in effect
SERVICE_DATE = date(2024, 3, 13)
MIDNIGHT = int(datetime(2024, 3, 13, tzinfo=ZoneInfo(TIMEZONE)).timestamp())

# Three-station line: stations 101-103 with N/S platforms
STOPS_TXT = """\
stop_id,stop_name,stop_lat,stop_lon,location_type,parent_station
101,Van Cortlandt Park-242 St,40.889248,-73.898583,1,
101N,Van Cortlandt Park-242 St,40.889248,-73.898583,,101
101S,Van Cortlandt Park-242 St,40.889248,-73.898583,,101
102,238 St,40.884667,-73.90087,1,
102N,238 St,40.884667,-73.90087,,102
102S,238 St,40.884667,-73.90087,,102
103,231 St,40.878856,-73.904834,1,
103N,231 St,40.878856,-73.904834,,103
103S,231 St,40.878856,-73.904834,,103
"""

ROUTES_TXT = """\
agency_id,route_id,route_short_name,route_long_name,route_type
MTA NYCT,1,1,Broadway - 7 Avenue Local,1
MTA NYCT,2,2,7 Avenue Express,1
"""

TRIPS_TXT = """\
route_id,trip_id,service_id,trip_headsign,direction_id,shape_id
1,A20240101WKD_036000_1..S03R,WKD,231 St,1,1..S03R
1,A20240101WKD_037200_1..S03R,WKD,231 St,1,1..S03R
1,A20240101WKD_036600_1..N03R,WKD,Van Cortlandt Park-242 St,0,1..N03R
2,B20240101WKD_048000_2..N,WKD,Van Cortlandt Park-242 St,0,2..N
2,C20240101WKD_048000_2..N,WKD,Van Cortlandt Park-242 St,0,2..N
"""

STOP_TIMES_TXT = """\
trip_id,arrival_time,departure_time,stop_id,stop_sequence
A20240101WKD_036000_1..S03R,06:00:00,06:00:00,101S,1
A20240101WKD_036000_1..S03R,06:02:00,06:02:00,102S,2
A20240101WKD_036000_1..S03R,06:04:00,06:04:00,103S,3
A20240101WKD_037200_1..S03R,06:12:00,06:12:00,101S,1
A20240101WKD_037200_1..S03R,06:14:00,06:14:00,102S,2
A20240101WKD_037200_1..S03R,06:16:00,06:16:00,103S,3
A20240101WKD_036600_1..N03R,06:06:00,06:06:00,103N,1
A20240101WKD_036600_1..N03R,06:08:00,06:08:00,102N,2
A20240101WKD_036600_1..N03R,06:10:00,06:10:00,101N,3
B20240101WKD_048000_2..N,08:00:00,08:00:00,103N,1
B20240101WKD_048000_2..N,08:02:00,08:02:00,102N,2
B20240101WKD_048000_2..N,08:04:00,08:04:00,101N,3
C20240101WKD_048000_2..N,08:00:00,08:00:00,103N,1
C20240101WKD_048000_2..N,08:02:00,08:02:00,102N,2
C20240101WKD_048000_2..N,08:04:00,08:04:00,101N,3
"""

CALENDAR_TXT = """\
service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date
WKD,1,1,1,1,1,0,0,20240101,20241231
"""

# Monday 2024-03-18 removed, Saturday 2024-03-23 added
CALENDAR_DATES_TXT = """\
service_id,date,exception_type
WKD,20240318,2
WKD,20240323,1
"""

DIRECTIONS_CSV = """\
Station ID,GTFS Stop ID,Stop Name,Railroad north descriptor,Railroad south descriptor
1,101,Van Cortlandt Park-242 St,n/a,Manhattan
2,102,238 St,Uptown,Manhattan
3,103,231 St,Uptown,Manhattan
"""


def build_gtfs_zip(
    stops: str = STOPS_TXT,
    routes: str = ROUTES_TXT,
    trips: str = TRIPS_TXT,
    stop_times: str = STOP_TIMES_TXT,
    calendar: str | None = CALENDAR_TXT,
    calendar_dates: str | None = CALENDAR_DATES_TXT,
    extra_files: dict[str, str] | None = None,
    exclude_files: set[str] | None = None,
) -> bytes:
    """Build an in-memory GTFS ZIP file.

    Args:
        stops: Content for stops.txt.
        routes: Content for routes.txt.
        trips: Content for trips.txt.
        stop_times: Content for stop_times.txt.
        calendar: Content for calendar.txt (None to omit).
        calendar_dates: Content for calendar_dates.txt (None to omit).
        extra_files: Additional files to include.
        exclude_files: Files to exclude (e.g. {"stops.txt"}).

    Returns:
        bytes of the ZIP file.
    """
    buf = io.BytesIO()
    exclude = exclude_files or set()

    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        files = {
            "stops.txt": stops,
            "routes.txt": routes,
            "trips.txt": trips,
            "stop_times.txt": stop_times,
        }
        if calendar is not None:
            files["calendar.txt"] = calendar
        if calendar_dates is not None:
            files["calendar_dates.txt"] = calendar_dates
        if extra_files:
            files.update(extra_files)

        for name, content in files.items():
            if name not in exclude:
                zf.writestr(name, content)

    return buf.getvalue()


def build_invalid_zip() -> bytes:
    """Build bytes that are not a valid ZIP."""
    return b"This is not a ZIP file at all."


def build_schedule(**kwargs: str | None) -> StaticSchedule:
    """Load the fixture archive into a :class:`StaticSchedule`."""
    return load_schedule(build_gtfs_zip(**kwargs), timezone=TIMEZONE)


def at(hours: int, minutes: int = 0, seconds: int = 0) -> int:
    """Epoch seconds of a local time on :data:`SERVICE_DATE`."""
    return MIDNIGHT + hours * 3600 + minutes * 60 + seconds
