"""Structured trip identifiers shared by schedule and real-time trips.

Real-time trip ids look like ``036000_6..N03R``:

* ``036000`` - origin departure time in hundredths of a minute after
  service-day midnight (may be negative, or past 24h),
* ``6`` - route,
* ``N`` - direction (``N`` or ``S``),
* ``03R`` - optional path marker.

Schedule trip ids usually carry a service prefix
(``A20171105WKD_036000_6..N03R``); the prefix is ignored.

The train id extension field ends with a relief chain such as ``D45/D46``
when the train changes crews mid-route.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, AbstractSet, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from transit_rt_proxy.models.schedule import ScheduledStopTime, ScheduledTrip

DIRECTIONS = ("N", "S")

_TRIP_ID_PATTERN = re.compile(
    r"^(?:[A-Za-z0-9]+_)?(-?\d+)_([A-Za-z0-9]+)\.+([NS])([A-Za-z0-9]*)$"
)

# GTFS direction_id fallback when the first stop carries no direction suffix
_DIRECTION_BY_ID = {0: "N", 1: "S"}


def flip_direction(direction: str) -> str:
    """Return the opposite direction code."""
    return "S" if direction == "N" else "N"


def hundredths_to_seconds(hundredths: int) -> int:
    """Convert hundredths of a minute to seconds (truncating toward zero)."""
    return int(hundredths * 60 / 100)


def seconds_to_hundredths(seconds: int) -> int:
    """Convert seconds to hundredths of a minute (truncating toward zero)."""
    return int(seconds * 100 / 60)


def parse_relief_path(train_id: Optional[str]) -> Optional[Tuple[str, ...]]:
    """Split the relief chain (last token of the train id) on ``/``.

    Returns None when the train id is missing or blank.
    """
    if not train_id or not train_id.strip():
        return None
    return tuple(train_id.split()[-1].split("/"))


@dataclass(frozen=True)
class TripIdentity:
    """Canonical identity of a trip: route, direction, origin time, markers.

    The origin is kept in hundredths of a minute so the canonical string
    reproduces the parsed token exactly.
    """

    route_id: str
    direction: str
    origin_hundredths: int
    path_id: Optional[str] = None
    relief_path: Optional[Tuple[str, ...]] = None

    def __str__(self) -> str:
        origin = format(self.origin_hundredths, "06d")
        return f"{origin}_{self.route_id}..{self.direction}{self.path_id or ''}"

    @property
    def origin_departure_time(self) -> int:
        """Origin in whole seconds after service-day midnight."""
        return hundredths_to_seconds(self.origin_hundredths)

    @property
    def key(self) -> tuple[str, str, int]:
        """(route, direction, origin) triple used for candidate lookup."""
        return (self.route_id, self.direction, self.origin_hundredths)

    def path_compatible(self, other: TripIdentity) -> bool:
        """Path markers agree, or at least one side has none."""
        if not self.path_id or not other.path_id:
            return True
        return self.path_id == other.path_id

    def relief_point(self, index: int) -> Optional[str]:
        """Relief point at ``index``, or None if the chain is too short."""
        if self.relief_path is None or index >= len(self.relief_path):
            return None
        return self.relief_path[index]

    @classmethod
    def from_schedule(
        cls,
        trip: ScheduledTrip,
        stop_times: Sequence[ScheduledStopTime],
    ) -> Optional[TripIdentity]:
        """Derive the identity of a scheduled trip.

        Args:
            trip: The scheduled trip.
            stop_times: Its stop times ordered by stop sequence.

        Returns:
            The identity, or None when the trip has no stop times.
        """
        if not stop_times:
            return None

        first_stop = stop_times[0].stop_id
        if first_stop[-1:] in DIRECTIONS:
            direction = first_stop[-1]
        else:
            direction = _DIRECTION_BY_ID.get(trip.direction_id, "N")

        match = _TRIP_ID_PATTERN.match(trip.trip_id)
        path_id = match.group(4) or None if match else None

        return cls(
            route_id=trip.route_id,
            direction=direction,
            origin_hundredths=seconds_to_hundredths(stop_times[0].departure_time),
            path_id=path_id,
        )

    @classmethod
    def from_report(
        cls,
        trip_id: str,
        train_id: Optional[str] = None,
        reversed_direction_routes: AbstractSet[str] = frozenset(),
    ) -> Optional[TripIdentity]:
        """Parse the identity of a real-time report.

        Args:
            trip_id: The report's trip id.
            train_id: Raw train id extension field (carries the relief chain).
            reversed_direction_routes: Routes whose feed direction is inverted.

        Returns:
            The identity, or None when ``trip_id`` does not follow the grammar.
        """
        match = _TRIP_ID_PATTERN.match(trip_id.strip()) if trip_id else None
        if match is None:
            return None

        origin_token, route_id, direction, path_id = match.groups()
        if route_id in reversed_direction_routes:
            direction = flip_direction(direction)

        return cls(
            route_id=route_id,
            direction=direction,
            origin_hundredths=int(origin_token),
            path_id=path_id or None,
            relief_path=parse_relief_path(train_id),
        )
