"""Station direction descriptors used for per-stop headsigns."""

from __future__ import annotations

import csv
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from transit_rt_proxy.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, MutableSequence

    from transit_rt_proxy.models.realtime import StopTimeUpdate
    from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule

logger = get_logger(__name__)

STOP_ID_COLUMN = "GTFS Stop ID"
NORTH_COLUMN = "Railroad north descriptor"
SOUTH_COLUMN = "Railroad south descriptor"

# Placeholder used in the station file for a direction with no service
NOT_APPLICABLE = "n/a"


@dataclass(frozen=True)
class DirectionEntry:
    """North/south descriptors of one station."""

    station_id: str
    north_descriptor: str = ""
    south_descriptor: str = ""

    def descriptor(self, direction: str) -> Optional[str]:
        if direction == "N":
            value = self.north_descriptor
        elif direction == "S":
            value = self.south_descriptor
        else:
            return None
        if not value or value == NOT_APPLICABLE:
            return None
        return value


class DirectionsService:
    """Fills stop headsigns from a station directions table."""

    def __init__(self, schedule: StaticSchedule, entries: Iterable[DirectionEntry] = ()) -> None:
        self.schedule = schedule
        self._by_station: Dict[str, DirectionEntry] = {}
        for entry in entries:
            if entry.station_id in self._by_station:
                logger.error("Duplicate station in directions table", station_id=entry.station_id)
            self._by_station[entry.station_id] = entry

    @classmethod
    def from_csv(cls, schedule: StaticSchedule, path: str | Path) -> DirectionsService:
        """Load the directions table; columns other than the three used are ignored."""
        with Path(path).open(newline="", encoding="utf-8-sig") as handle:
            rows = list(csv.DictReader(handle))

        entries = [
            DirectionEntry(
                station_id=(row.get(STOP_ID_COLUMN) or "").strip(),
                north_descriptor=(row.get(NORTH_COLUMN) or "").strip(),
                south_descriptor=(row.get(SOUTH_COLUMN) or "").strip(),
            )
            for row in rows
            if (row.get(STOP_ID_COLUMN) or "").strip()
        ]
        logger.info("Directions table loaded", path=str(path), stations=len(entries))
        return cls(schedule, entries)

    def direction_for(self, station_id: str) -> Optional[DirectionEntry]:
        return self._by_station.get(station_id)

    def fill_stop_headsigns(self, stop_time_updates: MutableSequence[StopTimeUpdate]) -> None:
        """Replace each update in place with one carrying its stop headsign.

        The station is the parent station of the stop; the direction is the
        stop id's last character. Unknown stations and ``n/a`` descriptors
        leave the update unchanged.
        """
        for index, update in enumerate(stop_time_updates):
            station_id = self.schedule.parent_station(update.stop_id)
            entry = self._by_station.get(station_id) if station_id else None
            if entry is None:
                logger.debug("Missing station for stop", stop_id=update.stop_id)
                continue

            headsign = entry.descriptor(update.stop_id[-1:])
            if headsign is not None:
                stop_time_updates[index] = replace(update, stop_headsign=headsign)
