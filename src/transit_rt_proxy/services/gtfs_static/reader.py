"""GTFS ZIP reader - opens the archive and checks the files the schedule needs."""

from __future__ import annotations

import io
import zipfile

from transit_rt_proxy.logging import get_logger

logger = get_logger(__name__)

# Files needed to build the in-memory schedule
REQUIRED_FILES = {"stops.txt", "routes.txt", "trips.txt", "stop_times.txt"}

# At least one of these defines service days; both are optional in GTFS
CALENDAR_FILES = {"calendar.txt", "calendar_dates.txt"}


class MissingRequiredFileError(Exception):
    """Raised when a required GTFS file is missing from the ZIP."""


class GtfsZipReader:
    """Opens and validates a GTFS ZIP archive."""

    def __init__(self, data: bytes) -> None:
        """Open a GTFS archive held in memory.

        Raises:
            zipfile.BadZipFile: If data is not a valid ZIP.
            MissingRequiredFileError: If required files are missing.
        """
        self._zip = zipfile.ZipFile(io.BytesIO(data))
        self._names = set(self._zip.namelist())
        self._validate_required_files()

    def _validate_required_files(self) -> None:
        missing = REQUIRED_FILES - self._names
        if missing:
            msg = f"Missing required GTFS files: {sorted(missing)}"
            raise MissingRequiredFileError(msg)

        calendars = CALENDAR_FILES & self._names
        if not calendars:
            logger.warning("GTFS ZIP has no calendar files, no service days defined")
        logger.info(
            "GTFS ZIP validated",
            calendar_files=sorted(calendars),
            total_files=len(self._names),
        )

    def has_file(self, filename: str) -> bool:
        return filename in self._names

    def open_file(self, filename: str) -> io.TextIOWrapper:
        """Open a file from the archive for text reading (BOM tolerant)."""
        return io.TextIOWrapper(self._zip.open(filename), encoding="utf-8-sig")

    def list_files(self) -> list[str]:
        return self._zip.namelist()

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> GtfsZipReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
