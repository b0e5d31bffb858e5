"""Match classification taxonomy."""

from __future__ import annotations

from enum import IntEnum


class MatchStatus(IntEnum):
    """Outcome of matching a report, ordered worst to best.

    The integer value is the ranking used when several reports compete for the
    same schedule entry.
    """

    BAD_TRIP_ID = 0
    NO_TRIP_WITH_START_DATE = 1
    NO_MATCH = 2
    MERGED = 3
    LOOSE_MATCH_ON_OTHER_SERVICE_DATE = 4
    LOOSE_MATCH_COERCION = 5
    LOOSE_MATCH = 6
    STRICT_MATCH = 7
    MULTI_MATCH = 8

    @property
    def is_match(self) -> bool:
        return is_match(self)


def is_match(status: MatchStatus) -> bool:
    """True for statuses that bind a report to a schedule entry.

    ``MERGED`` is not a match: it marks a report absorbed into another one.
    """
    return status >= MatchStatus.LOOSE_MATCH_ON_OTHER_SERVICE_DATE
