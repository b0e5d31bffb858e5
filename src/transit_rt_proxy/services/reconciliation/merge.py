"""Relief-point merge of reports split by a mid-route crew change.

Some routes publish two reports for one logical trip when the crew changes
mid-route. The train id of each leg ends with its relief chain (``D45/D46``
then ``D46/D47``); when the earlier leg's second relief point is the later
leg's first one, and the legs meet at the same stop, they are joined.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional, Tuple

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.models.status import MatchStatus

if TYPE_CHECKING:
    from transit_rt_proxy.models.match_result import MatchResult

logger = get_logger(__name__)


def merge_ordered(
    earlier: MatchResult,
    later: MatchResult,
) -> Optional[Tuple[MatchResult, MatchResult]]:
    """Join ``later`` onto ``earlier``.

    Returns:
        ``(combined, merged)`` where ``combined`` carries the joined stop
        updates and ``merged`` is ``later`` marked ``MERGED``; None when the
        legs do not share a relief point or a junction stop.
    """
    if earlier.identity is None or later.identity is None:
        return None

    relief_point = earlier.identity.relief_point(1)
    if relief_point is None or relief_point != later.identity.relief_point(0):
        return None

    head = earlier.report.stop_time_updates
    tail = later.report.stop_time_updates
    if not head or not tail or head[-1].stop_id != tail[0].stop_id:
        return None

    junction = replace(head[-1], departure=tail[0].departure)
    combined_report = replace(earlier.report, stop_time_updates=(*head[:-1], junction, *tail[1:]))

    logger.debug(
        "Merged relief legs",
        trip_id=earlier.trip_id,
        earlier=earlier.rt_trip_id,
        later=later.rt_trip_id,
        relief_point=relief_point,
    )
    return earlier.with_report(combined_report), later.merged()


def try_merge(bucket: List[MatchResult]) -> bool:
    """Merge a two-result bucket in place.

    The earlier leg is the one with the smaller parsed origin; with equal
    origins both orientations are tried. A bucket already holding a
    ``MERGED`` result is left alone.

    Returns:
        True if the bucket was merged.
    """
    if len(bucket) != 2 or any(result.status == MatchStatus.MERGED for result in bucket):
        return False

    first, second = bucket
    if first.identity is None or second.identity is None:
        return False

    first_origin = first.identity.origin_hundredths
    second_origin = second.identity.origin_hundredths
    if first_origin < second_origin:
        orientations = [(0, 1)]
    elif first_origin > second_origin:
        orientations = [(1, 0)]
    else:
        orientations = [(0, 1), (1, 0)]

    for earlier_index, later_index in orientations:
        merged = merge_ordered(bucket[earlier_index], bucket[later_index])
        if merged is not None:
            bucket[earlier_index], bucket[later_index] = merged
            return True
    return False
