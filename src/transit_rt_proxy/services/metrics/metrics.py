"""Match counters aggregated per route, per feed and across feeds."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from transit_rt_proxy.models.status import MatchStatus

if TYPE_CHECKING:
    from transit_rt_proxy.models.match_result import MatchResult

# Statuses counted as additions (unbound reports published as ADDED)
_ADDED_STATUSES = frozenset(
    {MatchStatus.BAD_TRIP_ID, MatchStatus.NO_TRIP_WITH_START_DATE, MatchStatus.NO_MATCH}
)


@dataclass
class MatchMetrics:
    """Mutable counters for one reporting scope.

    ``latency`` is -1 until :meth:`report_latency` is called.
    """

    records_in: int = 0
    expired: int = 0
    matched: int = 0
    added: int = 0
    canceled: int = 0
    merged: int = 0
    duplicates: int = 0
    bad_id: int = 0
    multi_matched: int = 0
    latency: int = -1
    status_counts: Dict[str, int] = field(default_factory=dict)
    _trip_ids: Set[str] = field(default_factory=set, repr=False)

    def add(self, result: MatchResult) -> None:
        """Count a final match result; repeated bound trip ids are duplicates."""
        if result.entry is not None:
            if result.entry.trip_id in self._trip_ids:
                self.duplicates += 1
            self._trip_ids.add(result.entry.trip_id)
        self.add_status(result.status)

    def add_status(self, status: MatchStatus) -> None:
        self.status_counts[status.name] = self.status_counts.get(status.name, 0) + 1

        if status in _ADDED_STATUSES:
            self.added += 1
            if status == MatchStatus.BAD_TRIP_ID:
                self.bad_id += 1
        elif status == MatchStatus.MERGED:
            self.matched += 1
            self.merged += 1
        else:
            self.matched += 1
            if status == MatchStatus.MULTI_MATCH:
                self.multi_matched += 1

    def add_canceled(self, count: int = 1) -> None:
        self.canceled += count

    def report_records_in(self, count: int, expired: int = 0) -> None:
        self.records_in += count
        self.expired += expired

    def report_latency(self, timestamp: int, now: Optional[float] = None) -> int:
        """Record ``now - timestamp`` in whole seconds and return it."""
        current = time.time() if now is None else now
        self.latency = int(current) - timestamp
        return self.latency

    @property
    def records_out(self) -> int:
        return self.matched + self.added + self.canceled

    def status_pct(self, status: MatchStatus) -> float:
        """Share of reports (matched + added) with ``status``, as a percentage."""
        total = self.matched + self.added
        if total == 0:
            return 0.0
        return round(100.0 * self.status_counts.get(status.name, 0) / total, 2)

    def to_dict(self, verbose: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "records_in": self.records_in,
            "expired": self.expired,
            "matched": self.matched,
            "added": self.added,
            "canceled": self.canceled,
            "merged": self.merged,
            "records_out": self.records_out,
        }
        if self.latency >= 0:
            data["latency_sec"] = self.latency
        if verbose:
            data.update(
                duplicates=self.duplicates,
                bad_id=self.bad_id,
                multi_matched=self.multi_matched,
                statuses=dict(self.status_counts),
                strict_match_pct=self.status_pct(MatchStatus.STRICT_MATCH),
                coercion_pct=self.status_pct(MatchStatus.LOOSE_MATCH_COERCION),
            )
        return data
