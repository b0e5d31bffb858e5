"""Report-to-schedule trip matching."""

from transit_rt_proxy.services.matching.matcher import ActivatedTripMatcher, TripMatcher

__all__ = ["ActivatedTripMatcher", "TripMatcher"]
