"""GTFS-Realtime codec and polling worker."""

from transit_rt_proxy.services.gtfs_rt.decoder import FeedDecodeError, GtfsRtDecoder
from transit_rt_proxy.services.gtfs_rt.encoder import GtfsRtEncoder
from transit_rt_proxy.services.gtfs_rt.fetcher import FeedFetchError, GtfsRtFetcher
from transit_rt_proxy.services.gtfs_rt.normalizer import GtfsRtNormalizer
from transit_rt_proxy.services.gtfs_rt.worker import ProxyWorker

__all__ = [
    "FeedDecodeError",
    "FeedFetchError",
    "GtfsRtDecoder",
    "GtfsRtEncoder",
    "GtfsRtFetcher",
    "GtfsRtNormalizer",
    "ProxyWorker",
]
