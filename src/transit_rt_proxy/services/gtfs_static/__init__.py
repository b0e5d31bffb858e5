"""Static GTFS loading and schedule queries."""

from transit_rt_proxy.services.gtfs_static.fetcher import GtfsStaticFetcher
from transit_rt_proxy.services.gtfs_static.loader import (
    LoadReport,
    load_schedule,
    load_schedule_from_source,
)
from transit_rt_proxy.services.gtfs_static.normalizer import GtfsNormalizer
from transit_rt_proxy.services.gtfs_static.parser import GtfsParser
from transit_rt_proxy.services.gtfs_static.reader import GtfsZipReader
from transit_rt_proxy.services.gtfs_static.schedule import StaticSchedule

__all__ = [
    "GtfsNormalizer",
    "GtfsParser",
    "GtfsStaticFetcher",
    "GtfsZipReader",
    "LoadReport",
    "StaticSchedule",
    "load_schedule",
    "load_schedule_from_source",
]
