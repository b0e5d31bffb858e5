"""GTFS-RT protobuf decode layer."""

from __future__ import annotations

from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.services.gtfs_rt import extensions

logger = get_logger(__name__)


class FeedDecodeError(Exception):
    """Raised when protobuf decoding fails."""


class GtfsRtDecoder:
    """Decodes raw protobuf bytes into GTFS-RT FeedMessage objects."""

    @staticmethod
    def decode(data: bytes, feed_id: str, poll_id: str = "") -> gtfs_realtime_pb2.FeedMessage:
        """Decode protobuf bytes into a FeedMessage (subway extensions included).

        Args:
            data: Raw protobuf bytes.
            feed_id: Feed label for logging.
            poll_id: Correlation ID.

        Raises:
            FeedDecodeError: If protobuf parsing fails.
        """
        try:
            feed = gtfs_realtime_pb2.FeedMessage()
            feed.ParseFromString(data)
        except DecodeError as exc:
            msg = f"Failed to decode feed {feed_id}"
            logger.error(msg, feed_id=feed_id, poll_id=poll_id, error=str(exc))
            raise FeedDecodeError(msg) from exc

        logger.info(
            "GTFS-RT feed decoded",
            feed_id=feed_id,
            poll_id=poll_id,
            entity_count=len(feed.entity),
            feed_timestamp=GtfsRtDecoder.get_feed_timestamp(feed),
            replacement_periods=len(GtfsRtDecoder.replacement_periods(feed)),
        )
        return feed

    @staticmethod
    def get_feed_timestamp(feed: gtfs_realtime_pb2.FeedMessage) -> int:
        """Header timestamp in seconds, or 0 if not set."""
        return feed.header.timestamp if feed.header.timestamp else 0

    @staticmethod
    def replacement_periods(feed: gtfs_realtime_pb2.FeedMessage) -> list:
        """Trip replacement periods from the subway header extension (may be empty)."""
        if not feed.header.HasExtension(extensions.nyct_feed_header):
            return []
        return list(feed.header.Extensions[extensions.nyct_feed_header].trip_replacement_period)
