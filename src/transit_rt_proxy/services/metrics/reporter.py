"""Metrics reporting boundary: aggregates feed results and hands them to a sink."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

from transit_rt_proxy.logging import get_logger
from transit_rt_proxy.services.metrics.metrics import MatchMetrics

if TYPE_CHECKING:
    from transit_rt_proxy.services.reconciliation.pipeline import FeedResult

logger = get_logger(__name__)


class MetricsSink(Protocol):
    """Destination for aggregated match metrics."""

    def report_route(self, route_id: str, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        ...

    def report_feed(self, feed_id: str, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        ...

    def report_total(self, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        ...


class LoggingMetricsSink:
    """Sink that writes metrics as structured log lines."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def report_route(self, route_id: str, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        logger.info(
            "Route metrics",
            route_id=route_id,
            namespace=namespace,
            **metrics.to_dict(verbose=self.verbose),
        )

    def report_feed(self, feed_id: str, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        logger.info(
            "Feed metrics",
            feed_id=feed_id,
            namespace=namespace,
            **metrics.to_dict(verbose=self.verbose),
        )

    def report_total(self, metrics: MatchMetrics, namespace: Optional[str]) -> None:
        logger.info("Total metrics", namespace=namespace, **metrics.to_dict(verbose=self.verbose))


class MetricsReporter:
    """Builds route/feed metrics from a :class:`FeedResult` and publishes them.

    Sink failures are logged and never propagate to the caller.
    """

    def __init__(self, sink: MetricsSink, namespace: Optional[str] = None) -> None:
        self.sink = sink
        self.namespace = namespace

    def report_feed_result(
        self,
        result: FeedResult,
        total: Optional[MatchMetrics] = None,
    ) -> MatchMetrics:
        """Publish route and feed metrics; fold them into ``total`` when given.

        Returns:
            The feed-level metrics.
        """
        feed_metrics = MatchMetrics()
        scopes = [feed_metrics] if total is None else [feed_metrics, total]
        for metrics in scopes:
            metrics.report_records_in(result.records_in, result.expired)
        if result.latency is not None:
            feed_metrics.latency = result.latency

        for route in result.routes:
            route_metrics = MatchMetrics()
            route_metrics.report_records_in(route.records_in)
            for match in route.results:
                for metrics in (route_metrics, *scopes):
                    metrics.add(match)
            for metrics in (route_metrics, *scopes):
                metrics.add_canceled(len(route.canceled_trip_ids))
            self._send("route", self.sink.report_route, route.route_id, route_metrics)

        self._send("feed", self.sink.report_feed, result.feed_id, feed_metrics)
        return feed_metrics

    def report_total(self, total: MatchMetrics) -> None:
        try:
            self.sink.report_total(total, self.namespace)
        except Exception as exc:
            logger.error("Metrics sink failed", scope="total", error=str(exc))

    def _send(
        self,
        scope: str,
        send: Callable[[str, MatchMetrics, Optional[str]], None],
        key: str,
        metrics: MatchMetrics,
    ) -> None:
        try:
            send(key, metrics, self.namespace)
        except Exception as exc:
            logger.error("Metrics sink failed", scope=scope, key=key, error=str(exc))
