"""Match metrics aggregation and reporting."""

from transit_rt_proxy.services.metrics.metrics import MatchMetrics
from transit_rt_proxy.services.metrics.reporter import (
    LoggingMetricsSink,
    MetricsReporter,
    MetricsSink,
)

__all__ = [
    "LoggingMetricsSink",
    "MatchMetrics",
    "MetricsReporter",
    "MetricsSink",
]
