"""
Buildkite metrics module.

Turns builds into running/scheduled counts, flattens the counts into data
points and hands them to a metrics sink in bounded chunks.
"""

from .aggregator import ActiveSince, Aggregator, Counts, IncludeAll, Result, aggregate
from .extractor import (
    MAX_METRICS_PER_REQUEST,
    DataPoint,
    chunk_metric_data,
    extract_metric_data,
)
from .sink import CloudWatchSink, MetricsSink, RecordingSink

__all__ = [
    "ActiveSince",
    "Aggregator",
    "Counts",
    "IncludeAll",
    "Result",
    "aggregate",
    "MAX_METRICS_PER_REQUEST",
    "DataPoint",
    "chunk_metric_data",
    "extract_metric_data",
    "CloudWatchSink",
    "MetricsSink",
    "RecordingSink",
]
