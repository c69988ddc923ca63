"""
Conversion of aggregated counts into CloudWatch data points.

Generates, under the configured namespace:
    RunningBuildsCount, RunningJobsCount, ScheduledBuildsCount, ScheduledJobsCount
    (Queue) > the same four metrics
    (Pipeline) > the same four metrics
"""

from dataclasses import dataclass
from typing import Any

from .aggregator import Counts, Dimensions, Result

RUNNING_BUILDS_COUNT = "RunningBuildsCount"
RUNNING_JOBS_COUNT = "RunningJobsCount"
SCHEDULED_BUILDS_COUNT = "ScheduledBuildsCount"
SCHEDULED_JOBS_COUNT = "ScheduledJobsCount"

UNIT_COUNT = "Count"

# PutMetricData accepts at most this many data points per call
MAX_METRICS_PER_REQUEST = 10


@dataclass(frozen=True)
class DataPoint:
    """One named, dimensioned metric value."""

    name: str
    value: float
    dimensions: Dimensions = ()
    unit: str = UNIT_COUNT

    def to_cloudwatch(self) -> dict[str, Any]:
        """Convert to a CloudWatch MetricDatum."""
        datum: dict[str, Any] = {
            "MetricName": self.name,
            "Value": self.value,
            "Unit": self.unit,
        }
        if self.dimensions:
            datum["Dimensions"] = [
                {"Name": name, "Value": value} for name, value in self.dimensions
            ]
        return datum

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format (for JSON output)."""
        return {
            "name": self.name,
            "dimensions": dict(self.dimensions),
            "value": self.value,
            "unit": self.unit,
        }


def counts_to_metrics(counts: Counts, dimensions: Dimensions = ()) -> list[DataPoint]:
    """Render one slice of counts as its four data points."""
    return [
        DataPoint(RUNNING_BUILDS_COUNT, float(counts.running_builds), dimensions),
        DataPoint(RUNNING_JOBS_COUNT, float(counts.running_jobs), dimensions),
        DataPoint(SCHEDULED_BUILDS_COUNT, float(counts.scheduled_builds), dimensions),
        DataPoint(SCHEDULED_JOBS_COUNT, float(counts.scheduled_jobs), dimensions),
    ]


def extract_metric_data(result: Result) -> list[DataPoint]:
    """
    Flatten a Result into data points.

    Emits four points for the totals, then four per queue, then four per
    pipeline, in the order of Result.snapshots().
    """
    data: list[DataPoint] = []
    for dimensions, counts in result.snapshots():
        data.extend(counts_to_metrics(counts, dimensions))
    return data


def chunk_metric_data(
    data: list[DataPoint], size: int = MAX_METRICS_PER_REQUEST
) -> list[list[DataPoint]]:
    """
    Split data points into consecutive chunks of at most `size` points.

    Args:
        data: Data points in submission order
        size: Maximum chunk size

    Returns:
        list: chunks in order; empty when there is no data

    Raises:
        ValueError: If size is less than 1
    """
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    return [data[i : i + size] for i in range(0, len(data), size)]
