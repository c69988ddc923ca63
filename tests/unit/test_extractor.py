"""
Unit tests for bk_metrics.extractor.

Tests flattening of results into data points and chunking.
"""

import pytest

from bk_metrics.aggregator import Counts, Result
from bk_metrics.extractor import (
    DataPoint,
    chunk_metric_data,
    counts_to_metrics,
    extract_metric_data,
)

METRIC_NAMES = [
    "RunningBuildsCount",
    "RunningJobsCount",
    "ScheduledBuildsCount",
    "ScheduledJobsCount",
]


def make_result(queues=(), pipelines=()):
    result = Result(totals=Counts(1, 2, 3, 4))
    for name in queues:
        result.queue(name)
    for name in pipelines:
        result.pipeline(name)
    return result


class TestExtractMetricData:
    """Test suite for extract_metric_data function."""

    def test_counts_to_metrics_names_and_values(self):
        """Test the four metrics emitted for one snapshot."""
        points = counts_to_metrics(Counts(1, 2, 3, 4))

        assert [p.name for p in points] == METRIC_NAMES
        assert [p.value for p in points] == [1.0, 2.0, 3.0, 4.0]
        assert all(p.unit == "Count" for p in points)
        assert all(p.dimensions == () for p in points)

    def test_empty_result_emits_global_points(self):
        """Test that a result without keys still emits the totals."""
        points = extract_metric_data(Result())
        assert len(points) == 4
        assert all(p.value == 0.0 for p in points)

    def test_two_queues_three_pipelines(self):
        """Test the point count for 2 queues and 3 pipelines."""
        result = make_result(queues=["a", "b"], pipelines=["x", "y", "z"])

        points = extract_metric_data(result)

        assert len(points) == 4 + 2 * 4 + 3 * 4
        queue_points = [p for p in points if p.dimensions and p.dimensions[0][0] == "Queue"]
        pipeline_points = [
            p for p in points if p.dimensions and p.dimensions[0][0] == "Pipeline"
        ]
        assert len(queue_points) == 8
        assert len(pipeline_points) == 12

    def test_never_both_dimensions(self):
        """Test that a point carries at most one dimension."""
        points = extract_metric_data(make_result(queues=["a"], pipelines=["x"]))
        assert all(len(p.dimensions) <= 1 for p in points)

    def test_per_key_values(self):
        """Test that keyed points carry the key's own counts, not the totals."""
        result = make_result(queues=["a"])
        result.queue("a").add_job("running")

        points = extract_metric_data(result)

        running_jobs = {
            p.dimensions: p.value for p in points if p.name == "RunningJobsCount"
        }
        assert running_jobs[()] == 2.0
        assert running_jobs[(("Queue", "a"),)] == 1.0

    def test_stable_order(self):
        """Test global, then queues, then pipelines."""
        points = extract_metric_data(make_result(queues=["b", "a"], pipelines=["x"]))

        dims = [p.dimensions for p in points[::4]]
        assert dims == [(), (("Queue", "a"),), (("Queue", "b"),), (("Pipeline", "x"),)]


class TestDataPoint:
    """Test suite for DataPoint rendering."""

    def test_to_cloudwatch_without_dimensions(self):
        """Test that global points omit Dimensions."""
        datum = DataPoint("RunningBuildsCount", 3.0).to_cloudwatch()
        assert datum == {"MetricName": "RunningBuildsCount", "Value": 3.0, "Unit": "Count"}

    def test_to_cloudwatch_with_dimension(self):
        """Test rendering of a queue point."""
        datum = DataPoint("RunningJobsCount", 1.0, (("Queue", "deploy"),)).to_cloudwatch()
        assert datum["Dimensions"] == [{"Name": "Queue", "Value": "deploy"}]

    def test_to_dict(self):
        """Test JSON rendering of a point."""
        point = DataPoint("ScheduledJobsCount", 2.0, (("Pipeline", "web"),))
        assert point.to_dict() == {
            "name": "ScheduledJobsCount",
            "dimensions": {"Pipeline": "web"},
            "value": 2.0,
            "unit": "Count",
        }


class TestChunkMetricData:
    """Test suite for chunk_metric_data function."""

    def points(self, n):
        return [DataPoint("RunningBuildsCount", float(i)) for i in range(n)]

    def test_thirty_six_points(self):
        """Test chunk sizes for 36 points."""
        chunks = chunk_metric_data(self.points(36))
        assert [len(c) for c in chunks] == [10, 10, 10, 6]

    def test_preserves_order(self):
        """Test that concatenated chunks equal the input."""
        data = self.points(23)
        chunks = chunk_metric_data(data)
        assert [p for chunk in chunks for p in chunk] == data

    def test_empty(self):
        """Test that no data gives no chunks."""
        assert chunk_metric_data([]) == []

    def test_smaller_than_chunk(self):
        """Test that a short list gives exactly one chunk."""
        assert [len(c) for c in chunk_metric_data(self.points(3))] == [3]

    def test_exact_multiple(self):
        """Test that the last chunk is full when sizes divide evenly."""
        assert [len(c) for c in chunk_metric_data(self.points(20))] == [10, 10]

    def test_custom_size(self):
        """Test a custom chunk size."""
        assert [len(c) for c in chunk_metric_data(self.points(5), size=2)] == [2, 2, 1]

    def test_invalid_size(self):
        """Test that a chunk size below 1 is rejected."""
        with pytest.raises(ValueError):
            chunk_metric_data(self.points(3), size=0)
