"""
Destinations for metric data points.

This module defines the contract a metrics backend must follow and the
CloudWatch implementation used in production.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bk_common.exceptions import SubmissionError

from .extractor import MAX_METRICS_PER_REQUEST, DataPoint

logger = logging.getLogger(__name__)


class MetricsSink(ABC):
    """
    Abstract base class for metric submission.

    Implementations accept one bounded chunk per call and raise
    SubmissionError when the chunk is rejected.
    """

    @abstractmethod
    def put_metric_data(self, namespace: str, data: list[DataPoint]) -> None:
        """
        Submit one chunk of data points.

        Args:
            namespace: Namespace the metrics are published under
            data: At most MAX_METRICS_PER_REQUEST data points

        Raises:
            SubmissionError: If the backend rejects the chunk
        """
        pass


class CloudWatchSink(MetricsSink):
    """Publishes data points with CloudWatch PutMetricData."""

    def __init__(self, client: Any = None, region_name: str | None = None):
        """
        Initialize the sink.

        Args:
            client: A boto3 CloudWatch client (created from the default
                credential chain if None)
            region_name: Region for the created client
        """
        self.client = client or boto3.client("cloudwatch", region_name=region_name)

    def put_metric_data(self, namespace: str, data: list[DataPoint]) -> None:
        if len(data) > MAX_METRICS_PER_REQUEST:
            raise SubmissionError(
                f"Chunk of {len(data)} data points exceeds the limit of "
                f"{MAX_METRICS_PER_REQUEST}"
            )
        try:
            self.client.put_metric_data(
                Namespace=namespace,
                MetricData=[point.to_cloudwatch() for point in data],
            )
        except (BotoCoreError, ClientError) as e:
            raise SubmissionError(f"Error submitting metrics to CloudWatch: {e}") from e


class RecordingSink(MetricsSink):
    """Keeps submitted chunks in memory instead of publishing them."""

    def __init__(self) -> None:
        self.chunks: list[tuple[str, list[DataPoint]]] = []

    def put_metric_data(self, namespace: str, data: list[DataPoint]) -> None:
        logger.debug(f"Recording chunk of {len(data)} metrics for {namespace}")
        self.chunks.append((namespace, list(data)))

    @property
    def data_points(self) -> list[DataPoint]:
        return [point for _, chunk in self.chunks for point in chunk]
