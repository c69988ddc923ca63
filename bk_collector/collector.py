"""
Collector that turns Buildkite builds into CloudWatch metrics.

One cycle retrieves builds, aggregates them, extracts data points and
submits them to the sink chunk by chunk. Cycles never overlap.
"""

import logging
import threading
import time
from datetime import UTC, datetime

from bk_client.client import list_builds
from bk_common.config import CollectorConfig
from bk_common.exceptions import CollectorError, SubmissionError
from bk_common.models import Build
from bk_metrics.aggregator import Aggregator, Result
from bk_metrics.extractor import (
    MAX_METRICS_PER_REQUEST,
    chunk_metric_data,
    extract_metric_data,
)
from bk_metrics.sink import MetricsSink

from .strategies import Strategy, build_strategy

logger = logging.getLogger(__name__)


class Collector:
    """
    Runs collection cycles for one Buildkite organization.

    Each cycle:
    1. Runs the strategy's retrieval passes through the paginator
    2. Feeds every retrieved build through a fresh Aggregator
    3. Extracts data points and splits them into chunks
    4. Submits the chunks in order, stopping at the first rejected chunk
    """

    def __init__(
        self,
        config: CollectorConfig,
        sink: MetricsSink,
        chunk_size: int = MAX_METRICS_PER_REQUEST,
    ):
        """
        Initialize the collector.

        Args:
            config: Validated collector configuration
            sink: Destination for metric data points
            chunk_size: Maximum data points per sink call
        """
        self.config = config
        self.sink = sink
        self.chunk_size = chunk_size
        self.cycles = 0

    def fetch_builds(
        self, strategy: Strategy, now: datetime
    ) -> tuple[list[Build], list[Build]]:
        """
        Run the strategy's retrieval passes.

        Returns:
            tuple: (seed builds, counted builds)

        Raises:
            RetrievalError: If any page of any pass cannot be retrieved
        """
        seed: list[Build] = []
        counted: list[Build] = []
        for retrieval in strategy.passes(now):
            logger.info(
                f"Querying {self.config.org_slug} for {retrieval.description}"
            )
            builds = list_builds(
                self.config.org_slug,
                self.config.access_token,
                retrieval.query,
                api_base_url=self.config.api_base_url,
                timeout=self.config.request_timeout,
            )
            (seed if retrieval.seed_only else counted).extend(builds)
        return seed, counted

    def collect(
        self, now: datetime | None = None, strategy: Strategy | None = None
    ) -> Result:
        """
        Retrieve and aggregate builds.

        Args:
            now: Reference time for query ranges (defaults to the current time)
            strategy: Retrieval strategy (defaults to the configured one)

        Returns:
            Result: counts for this cycle
        """
        now = now or datetime.now(UTC)
        strategy = strategy or build_strategy(self.config, first_cycle=self.cycles == 0)

        seed, counted = self.fetch_builds(strategy, now)

        build_filter, job_filter = strategy.filters(now)
        aggregator = Aggregator(build_filter=build_filter, job_filter=job_filter)
        aggregator.seed(seed)
        logger.info(f"Aggregating results from {len(counted)} builds")
        aggregator.add_builds(counted)
        return aggregator.result()

    def publish(self, result: Result) -> int:
        """
        Submit a result's data points to the sink.

        Args:
            result: Counts to publish

        Returns:
            int: Number of data points submitted

        Raises:
            SubmissionError: If a chunk is rejected. Later chunks are not
                submitted; earlier chunks stay published.
        """
        logger.info("Extracting cloudwatch metrics from results")
        data = extract_metric_data(result)
        submitted = 0
        for index, chunk in enumerate(chunk_metric_data(data, self.chunk_size)):
            logger.info(f"Submitting chunk of {len(chunk)} metrics to Cloudwatch")
            try:
                self.sink.put_metric_data(self.config.namespace, chunk)
            except SubmissionError as e:
                if e.chunk_index is None:
                    e.chunk_index = index
                logger.error(
                    f"Chunk {index} rejected after {submitted} metrics were submitted: {e}"
                )
                raise
            submitted += len(chunk)
        return submitted

    def run_once(self, now: datetime | None = None) -> Result:
        """
        Perform one full collection cycle.

        Raises:
            CollectorError: If retrieval or submission fails
        """
        logger.info(f"Collecting buildkite metrics from org {self.config.org_slug}")
        try:
            result = self.collect(now=now)
            submitted = self.publish(result)
        finally:
            self.cycles += 1
        logger.info(
            f"Published {submitted} metrics ({len(result.queues)} queues, "
            f"{len(result.pipelines)} pipelines)"
        )
        return result

    def run_forever(self, interval: float, stop_event: threading.Event) -> None:
        """
        Run cycles on a fixed interval until stop_event is set.

        Args:
            interval: Seconds between cycle starts
            stop_event: Set to stop after the current cycle

        A cycle that overruns the interval delays the next one instead of
        overlapping it. Cycle failures are logged and the loop continues.

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")

        next_run = time.monotonic()
        while not stop_event.is_set():
            try:
                self.run_once()
            except CollectorError as e:
                logger.error(f"Collection cycle failed: {e}")
            except Exception as e:
                logger.error(f"Unexpected error in collection cycle: {e}", exc_info=True)

            next_run += interval
            now = time.monotonic()
            if next_run < now:
                skipped = int((now - next_run) // interval) + 1
                logger.warning(f"Cycle overran the interval, skipping {skipped} tick(s)")
                next_run += skipped * interval
            stop_event.wait(next_run - now)
