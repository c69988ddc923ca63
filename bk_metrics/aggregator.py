"""
Aggregation of builds and jobs into running/scheduled counts.

Counts are kept globally, per agent queue and per pipeline. A build counts
once globally and once for its pipeline, but once for *every* queue its
counted jobs ran on.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from bk_common.models import Build, Timestamps

logger = logging.getLogger(__name__)

RUNNING = "running"
SCHEDULED = "scheduled"

QUEUE_DIMENSION = "Queue"
PIPELINE_DIMENSION = "Pipeline"

Dimensions = tuple[tuple[str, str], ...]


@dataclass
class Counts:
    """Running and scheduled build/job counters for one slice of builds."""

    running_builds: int = 0
    running_jobs: int = 0
    scheduled_builds: int = 0
    scheduled_jobs: int = 0

    def add_build(self, state: str) -> None:
        """Count a build in the given state. Other states count nothing."""
        if state == RUNNING:
            self.running_builds += 1
        elif state == SCHEDULED:
            self.scheduled_builds += 1

    def add_job(self, state: str) -> None:
        """Count a job in the given state. Other states count nothing."""
        if state == RUNNING:
            self.running_jobs += 1
        elif state == SCHEDULED:
            self.scheduled_jobs += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "running_builds": self.running_builds,
            "running_jobs": self.running_jobs,
            "scheduled_builds": self.scheduled_builds,
            "scheduled_jobs": self.scheduled_jobs,
        }


@dataclass
class Result:
    """
    Counts for one collection cycle.

    Attributes:
        totals: Counts across every build
        queues: Queue name -> counts of builds/jobs on that queue
        pipelines: Pipeline name -> counts of builds/jobs in that pipeline
    """

    totals: Counts = field(default_factory=Counts)
    queues: dict[str, Counts] = field(default_factory=dict)
    pipelines: dict[str, Counts] = field(default_factory=dict)

    def queue(self, name: str) -> Counts:
        """Return the counts for a queue, registering it if unseen."""
        return self.queues.setdefault(name, Counts())

    def pipeline(self, name: str) -> Counts:
        """Return the counts for a pipeline, registering it if unseen."""
        return self.pipelines.setdefault(name, Counts())

    def snapshots(self) -> Iterator[tuple[Dimensions, Counts]]:
        """
        Iterate over every counted slice with the dimensions that label it.

        Yields the global totals first (no dimensions), then queues, then
        pipelines, each sorted by name so output order is stable.
        """
        yield (), self.totals
        for name in sorted(self.queues):
            yield ((QUEUE_DIMENSION, name),), self.queues[name]
        for name in sorted(self.pipelines):
            yield ((PIPELINE_DIMENSION, name),), self.pipelines[name]

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary format (for JSON output)."""
        return {
            "totals": self.totals.to_dict(),
            "queues": {name: c.to_dict() for name, c in sorted(self.queues.items())},
            "pipelines": {
                name: c.to_dict() for name, c in sorted(self.pipelines.items())
            },
        }


class InclusionFilter(Protocol):
    """Decides whether a build or job takes part in the counts."""

    def includes(self, timestamps: Timestamps) -> bool: ...


class IncludeAll:
    """Count every fetched build and job; the API query already filtered them."""

    def includes(self, timestamps: Timestamps) -> bool:
        return True

    def __repr__(self) -> str:
        return "IncludeAll()"


class ActiveSince:
    """
    Count only records active after a cutoff.

    A record is active when its most recent lifecycle timestamp (finished,
    else started, else scheduled, else created) is strictly after the cutoff.
    Records without any timestamp are not counted.
    """

    def __init__(self, cutoff: datetime):
        self.cutoff = cutoff

    def includes(self, timestamps: Timestamps) -> bool:
        latest = timestamps.most_recent()
        return latest is not None and latest > self.cutoff

    def __repr__(self) -> str:
        return f"ActiveSince({self.cutoff.isoformat()})"


INCLUDE_ALL = IncludeAll()


class Aggregator:
    """
    Accumulates builds into a Result.

    The aggregator only ever increments. Create a new one for each cycle.
    """

    def __init__(
        self,
        build_filter: InclusionFilter = INCLUDE_ALL,
        job_filter: InclusionFilter = INCLUDE_ALL,
    ):
        self.build_filter = build_filter
        self.job_filter = job_filter
        self._result = Result()

    def seed(self, builds: Iterable[Build]) -> None:
        """
        Register the pipelines and queues of builds without counting them.

        Used with recently finished builds so that idle queues and pipelines
        still report zero instead of disappearing.
        """
        for build in builds:
            self._result.pipeline(build.pipeline.name)
            for job in build.jobs:
                self._result.queue(job.queue())

    def add_build(self, build: Build) -> None:
        """Count one build and its jobs."""
        pipeline_name = build.pipeline.name
        pipeline = self._result.pipeline(pipeline_name)
        count_build = self.build_filter.includes(build.timestamps)

        logger.debug(
            f"Adding build to stats (id={build.id!r}, pipeline={pipeline_name!r}, "
            f"branch={build.branch!r}, state={build.state!r}, counted={count_build})"
        )

        if count_build:
            self._result.totals.add_build(build.state)
            pipeline.add_build(build.state)

        touched_queues: list[str] = []
        for job in build.jobs:
            queue_name = job.queue()
            queue = self._result.queue(queue_name)
            if not self.job_filter.includes(job.timestamps):
                logger.debug(f"Skipping job outside window (id={job.id!r})")
                continue

            logger.debug(
                f"Adding job to stats (id={job.id!r}, pipeline={pipeline_name!r}, "
                f"queue={queue_name!r}, type={job.type!r}, state={job.state!r})"
            )
            self._result.totals.add_job(job.state)
            pipeline.add_job(job.state)
            queue.add_job(job.state)
            if queue_name not in touched_queues:
                touched_queues.append(queue_name)

        if count_build:
            for queue_name in touched_queues:
                self._result.queue(queue_name).add_build(build.state)

    def add_builds(self, builds: Iterable[Build]) -> None:
        for build in builds:
            self.add_build(build)

    def result(self) -> Result:
        return self._result


def aggregate(
    builds: Iterable[Build],
    build_filter: InclusionFilter = INCLUDE_ALL,
    job_filter: InclusionFilter = INCLUDE_ALL,
    seed: Iterable[Build] = (),
) -> Result:
    """
    Aggregate builds into a fresh Result.

    Args:
        builds: Builds to count
        build_filter: Decides which builds add to build counters
        job_filter: Decides which jobs add to job counters
        seed: Builds whose pipelines and queues are registered with zero counts

    Returns:
        Result: counts for the given builds
    """
    aggregator = Aggregator(build_filter=build_filter, job_filter=job_filter)
    aggregator.seed(seed)
    aggregator.add_builds(builds)
    return aggregator.result()
