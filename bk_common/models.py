"""
Data models for Buildkite builds and jobs.

These models represent the subset of the Buildkite REST API payloads that the
metrics publisher needs, decoded once per collection cycle and never mutated.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_QUEUE = "default"

_QUEUE_PATTERN = re.compile(r"^queue=(.+)$", re.IGNORECASE)


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp from the Buildkite API.

    Args:
        value: Timestamp string such as "2016-05-04T01:23:45.678Z", or None

    Returns:
        Timezone-aware datetime, or None if the value is empty

    Raises:
        ValueError: If the value is not a valid ISO 8601 timestamp
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way the Buildkite API expects in query params."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _agent_query_rules(value: Any) -> tuple[str, ...]:
    """
    Decode the agent query rules of a job payload.

    Raises:
        TypeError: If the rules are not a list of strings
    """
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(r, str) for r in value):
        raise TypeError(f"agent_query_rules must be a list of strings, got {value!r}")
    return tuple(value)


@dataclass(frozen=True)
class Timestamps:
    """
    Lifecycle timestamps shared by builds and jobs.

    Any of them may be absent, e.g. a scheduled build has not started yet.
    """

    created_at: datetime | None = None
    scheduled_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def most_recent(self) -> datetime | None:
        """
        Return the first defined timestamp in lifecycle priority order.

        Priority is finished, started, scheduled, created.
        """
        for value in (
            self.finished_at,
            self.started_at,
            self.scheduled_at,
            self.created_at,
        ):
            if value is not None:
                return value
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Timestamps":
        """Create timestamps from an API payload."""
        return cls(
            created_at=parse_timestamp(data.get("created_at")),
            scheduled_at=parse_timestamp(data.get("scheduled_at")),
            started_at=parse_timestamp(data.get("started_at")),
            finished_at=parse_timestamp(data.get("finished_at")),
        )


@dataclass(frozen=True)
class Job:
    """
    Represents one job of a Buildkite build.

    Jobs progress through the same states as builds (scheduled -> running ->
    passed/failed/canceled, ...). Waiter and manual jobs may carry no state.
    """

    id: str
    state: str = ""
    type: str = "script"
    name: str | None = None
    agent_query_rules: tuple[str, ...] = ()
    timestamps: Timestamps = field(default_factory=Timestamps)

    def queue(self) -> str:
        """
        Derive the agent queue this job targets.

        Returns the value of the first "queue=<name>" agent query rule
        (case-insensitive), or "default" when no rule names a queue.
        """
        for rule in self.agent_query_rules:
            match = _QUEUE_PATTERN.match(rule)
            if match:
                return match.group(1)
        return DEFAULT_QUEUE

    def to_dict(self) -> dict[str, Any]:
        """Convert job to dictionary format (for JSON output)."""
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "state": self.state,
            "queue": self.queue(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        """Create job from an API payload."""
        return cls(
            id=data["id"],
            state=data.get("state") or "",
            type=data.get("type") or "script",
            name=data.get("name"),
            agent_query_rules=_agent_query_rules(data.get("agent_query_rules")),
            timestamps=Timestamps.from_dict(data),
        )


@dataclass(frozen=True)
class Pipeline:
    """The pipeline a build belongs to."""

    name: str
    slug: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pipeline":
        """Create pipeline reference from an API payload."""
        return cls(name=data["name"], slug=data.get("slug"), id=data.get("id"))


@dataclass(frozen=True)
class Build:
    """
    Represents a Buildkite build with its jobs.

    Builds progress through states: scheduled -> running -> passed/failed
    Additional states: blocked, canceling, canceled, skipped, not_run
    """

    id: str
    pipeline: Pipeline
    state: str
    branch: str | None = None
    number: int | None = None
    jobs: tuple[Job, ...] = ()
    timestamps: Timestamps = field(default_factory=Timestamps)

    def queues(self) -> list[str]:
        """Return the distinct queues used by this build's jobs, in job order."""
        return list(dict.fromkeys(job.queue() for job in self.jobs))

    def to_summary_dict(self) -> dict[str, Any]:
        """Convert build to summary format (for listings)."""
        return {
            "id": self.id,
            "number": self.number,
            "pipeline": self.pipeline.name,
            "branch": self.branch,
            "state": self.state,
            "jobs": len(self.jobs),
            "queues": self.queues(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Build":
        """Create build from an API payload."""
        return cls(
            id=data["id"],
            pipeline=Pipeline.from_dict(data["pipeline"]),
            state=data.get("state") or "",
            branch=data.get("branch"),
            number=data.get("number"),
            jobs=tuple(Job.from_dict(job) for job in data.get("jobs") or ()),
            timestamps=Timestamps.from_dict(data),
        )
