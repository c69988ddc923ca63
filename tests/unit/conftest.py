"""
Shared fixtures for unit tests.

Provides factories for Buildkite API payloads and decoded builds.
"""

from itertools import count

import pytest

from bk_common.models import Build

_ids = count(1)


def job_payload(state="running", queue=None, rules=None, **extra):
    """Build a job payload as returned by the Buildkite API."""
    if rules is None:
        rules = [f"queue={queue}"] if queue else []
    payload = {
        "id": f"job-{next(_ids)}",
        "type": "script",
        "name": "test",
        "state": state,
        "agent_query_rules": rules,
    }
    payload.update(extra)
    return payload


def build_payload(state="running", pipeline="app", jobs=None, **extra):
    """Build a build payload as returned by the Buildkite API."""
    payload = {
        "id": f"build-{next(_ids)}",
        "number": 1,
        "state": state,
        "branch": "main",
        "pipeline": {"id": f"pipeline-{pipeline}", "name": pipeline, "slug": pipeline},
        "jobs": jobs or [],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def make_job_payload():
    return job_payload


@pytest.fixture
def make_build_payload():
    return build_payload


@pytest.fixture
def make_build():
    """Factory for decoded Build objects."""

    def factory(state="running", pipeline="app", jobs=None, **extra):
        return Build.from_dict(build_payload(state, pipeline, jobs, **extra))

    return factory
