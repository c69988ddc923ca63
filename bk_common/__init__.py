"""
Buildkite metrics common module.

This module contains the shared domain models, exceptions and configuration
used across the publisher components (client, metrics, collector, cli).

The common module has no dependencies on other bk_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .config import CollectorConfig
from .exceptions import (
    CollectorError,
    ConfigError,
    ContinuationParseError,
    FetchError,
    RetrievalError,
    SubmissionError,
)
from .models import Build, Job, Pipeline

__all__ = [
    "Build",
    "Job",
    "Pipeline",
    "CollectorConfig",
    "CollectorError",
    "ConfigError",
    "ContinuationParseError",
    "FetchError",
    "RetrievalError",
    "SubmissionError",
]
