"""
Buildkite metrics collector module.

This module contains the collector that runs retrieval, aggregation and
submission cycles, the strategies that decide which builds a cycle queries,
and the process entrypoints (a long-running loop and an event handler).
"""

from .collector import Collector
from .strategies import StateFilteredStrategy, TimeWindowStrategy, build_strategy

__all__ = [
    "Collector",
    "StateFilteredStrategy",
    "TimeWindowStrategy",
    "build_strategy",
]
