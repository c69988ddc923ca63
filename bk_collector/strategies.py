"""
Retrieval strategies for a collection cycle.

A strategy decides which build queries a cycle runs and how the fetched
builds are filtered before counting:

- state: one "recently finished" query that only seeds queue and pipeline
  names, then one query per counted state, all counted unconditionally.
- window: one query for builds created within a time window, counted only
  when active inside that window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from bk_client.client import BuildsQuery
from bk_common.config import STRATEGY_STATE, STRATEGY_WINDOW, CollectorConfig
from bk_common.exceptions import ConfigError
from bk_metrics.aggregator import (
    INCLUDE_ALL,
    RUNNING,
    SCHEDULED,
    ActiveSince,
    InclusionFilter,
)


@dataclass(frozen=True)
class RetrievalPass:
    """
    One paginated query of a cycle.

    Attributes:
        query: Filters for the builds endpoint
        seed_only: Register the builds' queues and pipelines without counting
        description: Human readable label for logging
    """

    query: BuildsQuery
    seed_only: bool = False
    description: str = ""


class StateFilteredStrategy:
    """Seed from recently finished builds, count scheduled and running builds."""

    states = (SCHEDULED, RUNNING)

    def __init__(self, history: timedelta):
        self.history = history

    def passes(self, now: datetime) -> list[RetrievalPass]:
        passes = [
            RetrievalPass(
                query=BuildsQuery(finished_from=now - self.history),
                seed_only=True,
                description=f"builds finished in the last {self.history}",
            )
        ]
        for state in self.states:
            passes.append(
                RetrievalPass(query=BuildsQuery(state=state), description=f"{state} builds")
            )
        return passes

    def filters(self, now: datetime) -> tuple[InclusionFilter, InclusionFilter]:
        return INCLUDE_ALL, INCLUDE_ALL

    def __repr__(self) -> str:
        return f"StateFilteredStrategy(history={self.history})"


class TimeWindowStrategy:
    """Count builds and jobs active within the last `window`."""

    def __init__(self, window: timedelta):
        self.window = window

    def passes(self, now: datetime) -> list[RetrievalPass]:
        return [
            RetrievalPass(
                query=BuildsQuery(created_from=now - self.window),
                description=f"builds created in the last {self.window}",
            )
        ]

    def filters(self, now: datetime) -> tuple[InclusionFilter, InclusionFilter]:
        cutoff = ActiveSince(now - self.window)
        return cutoff, cutoff

    def __repr__(self) -> str:
        return f"TimeWindowStrategy(window={self.window})"


Strategy = StateFilteredStrategy | TimeWindowStrategy


def build_strategy(config: CollectorConfig, first_cycle: bool = True) -> Strategy:
    """
    Create the strategy configured for a cycle.

    Args:
        config: Collector configuration
        first_cycle: Use the longer initial history (state strategy only)

    Raises:
        ConfigError: If the configured strategy is unknown
    """
    if config.strategy == STRATEGY_STATE:
        history = config.initial_history if first_cycle else config.history
        return StateFilteredStrategy(history)
    if config.strategy == STRATEGY_WINDOW:
        return TimeWindowStrategy(config.window)
    raise ConfigError(f"Unknown strategy {config.strategy!r}")
