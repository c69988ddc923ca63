"""
Collector configuration.

A single immutable value threaded into the collector entry points instead of
process-wide globals.
"""

from dataclasses import dataclass
from datetime import timedelta

from .exceptions import ConfigError

DEFAULT_API_URL = "https://api.buildkite.com/v2"
DEFAULT_NAMESPACE = "Buildkite"

STRATEGY_STATE = "state"
STRATEGY_WINDOW = "window"
STRATEGIES = (STRATEGY_STATE, STRATEGY_WINDOW)


@dataclass(frozen=True)
class CollectorConfig:
    """
    Settings for one collector process or invocation.

    Attributes:
        org_slug: Buildkite organization slug
        access_token: Buildkite API access token
        api_base_url: Base URL of the Buildkite REST API
        namespace: CloudWatch namespace metrics are published under
        interval: Seconds between cycles; 0 runs a single cycle
        strategy: "state" (scheduled/running queries) or "window" (created range)
        initial_history: Look-back for seeding queues/pipelines on the first cycle
        history: Look-back for seeding queues/pipelines on later cycles
        window: Created-at range for the time-window strategy
        request_timeout: Seconds before an API request is abandoned
    """

    org_slug: str
    access_token: str
    api_base_url: str = DEFAULT_API_URL
    namespace: str = DEFAULT_NAMESPACE
    interval: float = 0.0
    strategy: str = STRATEGY_STATE
    initial_history: timedelta = timedelta(hours=24)
    history: timedelta = timedelta(hours=1)
    window: timedelta = timedelta(minutes=5)
    request_timeout: float = 30.0

    def validate(self) -> "CollectorConfig":
        """
        Check the configuration.

        Returns:
            The configuration itself, for chaining

        Raises:
            ConfigError: If a required value is missing or a value is invalid
        """
        if not self.access_token:
            raise ConfigError("No Buildkite API access token provided")
        if not self.org_slug:
            raise ConfigError("No Buildkite organization slug provided")
        if self.interval < 0:
            raise ConfigError(f"Interval must not be negative, got {self.interval}")
        if self.strategy not in STRATEGIES:
            raise ConfigError(
                f"Unknown strategy {self.strategy!r}, expected one of {', '.join(STRATEGIES)}"
            )
        for name in ("initial_history", "history", "window"):
            value = getattr(self, name)
            if value <= timedelta(0):
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.request_timeout <= 0:
            raise ConfigError(
                f"Request timeout must be positive, got {self.request_timeout}"
            )
        return self
