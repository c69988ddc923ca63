"""
Event-triggered entrypoint for running one collection cycle.

Intended to be invoked on a schedule (e.g. as an AWS Lambda function fired by
a CloudWatch Events rule). The event carries the organization and token:

    {"BuildkiteOrgSlug": "my-org", "BuildkiteApiAccessToken": "..."}

Optional keys: "Namespace", "WindowMinutes", "Strategy".
"""

import logging
from datetime import timedelta
from typing import Any

from bk_common.config import DEFAULT_NAMESPACE, STRATEGY_WINDOW, CollectorConfig
from bk_common.exceptions import ConfigError
from bk_metrics.sink import CloudWatchSink, MetricsSink

from .collector import Collector

logger = logging.getLogger(__name__)


def config_from_event(event: dict[str, Any]) -> CollectorConfig:
    """
    Build a collector configuration from an invocation payload.

    Raises:
        ConfigError: If the token or organization slug is missing, or an
            optional value is invalid
    """
    token = event.get("BuildkiteApiAccessToken")
    if not token:
        raise ConfigError("No BuildkiteApiAccessToken provided")

    org_slug = event.get("BuildkiteOrgSlug")
    if not org_slug:
        raise ConfigError("No BuildkiteOrgSlug provided")

    window_minutes = event.get("WindowMinutes", 5)
    try:
        window = timedelta(minutes=float(window_minutes))
    except (TypeError, ValueError, OverflowError) as e:
        raise ConfigError(f"Invalid WindowMinutes {window_minutes!r}") from e

    return CollectorConfig(
        org_slug=org_slug,
        access_token=token,
        namespace=event.get("Namespace") or DEFAULT_NAMESPACE,
        strategy=event.get("Strategy") or STRATEGY_WINDOW,
        window=window,
    ).validate()


def handler(
    event: dict[str, Any], context: Any = None, sink: MetricsSink | None = None
) -> dict[str, Any]:
    """
    Run one collection cycle for the organization named in the event.

    Args:
        event: Invocation payload
        context: Runtime context (unused)
        sink: Metrics sink (defaults to CloudWatch)

    Returns:
        dict: The aggregated counts
    """
    config = config_from_event(event)
    logger.info(f"Querying buildkite for builds for org {config.org_slug}")
    collector = Collector(config, sink or CloudWatchSink())
    return collector.run_once().to_dict()
