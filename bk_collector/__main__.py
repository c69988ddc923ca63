"""
Standalone entrypoint for running the metrics collector.

Runs one collection cycle, or keeps collecting on a fixed interval.

Usage:
    python -m bk_collector [OPTIONS]
    buildkite-metrics-collector [OPTIONS]  (after pip install)

Environment Variables:
    BUILDKITE_API_ACCESS_TOKEN: Buildkite API access token
    BUILDKITE_ORG_SLUG: Buildkite organization slug
    BUILDKITE_METRICS_INTERVAL: Seconds between cycles (default: 0, run once)
    BUILDKITE_METRICS_NAMESPACE: CloudWatch namespace (default: Buildkite)
    BUILDKITE_METRICS_STRATEGY: "state" or "window" (default: state)
    BUILDKITE_API_URL: Buildkite REST API base URL
"""

import argparse
import logging
import os
import signal
import sys
import threading
from typing import Any

from bk_common.config import (
    DEFAULT_API_URL,
    DEFAULT_NAMESPACE,
    STRATEGIES,
    STRATEGY_STATE,
    CollectorConfig,
)
from bk_common.exceptions import CollectorError
from bk_metrics.sink import CloudWatchSink

from .collector import Collector

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Publish Buildkite build and job counts to CloudWatch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  BUILDKITE_API_ACCESS_TOKEN   Buildkite API access token
  BUILDKITE_ORG_SLUG           Buildkite organization slug
  BUILDKITE_METRICS_INTERVAL   Seconds between cycles (default: 0, run once)
  BUILDKITE_METRICS_NAMESPACE  CloudWatch namespace (default: Buildkite)
  BUILDKITE_METRICS_STRATEGY   Retrieval strategy: state or window (default: state)
  BUILDKITE_API_URL            Buildkite REST API base URL

Note: Command-line arguments override environment variables.

Examples:
  # Publish once
  buildkite-metrics-collector --token $TOKEN --org my-org

  # Publish every 30 seconds
  buildkite-metrics-collector --token $TOKEN --org my-org --interval 30

  # Enable debug logging
  buildkite-metrics-collector --token $TOKEN --org my-org --log-level DEBUG
        """,
    )

    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Buildkite API access token (default: BUILDKITE_API_ACCESS_TOKEN env)",
    )

    parser.add_argument(
        "--org",
        type=str,
        default=None,
        help="Buildkite organization slug (default: BUILDKITE_ORG_SLUG env)",
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Update metrics every interval seconds, rather than once "
        "(default: BUILDKITE_METRICS_INTERVAL env or 0)",
    )

    parser.add_argument(
        "--namespace",
        type=str,
        default=None,
        help="CloudWatch namespace (default: BUILDKITE_METRICS_NAMESPACE env or Buildkite)",
    )

    parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        choices=list(STRATEGIES),
        help="Retrieval strategy (default: BUILDKITE_METRICS_STRATEGY env or state)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def get_access_token(args: argparse.Namespace) -> str:
    """Get the API access token from CLI args or environment."""
    if args.token:
        return args.token
    return os.environ.get("BUILDKITE_API_ACCESS_TOKEN", "")


def get_org_slug(args: argparse.Namespace) -> str:
    """Get the organization slug from CLI args or environment."""
    if args.org:
        return args.org
    return os.environ.get("BUILDKITE_ORG_SLUG", "")


def get_interval(args: argparse.Namespace) -> float:
    """
    Get the collection interval from CLI args or environment.

    Args:
        args: Parsed command-line arguments

    Returns:
        Seconds between cycles, 0 to run a single cycle
    """
    # Try CLI arg first
    if args.interval is not None:
        if args.interval < 0:
            logger.warning(f"Invalid interval={args.interval}, running once")
            return 0.0
        return args.interval

    # Fall back to environment variable
    try:
        interval = float(os.environ.get("BUILDKITE_METRICS_INTERVAL", "0"))
        if interval < 0:
            logger.warning(
                f"Invalid BUILDKITE_METRICS_INTERVAL={interval}, running once"
            )
            return 0.0
        return interval
    except ValueError:
        logger.warning(
            f"Invalid BUILDKITE_METRICS_INTERVAL={os.environ.get('BUILDKITE_METRICS_INTERVAL')}, "
            "running once"
        )
        return 0.0


def get_namespace(args: argparse.Namespace) -> str:
    """Get the CloudWatch namespace from CLI args or environment."""
    if args.namespace:
        return args.namespace
    return os.environ.get("BUILDKITE_METRICS_NAMESPACE", DEFAULT_NAMESPACE)


def get_strategy(args: argparse.Namespace) -> str:
    """Get the retrieval strategy from CLI args or environment."""
    if args.strategy:
        return args.strategy
    return os.environ.get("BUILDKITE_METRICS_STRATEGY", STRATEGY_STATE)


def build_config(args: argparse.Namespace) -> CollectorConfig:
    """
    Resolve the collector configuration.

    Raises:
        ConfigError: If a required value is missing or invalid
    """
    return CollectorConfig(
        org_slug=get_org_slug(args),
        access_token=get_access_token(args),
        api_base_url=os.environ.get("BUILDKITE_API_URL", DEFAULT_API_URL),
        namespace=get_namespace(args),
        interval=get_interval(args),
        strategy=get_strategy(args),
    ).validate()


def run_collector(config: CollectorConfig, collector: Collector | None = None) -> None:
    """
    Run the collector until done or interrupted.

    Args:
        config: Validated configuration
        collector: Collector to run (built with a CloudWatch sink if None)

    The first cycle must succeed; with an interval, later failures are
    logged and collection continues until SIGINT or SIGTERM.
    """
    logger.info("Starting Buildkite metrics collector")
    logger.info(f"  Organization: {config.org_slug}")
    logger.info(f"  Namespace: {config.namespace}")
    logger.info(f"  Strategy: {config.strategy}")
    logger.info(f"  Interval: {config.interval or 'run once'}")

    collector = collector or Collector(config, CloudWatchSink())
    collector.run_once()

    if config.interval <= 0:
        return

    # Set up signal handlers for graceful shutdown
    shutdown_event = threading.Event()

    def signal_handler(sig: Any, _frame: Any) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # The first cycle already ran
    shutdown_event.wait(config.interval)
    collector.run_forever(config.interval, shutdown_event)
    logger.info("Collector stopped cleanly")


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the collector.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    # Parse command-line arguments
    args = parse_args(argv)

    # Configure logging based on args
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = build_config(args)
        run_collector(config)
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except CollectorError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
