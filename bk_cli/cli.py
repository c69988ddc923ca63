"""
Operator CLI for the Buildkite metrics publisher.

Provides commands to run a single collection cycle, inspect the builds the
collector would count, and manage the schedule that triggers the collector.
"""

import json
import logging
import sys
from datetime import timedelta

import click
from botocore.exceptions import BotoCoreError, ClientError

from bk_client.client import BuildsQuery, list_builds
from bk_collector.collector import Collector
from bk_collector.schedule import create_schedule, delete_schedule
from bk_common.config import (
    DEFAULT_API_URL,
    DEFAULT_NAMESPACE,
    STRATEGIES,
    STRATEGY_STATE,
    CollectorConfig,
)
from bk_common.exceptions import CollectorError
from bk_metrics.extractor import extract_metric_data
from bk_metrics.sink import CloudWatchSink, RecordingSink

token_option = click.option(
    "--token",
    envvar="BUILDKITE_API_ACCESS_TOKEN",
    required=True,
    help="Buildkite API access token (or BUILDKITE_API_ACCESS_TOKEN)",
)
org_option = click.option(
    "--org",
    envvar="BUILDKITE_ORG_SLUG",
    required=True,
    help="Buildkite organization slug (or BUILDKITE_ORG_SLUG)",
)
api_url_option = click.option(
    "--api-url",
    envvar="BUILDKITE_API_URL",
    default=DEFAULT_API_URL,
    show_default=True,
    help="Buildkite REST API base URL",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Buildkite Metrics - Publish Buildkite build and job counts to CloudWatch."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.group()
def schedule():
    """Manage the scheduled trigger of the collector function."""
    pass


# ============================================================================
# Collection Commands
# ============================================================================


@cli.command("collect")
@token_option
@org_option
@api_url_option
@click.option(
    "--namespace",
    envvar="BUILDKITE_METRICS_NAMESPACE",
    default=DEFAULT_NAMESPACE,
    show_default=True,
    help="CloudWatch namespace",
)
@click.option(
    "--strategy",
    type=click.Choice(STRATEGIES),
    default=STRATEGY_STATE,
    show_default=True,
    help="Query scheduled/running builds (state) or recently created builds (window)",
)
@click.option(
    "--history-minutes",
    type=click.IntRange(min=1),
    default=24 * 60,
    show_default=True,
    help="Look-back for seeding idle queues and pipelines (state strategy)",
)
@click.option(
    "--window-minutes",
    type=click.IntRange(min=1),
    default=5,
    show_default=True,
    help="Created-at window (window strategy)",
)
@click.option("--dry-run", is_flag=True, help="Print metrics instead of publishing")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def collect(
    token: str,
    org: str,
    api_url: str,
    namespace: str,
    strategy: str,
    history_minutes: int,
    window_minutes: int,
    dry_run: bool,
    json_output: bool,
):
    """Run a single collection cycle."""
    config = CollectorConfig(
        org_slug=org,
        access_token=token,
        api_base_url=api_url,
        namespace=namespace,
        strategy=strategy,
        initial_history=timedelta(minutes=history_minutes),
        window=timedelta(minutes=window_minutes),
    )

    try:
        config.validate()
        sink = RecordingSink() if dry_run else CloudWatchSink()
        result = Collector(config, sink).run_once()
    except (CollectorError, BotoCoreError, ClientError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    data = extract_metric_data(result)

    if json_output:
        click.echo(
            json.dumps(
                {
                    "namespace": namespace,
                    "published": not dry_run,
                    "result": result.to_dict(),
                    "metrics": [point.to_dict() for point in data],
                },
                indent=2,
            )
        )
        return

    click.echo(f"\n{'METRIC':<24} {'DIMENSION':<40} {'VALUE':>8}")
    click.echo("-" * 74)
    for point in data:
        dimension = ", ".join(f"{k}={v}" for k, v in point.dimensions) or "-"
        click.echo(f"{point.name:<24} {dimension:<40} {point.value:>8.0f}")
    click.echo()

    if dry_run:
        click.echo(f"Dry run: {len(data)} metrics not published")
    else:
        click.echo(f"✓ Published {len(data)} metrics to {namespace}")


@cli.command("builds")
@token_option
@org_option
@api_url_option
@click.option(
    "--state",
    default=None,
    help="Only list builds in this state (e.g. running, scheduled)",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def builds(token: str, org: str, api_url: str, state: str | None, json_output: bool):
    """List builds the collector would retrieve."""
    try:
        build_list = list_builds(
            org, token, BuildsQuery(state=state), api_base_url=api_url
        )
    except CollectorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps([b.to_summary_dict() for b in build_list], indent=2))
        return

    if not build_list:
        click.echo("No builds found.")
        return

    click.echo(
        f"\n{'ID':<38} {'PIPELINE':<24} {'BRANCH':<20} {'STATE':<10} {'JOBS':>5}"
    )
    click.echo("-" * 101)
    for b in build_list:
        pipeline = b.pipeline.name[:24]
        branch = (b.branch or "-")[:20]
        click.echo(
            f"{b.id:<38} {pipeline:<24} {branch:<20} {b.state:<10} {len(b.jobs):>5}"
        )
    click.echo()


# ============================================================================
# Schedule Commands
# ============================================================================


@schedule.command("create")
@click.option("--name", required=True, help="Name of the CloudWatch Events rule")
@click.option(
    "--expression",
    default="rate(1 minute)",
    show_default=True,
    help="Schedule expression",
)
@click.option("--function-arn", required=True, help="ARN of the collector function")
def schedule_create(name: str, expression: str, function_arn: str):
    """Trigger the collector function on a schedule."""
    try:
        rule_arn = create_schedule(name, expression, function_arn)
    except (BotoCoreError, ClientError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("✓ Schedule created successfully")
    click.echo(f"  Rule:       {rule_arn}")
    click.echo(f"  Expression: {expression}")
    click.echo(f"  Target:     {function_arn}")


@schedule.command("delete")
@click.option("--name", required=True, help="Name of the CloudWatch Events rule")
def schedule_delete(name: str):
    """Remove a schedule created with 'schedule create'."""
    try:
        delete_schedule(name)
    except (BotoCoreError, ClientError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Schedule deleted: {name}")


if __name__ == "__main__":
    cli()
