"""
Provisioning of the CloudWatch Events rule that triggers the handler.

Creates a scheduled rule, grants it permission to invoke the collector
function and points the rule at that function.
"""

import logging
from typing import Any

import boto3

logger = logging.getLogger(__name__)

TARGET_ID = "1"
STATEMENT_ID = "lambda-permission-for-cloudwatch"


def create_schedule(
    name: str,
    schedule_expression: str,
    function_arn: str,
    events_client: Any = None,
    lambda_client: Any = None,
) -> str:
    """
    Create (or update) a rule that invokes the collector function on a schedule.

    Args:
        name: Rule name
        schedule_expression: e.g. "rate(1 minute)" or "cron(0/5 * * * ? *)"
        function_arn: ARN of the collector function
        events_client: boto3 CloudWatch Events client
        lambda_client: boto3 Lambda client

    Returns:
        str: ARN of the rule

    Raises:
        botocore.exceptions.ClientError: If any AWS call fails
    """
    events_client = events_client or boto3.client("events")
    lambda_client = lambda_client or boto3.client("lambda")

    response = events_client.put_rule(
        Name=name, ScheduleExpression=schedule_expression
    )
    rule_arn = response["RuleArn"]
    logger.info(f"Created event rule {rule_arn}")

    lambda_client.add_permission(
        Action="lambda:InvokeFunction",
        FunctionName=function_arn,
        Principal="events.amazonaws.com",
        StatementId=STATEMENT_ID,
        SourceArn=rule_arn,
    )
    logger.info(f"Allowed {rule_arn} to invoke {function_arn}")

    events_client.put_targets(
        Rule=name, Targets=[{"Arn": function_arn, "Id": TARGET_ID}]
    )
    return rule_arn


def delete_schedule(name: str, events_client: Any = None) -> None:
    """
    Delete a rule created by create_schedule.

    Targets are removed first, as a rule with targets cannot be deleted.
    """
    events_client = events_client or boto3.client("events")
    events_client.remove_targets(Rule=name, Ids=[TARGET_ID])
    events_client.delete_rule(Name=name)
    logger.info(f"Deleted event rule {name}")
