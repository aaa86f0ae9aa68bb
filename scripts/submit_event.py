#!/usr/bin/env python

"""Drive the assessment engine against LocalStack for local development.

This script is for LOCAL DEVELOPMENT ONLY.

Commands:
    seed-definition  Write a definition JSON file into the definitions table
    job              Send one AssessmentJob to the worker queue
    dispatch         Run the dispatcher on a manual, scheduled or stack-change event

Usage:
    python scripts/submit_event.py seed-definition scripts/definitions/reliability-pillar.json
    python scripts/submit_event.py job alice --definition reliability-pillar
    python scripts/submit_event.py dispatch scheduled
    python scripts/submit_event.py dispatch stack --resource ctf-unreliable-app-alice-dev
    python scripts/submit_event.py --help
"""

import json
import logging
from enum import Enum
from pathlib import Path

import boto3
import typer
from botocore.exceptions import ClientError

from assessor.aws.dynamodb import definition_from_record, to_item
from assessor.aws.sqs import SQSClient
from assessor.bootstrap import build_dispatcher
from assessor.common.tracing import new_correlation_id
from assessor.config import AWSConfig, DispatchConfig, DispatchMode
from assessor.errors import DispatchEnqueueFailure
from assessor.models.enums import TriggerSource
from assessor.models.job import AssessmentJob

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Submit assessment events to LocalStack for local development")

DEFAULT_ENDPOINT = "http://localhost:4566"
DEFAULT_QUEUE = "http://localhost:4566/000000000000/ctf-assessment-queue"


class EventKind(str, Enum):
    manual = "manual"
    scheduled = "scheduled"
    stack = "stack"


def _aws_config(endpoint_url: str, region: str) -> AWSConfig:
    return AWSConfig(endpoint_url=endpoint_url, region=region)


@app.command("seed-definition")
def seed_definition(
    definition_file: Path = typer.Argument(..., help="Definition JSON file", exists=True),
    endpoint_url: str = typer.Option(
        DEFAULT_ENDPOINT, "--endpoint", help="LocalStack endpoint URL"
    ),
    region: str = typer.Option("us-east-1", "--region", help="AWS region"),
):
    """Validate a definition file and write it to the definitions table."""
    record = json.loads(definition_file.read_text())
    definition = definition_from_record(record)
    aws_config = _aws_config(endpoint_url, region)

    dynamodb = boto3.client("dynamodb", **aws_config.client_kwargs())
    try:
        dynamodb.put_item(TableName=aws_config.definitions_table, Item=to_item(record))
    except ClientError as e:
        logger.error(f"AWS error: {e}")
        raise typer.Exit(1)

    logger.info(
        f"✓ Stored definition {definition.definition_id} "
        f"({len(definition.criteria)} criteria, max score {definition.max_score})"
    )


@app.command()
def job(
    subject_id: str = typer.Argument(..., help="Subject (participant) id"),
    definition_id: str = typer.Option("reliability-pillar", "--definition", "-d"),
    endpoint_url: str = typer.Option(
        DEFAULT_ENDPOINT, "--endpoint", help="LocalStack endpoint URL"
    ),
    queue_url: str = typer.Option(DEFAULT_QUEUE, "--queue", help="SQS queue URL"),
    region: str = typer.Option("us-east-1", "--region", help="AWS region"),
):
    """Send one assessment job straight to the worker queue."""
    sqs_client = SQSClient(queue_url=queue_url, region=region, endpoint_url=endpoint_url)
    assessment_job = AssessmentJob(
        subject_id=subject_id,
        definition_id=definition_id,
        correlation_id=new_correlation_id(),
        source=TriggerSource.MANUAL,
    )

    try:
        message_id = sqs_client.invoke(assessment_job)
    except DispatchEnqueueFailure as e:
        logger.error(f"{e}")
        raise typer.Exit(1)

    logger.info(f"✓ Message sent (ID: {message_id})")
    logger.info(f"Correlation ID: {assessment_job.correlation_id}")
    logger.info("Next steps:")
    logger.info("  1. Start worker: python -m assessor.main")
    logger.info(f"  2. Look for: 'Received assessment job {subject_id}/{definition_id}'")


@app.command()
def dispatch(
    kind: EventKind = typer.Argument(..., help="Event kind"),
    subject_id: str = typer.Option("", "--subject", "-s", help="Subject id (manual)"),
    resource_name: str = typer.Option("", "--resource", "-r", help="Stack name (stack)"),
    definition_id: str = typer.Option("", "--definition", "-d"),
    endpoint_url: str = typer.Option(
        DEFAULT_ENDPOINT, "--endpoint", help="LocalStack endpoint URL"
    ),
    queue_url: str = typer.Option(DEFAULT_QUEUE, "--queue", help="SQS queue URL"),
    region: str = typer.Option("us-east-1", "--region", help="AWS region"),
):
    """Run the dispatcher locally on a synthetic trigger event."""
    if kind == EventKind.manual:
        if not subject_id:
            logger.error("--subject is required for manual events")
            raise typer.Exit(1)
        event: dict = {"source": "manual", "subject_id": subject_id}
    elif kind == EventKind.scheduled:
        event = {"source": "aws.events", "detail-type": "Scheduled Event", "detail": {}}
        if definition_id:
            event["detail"]["definition_ids"] = [definition_id]
    else:
        event = {
            "source": "aws.cloudformation",
            "detail-type": "CloudFormation Stack Status Change",
            "detail": {"stackName": resource_name},
        }
    if definition_id and kind != EventKind.scheduled:
        event["definition_id"] = definition_id

    dispatcher = build_dispatcher(
        DispatchConfig(mode=DispatchMode.SQS, queue_url=queue_url),
        _aws_config(endpoint_url, region),
        metrics_enabled=False,
    )
    summary = dispatcher.dispatch(event)

    logger.info(f"Source: {summary.source.value}")
    if summary.skipped_reason:
        logger.info(f"Skipped: {summary.skipped_reason}")
    logger.info(f"Triggered: {summary.triggered_count}, failed: {summary.failed_count}")
    for record in summary.records:
        logger.info(
            f"  {record.subject_id}/{record.definition_id}: {record.status.value}"
            + (f" ({record.error})" if record.error else "")
        )
    if summary.failed_count:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
