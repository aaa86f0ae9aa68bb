"""CloudFormation stack listing, used when the active-subjects query is unavailable."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from assessor.models.events import subject_from_resource_name

logger = logging.getLogger(__name__)

LIVE_STACK_STATUSES = ["CREATE_COMPLETE", "UPDATE_COMPLETE", "UPDATE_ROLLBACK_COMPLETE"]


class StackSubjectsQuery:
    """Derives subjects from the names of live stacks carrying the subject prefix."""

    def __init__(
        self, prefix: str, region: str, endpoint_url: str | None = None, client=None
    ):
        self.prefix = prefix
        if client is None:
            client_kwargs: dict = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("cloudformation", **client_kwargs)
        self.cloudformation = client

    def list_active(self, definition_id: str) -> list[str]:  # noqa: ARG002
        """List unique subject ids with a live stack.

        Returns:
            Subject ids in first-seen order; empty list if listing fails
        """
        logger.info("Falling back to listing CloudFormation stacks for subjects")
        subject_ids: list[str] = []
        try:
            paginator = self.cloudformation.get_paginator("list_stacks")
            for page in paginator.paginate(StackStatusFilter=LIVE_STACK_STATUSES):
                for summary in page.get("StackSummaries", []):
                    subject_id = subject_from_resource_name(summary["StackName"], self.prefix)
                    if subject_id and subject_id not in subject_ids:
                        subject_ids.append(subject_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting subjects from stacks: {e}")
            return []

        logger.info(f"Found {len(subject_ids)} subjects from stacks")
        return subject_ids
