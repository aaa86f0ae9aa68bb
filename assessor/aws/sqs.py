"""SQS job queue: enqueue from the dispatcher, poll from the worker."""

import json
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from assessor.errors import DispatchEnqueueFailure
from assessor.models.job import AssessmentJob

logger = logging.getLogger(__name__)


class SQSClient:
    """Handles SQS message polling and lifecycle for assessment jobs."""

    def __init__(
        self,
        queue_url: str,
        region: str,
        wait_time_seconds: int = 20,
        visibility_timeout: int = 300,
        max_messages: int = 1,
        endpoint_url: str | None = None,
        client=None,
    ):
        self.queue_url = queue_url
        self.region = region
        self.wait_time_seconds = wait_time_seconds
        self.visibility_timeout = visibility_timeout
        self.max_messages = max_messages
        if client is None:
            client_kwargs: dict = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("sqs", **client_kwargs)
        self.sqs = client

    def invoke(self, job: AssessmentJob) -> str:
        """Enqueue an assessment job (AssessmentInvoker).

        Returns:
            SQS message id

        Raises:
            DispatchEnqueueFailure: If the message cannot be sent
        """
        attributes = {}
        if job.correlation_id:
            attributes["correlation_id"] = {"DataType": "String", "StringValue": job.correlation_id}

        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=job.model_dump_json(),
                MessageAttributes=attributes,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS send_message failed for {job.subject_id}: {e}")
            msg = f"Could not enqueue assessment for {job.subject_id}: {e}"
            raise DispatchEnqueueFailure(msg) from e

        return response["MessageId"]

    def receive_messages(self) -> list[tuple[AssessmentJob, str]]:
        """Long-poll the queue for one batch of jobs.

        Malformed messages are skipped without deleting them: they become
        visible again after the visibility timeout and reach the dead-letter
        queue once maxReceiveCount is exhausted.

        Returns:
            (AssessmentJob, receipt_handle) pairs; empty when nothing arrived
        """
        try:
            response = self.sqs.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.max_messages,
                WaitTimeSeconds=self.wait_time_seconds,
                VisibilityTimeout=self.visibility_timeout,
                MessageAttributeNames=["All"],
            )
        except ClientError as e:
            logger.error(f"SQS receive_message failed: {e}")
            raise

        batch = []
        for message in response.get("Messages", []):
            job = self._parse(message)
            if job is not None:
                batch.append((job, message["ReceiptHandle"]))
        return batch

    @staticmethod
    def _parse(message: dict) -> AssessmentJob | None:
        try:
            job = AssessmentJob.model_validate(json.loads(message["Body"]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(
                f"Skipping malformed job message: {e}",
                extra={"message_id": message.get("MessageId")},
            )
            return None

        logger.info(f"Received assessment job {job.subject_id}/{job.definition_id}")
        return job

    def delete_message(self, receipt_handle: str) -> None:
        """Acknowledge a processed job.

        Args:
            receipt_handle: Handle returned with the message by receive_messages
        """
        try:
            self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except ClientError as e:
            logger.error(f"Failed to acknowledge job message: {e}")
            raise
