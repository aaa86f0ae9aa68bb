"""Asynchronous function invocation of the assessment engine."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from assessor.errors import DispatchEnqueueFailure
from assessor.models.job import AssessmentJob

logger = logging.getLogger(__name__)

# Lambda answers 202 Accepted for asynchronous (Event) invocations
ACCEPTED = 202


class LambdaAssessmentInvoker:
    """AssessmentInvoker that fires an Event invocation per job."""

    def __init__(
        self, function_name: str, region: str, endpoint_url: str | None = None, client=None
    ):
        self.function_name = function_name
        if client is None:
            client_kwargs: dict = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("lambda", **client_kwargs)
        self.lambda_client = client

    def invoke(self, job: AssessmentJob) -> str | None:
        """Invoke the assessment function without waiting for it to finish.

        Returns:
            Request id of the accepted invocation

        Raises:
            DispatchEnqueueFailure: If the invocation is not accepted
        """
        try:
            response = self.lambda_client.invoke(
                FunctionName=self.function_name,
                InvocationType="Event",
                Payload=job.model_dump_json().encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error triggering assessment for {job.subject_id}: {e}")
            msg = f"Could not invoke {self.function_name} for {job.subject_id}: {e}"
            raise DispatchEnqueueFailure(msg) from e

        status = response.get("StatusCode")
        if status != ACCEPTED:
            msg = f"Invocation of {self.function_name} for {job.subject_id} returned {status}"
            raise DispatchEnqueueFailure(msg)

        return response.get("ResponseMetadata", {}).get("RequestId")
