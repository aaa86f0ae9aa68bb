"""DynamoDB adapters for definitions, active subjects and assessment results.

Table layouts (attribute names follow the existing challenge tables):

definitions table (hash key ``definitionId``)::

    {definitionId, name, passThreshold, bundleLocation, active,
     routineTimeoutSeconds?, environmentTemplate?,
     criteria: [{criterionId, name, points, routine, description?, remediation?}]}

subjects table, status GSI (hash key ``status``)::

    {participantId, status: "ACTIVE", definitionId?}

results table (hash key ``subjectId``, range key ``assessmentKey``)::

    {subjectId, assessmentKey: "<definitionId>#<timestamp>#<correlationId>", ...result}
"""

import json
import logging
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from assessor.errors import PersistenceFailure
from assessor.models.domain import AssessmentDefinition, AssessmentResult, Criterion

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "ACTIVE"

_deserializer = TypeDeserializer()
_serializer = TypeSerializer()


def _plain(value: Any) -> Any:
    """Convert deserialized DynamoDB values (Decimal, set) into plain Python values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list | set | tuple):
        return [_plain(v) for v in value]
    return value


def from_item(item: dict) -> dict:
    """Deserialize a low-level DynamoDB item into a plain dict."""
    return {k: _plain(_deserializer.deserialize(v)) for k, v in item.items()}


def to_item(data: dict) -> dict:
    """Serialize a JSON-compatible dict into a low-level DynamoDB item.

    Floats are routed through Decimal since DynamoDB rejects binary floats.
    """
    decimal_safe = json.loads(json.dumps(data), parse_float=Decimal)
    return {k: _serializer.serialize(v) for k, v in decimal_safe.items() if v is not None}


def definition_from_record(record: dict) -> AssessmentDefinition:
    """Build an AssessmentDefinition from a plain definitions-table record."""
    criteria = [
        Criterion(
            criterion_id=c["criterionId"],
            name=c.get("name", c["criterionId"]),
            points=c["points"],
            routine=c["routine"],
            description=c.get("description", ""),
            remediation=c.get("remediation", ""),
        )
        for c in record.get("criteria", [])
    ]
    return AssessmentDefinition(
        definition_id=record["definitionId"],
        name=record.get("name", record["definitionId"]),
        criteria=criteria,
        pass_threshold=record["passThreshold"],
        bundle_location=record["bundleLocation"],
        active=record.get("active", True),
        routine_timeout_seconds=record.get("routineTimeoutSeconds"),
        environment_template=record.get("environmentTemplate"),
    )


def _client(client, region: str, endpoint_url: str | None):
    if client is not None:
        return client
    client_kwargs: dict = {"region_name": region}
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    return boto3.client("dynamodb", **client_kwargs)


class DynamoDefinitionStore:
    """DefinitionStore backed by a DynamoDB table."""

    def __init__(self, table_name: str, region: str, endpoint_url: str | None = None, client=None):
        self.table_name = table_name
        self.dynamodb = _client(client, region, endpoint_url)

    def get(self, definition_id: str) -> AssessmentDefinition | None:
        """Fetch a definition, or None if no such record exists.

        Raises:
            ClientError: If the table cannot be read
            pydantic.ValidationError: If the stored record is malformed
        """
        try:
            response = self.dynamodb.get_item(
                TableName=self.table_name,
                Key={"definitionId": {"S": definition_id}},
                ConsistentRead=True,
            )
        except ClientError as e:
            logger.error(f"DynamoDB get_item failed for definition {definition_id}: {e}")
            raise

        item = response.get("Item")
        if not item:
            return None
        return definition_from_record(from_item(item))


class DynamoActiveSubjectsQuery:
    """ActiveSubjectsQuery over the subjects table's status index."""

    def __init__(
        self,
        table_name: str,
        index_name: str,
        region: str,
        endpoint_url: str | None = None,
        client=None,
    ):
        self.table_name = table_name
        self.index_name = index_name
        self.dynamodb = _client(client, region, endpoint_url)

    def list_active(self, definition_id: str) -> list[str]:
        """List subjects currently active for a definition.

        Records without a definitionId are treated as active for every definition.
        Duplicates are returned as stored; the dispatcher deduplicates.

        Raises:
            ClientError: If the query fails
        """
        paginator = self.dynamodb.get_paginator("query")
        pages = paginator.paginate(
            TableName=self.table_name,
            IndexName=self.index_name,
            KeyConditionExpression="#status = :status",
            FilterExpression="attribute_not_exists(definitionId) OR definitionId = :definition",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={
                ":status": {"S": ACTIVE_STATUS},
                ":definition": {"S": definition_id},
            },
            ProjectionExpression="participantId",
        )

        subject_ids = []
        for page in pages:
            for item in page.get("Items", []):
                record = from_item(item)
                if record.get("participantId"):
                    subject_ids.append(str(record["participantId"]))

        logger.info(f"Found {len(subject_ids)} active subjects for {definition_id}")
        return subject_ids


class DynamoResultsStore:
    """Append-only ResultsStore backed by a DynamoDB table."""

    def __init__(self, table_name: str, region: str, endpoint_url: str | None = None, client=None):
        self.table_name = table_name
        self.dynamodb = _client(client, region, endpoint_url)

    @staticmethod
    def assessment_key(result: AssessmentResult) -> str:
        return f"{result.definition_id}#{result.timestamp.isoformat()}#{result.correlation_id}"

    def put(self, result: AssessmentResult) -> None:
        """Write a new result record; existing records are never overwritten.

        Raises:
            PersistenceFailure: If the write fails
        """
        record = result.model_dump(mode="json")
        record["subjectId"] = result.subject_id
        record["assessmentKey"] = self.assessment_key(result)

        try:
            self.dynamodb.put_item(
                TableName=self.table_name,
                Item=to_item(record),
                ConditionExpression="attribute_not_exists(assessmentKey)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to persist result for {result.subject_id}: {e}")
            msg = f"Result for {result.subject_id}/{result.definition_id} was not persisted: {e}"
            raise PersistenceFailure(msg) from e

        logger.info(f"Persisted result {record['assessmentKey']} for {result.subject_id}")
