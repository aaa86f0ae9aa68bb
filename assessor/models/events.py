"""Trigger event shapes accepted by the dispatcher.

Raw events arrive from EventBridge schedules, CloudFormation stack status
notifications, API Gateway style requests and direct invocations. They are
parsed into the TriggerEvent union here, before any I/O happens.
"""

import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SCHEDULED_DETAIL_TYPE = "Scheduled Event"
STACK_CHANGE_DETAIL_TYPE = "CloudFormation Stack Status Change"


class ScheduledEvent(BaseModel):
    """Timer tick: assess every active subject of the listed definitions."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scheduled"] = "scheduled"
    definition_ids: tuple[str, ...] = ()


class ResourceChangeEvent(BaseModel):
    """A subject's stack changed; the subject is encoded in the resource name."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["resource-change"] = "resource-change"
    resource_name: str
    definition_id: str | None = None


class ManualEvent(BaseModel):
    """An explicit on-demand request for one subject."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["manual"] = "manual"
    subject_id: str = Field(min_length=1)
    definition_id: str | None = None


TriggerEvent = Annotated[
    ScheduledEvent | ResourceChangeEvent | ManualEvent, Field(discriminator="kind")
]


def stack_name_from_id(stack_id: str) -> str:
    """Extract the stack name from a CloudFormation stack ARN.

    arn:aws:cloudformation:us-east-1:123456789012:stack/<name>/<uuid> -> <name>
    """
    parts = stack_id.split("/")
    return parts[1] if len(parts) > 1 else ""


def subject_from_resource_name(resource_name: str, prefix: str) -> str | None:
    """Extract the subject id from a resource name using the naming convention.

    ctf-unreliable-app-alice-dev -> alice (prefix "ctf-unreliable-app-")

    Returns:
        The subject id, or None if the name does not belong to a subject
    """
    if not resource_name or not resource_name.startswith(prefix):
        return None
    subject_id = resource_name[len(prefix) :].split("-")[0]
    return subject_id or None


def parse_trigger_event(
    raw: Any,
) -> ScheduledEvent | ResourceChangeEvent | ManualEvent | None:
    """Parse a raw event into a TriggerEvent.

    Args:
        raw: Decoded event payload

    Returns:
        The parsed event, or None if the shape is not recognised
    """
    if not isinstance(raw, dict):
        return None

    detail = raw.get("detail") if isinstance(raw.get("detail"), dict) else {}
    detail_type = raw.get("detail-type")
    source = raw.get("source")

    try:
        if detail_type == SCHEDULED_DETAIL_TYPE or source in ("scheduled", "scheduled-event"):
            ids = detail.get("definition_ids") or raw.get("definition_ids") or ()
            return ScheduledEvent(definition_ids=ids)

        if detail_type == STACK_CHANGE_DETAIL_TYPE or source == "resource-change":
            resource_name = detail.get("stackName") or raw.get("resource_name") or ""
            if not resource_name and detail.get("stackId"):
                resource_name = stack_name_from_id(detail["stackId"])
            return ResourceChangeEvent(
                resource_name=resource_name,
                definition_id=detail.get("definition_id") or raw.get("definition_id"),
            )

        path_params = raw.get("pathParameters") or {}
        if raw.get("httpMethod") and path_params.get("participantId"):
            return ManualEvent(
                subject_id=path_params["participantId"],
                definition_id=path_params.get("definitionId"),
            )

        direct = source is None and ("participantId" in raw or "subject_id" in raw)
        if source in ("manual", "manual-api") or direct:
            subject_id = raw.get("subject_id") or raw.get("participantId")
            if subject_id:
                return ManualEvent(subject_id=subject_id, definition_id=raw.get("definition_id"))
    except ValidationError as e:
        logger.warning(f"Malformed trigger event ignored: {e}")
        return None

    return None
