"""Assessment job message schema for queue and function based worker coordination."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from assessor.models.enums import TriggerSource


class AssessmentJob(BaseModel):
    """Message handed from the dispatcher to the assessment worker.

    Attributes:
        subject_id: Subject to assess
        definition_id: Definition to assess the subject against
        correlation_id: Ties the dispatch record to the resulting run
        source: Trigger source that produced the work item
        submitted_at: When the dispatcher enqueued the job
    """

    subject_id: str = Field(..., min_length=1, description="Subject identifier")
    definition_id: str = Field(..., min_length=1, description="Assessment definition identifier")
    correlation_id: str = Field(default="", description="Dispatch correlation identifier")
    source: TriggerSource = Field(default=TriggerSource.MANUAL)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {
        "json_schema_extra": {
            "example": {
                "subject_id": "alice",
                "definition_id": "reliability-pillar",
                "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
                "source": "scheduled-event",
                "submitted_at": "2025-05-17T14:30:00Z",
            }
        }
    }
