"""Core domain models for reliability assessments.

These models represent definitions, outcomes, results and dispatch records
as immutable value objects. They are created fresh on every run and never
updated in place.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from assessor.models.enums import (
    DispatchStatus,
    FailureReason,
    OutcomeErrorCode,
    TriggerSource,
)


class Criterion(BaseModel):
    """One scored check within an assessment definition.

    Attributes:
        criterion_id: Identifier, unique within its definition
        name: Display name used in feedback
        points: Points awarded when the routine reports implemented=True
        routine: Name of the routine in the definition's bundle
        description: What the criterion looks for
        remediation: Hint shown in feedback when the criterion is missed
    """

    model_config = ConfigDict(frozen=True)

    criterion_id: str = Field(description="Criterion ID")
    name: str = Field(description="Display name")
    points: int = Field(ge=0, description="Point value")
    routine: str = Field(description="Routine name within the loaded bundle")
    description: str = Field(default="", description="What the check looks for")
    remediation: str = Field(default="", description="Suggestion shown when missed")


class AssessmentDefinition(BaseModel):
    """A named, ordered set of criteria plus the bundle implementing them.

    Attributes:
        definition_id: Unique definition identifier
        name: Display name
        criteria: Ordered criteria; feedback and outcomes follow this order
        pass_threshold: Minimum score for the assessment to pass
        bundle_location: Opaque reference to the routine bundle
        active: Inactive definitions cannot be run
        routine_timeout_seconds: Per-definition routine deadline (None = engine default)
        environment_template: Stack naming convention (None = engine default)
    """

    model_config = ConfigDict(frozen=True)

    definition_id: str = Field(description="Definition ID")
    name: str = Field(description="Display name")
    criteria: tuple[Criterion, ...] = Field(description="Ordered criteria")
    pass_threshold: float = Field(ge=0, description="Score required to pass")
    bundle_location: str = Field(description="Routine bundle location")
    active: bool = Field(default=True)
    routine_timeout_seconds: float | None = Field(default=None, gt=0)
    environment_template: str | None = Field(default=None)

    @model_validator(mode="after")
    def _unique_criterion_ids(self) -> "AssessmentDefinition":
        seen: set[str] = set()
        for criterion in self.criteria:
            if criterion.criterion_id in seen:
                msg = f"Duplicate criterion id '{criterion.criterion_id}' in {self.definition_id}"
                raise ValueError(msg)
            seen.add(criterion.criterion_id)
        return self

    @property
    def max_score(self) -> int:
        return sum(c.points for c in self.criteria)

    @property
    def routine_names(self) -> set[str]:
        return {c.routine for c in self.criteria}


class EnvironmentTarget(BaseModel):
    """Where a subject's resources live and how to reach them."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    stack_name: str
    role_arn: str
    region: str


class Credentials(BaseModel):
    """Short-lived credentials for one subject's environment.

    Secrets are held as SecretStr so they never appear in reprs or logs.
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: SecretStr
    session_token: SecretStr
    expiration: datetime

    def client_kwargs(self, region: str | None = None) -> dict:
        """Keyword arguments for boto3.client() using these credentials."""
        kwargs = {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key.get_secret_value(),
            "aws_session_token": self.session_token.get_secret_value(),
        }
        if region:
            kwargs["region_name"] = region
        return kwargs

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expiration


class CheckOutcome(BaseModel):
    """Result of running one routine, before it is bound to a criterion."""

    model_config = ConfigDict(frozen=True)

    implemented: bool
    details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    error_code: OutcomeErrorCode | None = None

    @classmethod
    def failure(
        cls, code: OutcomeErrorCode, error: str, details: dict[str, Any] | None = None
    ) -> "CheckOutcome":
        return cls(implemented=False, details=details or {}, error=error, error_code=code)


class CriterionOutcome(BaseModel):
    """A CheckOutcome bound to its criterion, with awarded points."""

    model_config = ConfigDict(frozen=True)

    criterion_id: str
    name: str
    implemented: bool
    points: int = Field(ge=0, description="Awarded points (0 unless implemented)")
    max_points: int = Field(ge=0)
    details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    error_code: OutcomeErrorCode | None = None
    duration_ms: float = Field(default=0.0, ge=0)

    @classmethod
    def from_check(
        cls, criterion: Criterion, outcome: CheckOutcome, duration_ms: float = 0.0
    ) -> "CriterionOutcome":
        return cls(
            criterion_id=criterion.criterion_id,
            name=criterion.name,
            implemented=outcome.implemented,
            points=criterion.points if outcome.implemented is True else 0,
            max_points=criterion.points,
            details=outcome.details,
            error=outcome.error,
            error_code=outcome.error_code,
            duration_ms=duration_ms,
        )


class FeedbackItem(BaseModel):
    """One line of feedback for a criterion."""

    model_config = ConfigDict(frozen=True)

    criterion_id: str
    name: str
    points: int = Field(description="Achieved points (implemented) or missed points (suggestions)")
    detail: str = Field(default="")
    error: str | None = None


class Feedback(BaseModel):
    """Human-readable feedback partitioned into achieved and missed criteria."""

    model_config = ConfigDict(frozen=True)

    summary: str
    implemented: tuple[FeedbackItem, ...] = ()
    suggestions: tuple[FeedbackItem, ...] = ()


class AssessmentResult(BaseModel):
    """Outcome of one completed assessment run (append-only history record)."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    definition_id: str
    outcomes: tuple[CriterionOutcome, ...]
    score: int = Field(ge=0)
    max_score: int = Field(ge=0)
    passed: bool
    feedback: Feedback
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str = ""
    duration_ms: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _score_matches_outcomes(self) -> "AssessmentResult":
        awarded = sum(o.points for o in self.outcomes if o.implemented)
        if awarded != self.score:
            msg = f"Score {self.score} does not match awarded points {awarded}"
            raise ValueError(msg)
        if self.score > self.max_score:
            msg = f"Score {self.score} exceeds maximum {self.max_score}"
            raise ValueError(msg)
        return self


class AssessmentFailure(BaseModel):
    """Structured terminal failure returned instead of a result."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    definition_id: str
    reason: FailureReason
    message: str
    correlation_id: str = ""


class WorkItem(BaseModel):
    """A unique (subject, definition) pair to assess. Hashable."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    definition_id: str


class DispatchRecord(BaseModel):
    """Dispatch status for one work item (transient, not persisted)."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    definition_id: str
    source: TriggerSource
    status: DispatchStatus
    correlation_id: str
    request_id: str | None = None
    error: str | None = None


class DispatchSummary(BaseModel):
    """Outcome of one dispatch cycle. Records are unordered."""

    model_config = ConfigDict(frozen=True)

    source: TriggerSource
    triggered_count: int = 0
    failed_count: int = 0
    skipped_reason: str | None = None
    records: tuple[DispatchRecord, ...] = ()
