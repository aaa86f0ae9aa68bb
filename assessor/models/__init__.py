"""Domain models for reliability assessments."""

from assessor.models.domain import (
    AssessmentDefinition,
    AssessmentFailure,
    AssessmentResult,
    CheckOutcome,
    Credentials,
    Criterion,
    CriterionOutcome,
    DispatchRecord,
    DispatchSummary,
    EnvironmentTarget,
    Feedback,
    FeedbackItem,
    WorkItem,
)

__all__ = [
    "AssessmentDefinition",
    "Criterion",
    "EnvironmentTarget",
    "Credentials",
    "CheckOutcome",
    "CriterionOutcome",
    "Feedback",
    "FeedbackItem",
    "AssessmentResult",
    "AssessmentFailure",
    "WorkItem",
    "DispatchRecord",
    "DispatchSummary",
]
