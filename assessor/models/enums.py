"""Enums shared by the assessment core, the dispatcher and persisted records."""

from enum import Enum


class AssessmentPhase(Enum):
    """Lifecycle of a single assessment run.

    FAILED is reachable only from RESOLVING, LOADING and AUTHORIZING.
    """

    RESOLVING = "resolving"
    LOADING = "loading"
    AUTHORIZING = "authorizing"
    EVALUATING = "evaluating"
    SCORING = "scoring"
    PERSISTED = "persisted"
    FAILED = "failed"


class FailureReason(Enum):
    """Terminal failures that abort a whole assessment run."""

    DEFINITION_NOT_FOUND = "DefinitionNotFound"
    DEFINITION_INACTIVE = "DefinitionInactive"
    BUNDLE_UNAVAILABLE = "BundleUnavailable"
    BUNDLE_INVALID = "BundleInvalid"
    ACCESS_DENIED = "AccessDenied"


class OutcomeErrorCode(Enum):
    """Criterion-level failures, recovered into zero-point outcomes."""

    ROUTINE_MISSING = "RoutineMissing"
    ROUTINE_TIMEOUT = "RoutineTimeout"
    ROUTINE_EXCEPTION = "RoutineException"
    ROUTINE_MALFORMED_RESULT = "RoutineMalformedResult"


class TriggerSource(Enum):
    """Where a dispatch request came from."""

    SCHEDULED = "scheduled-event"
    RESOURCE_CHANGE = "resource-change"
    MANUAL = "manual-api"
    UNKNOWN = "unknown"


class DispatchStatus(Enum):
    """Per work item dispatch status."""

    TRIGGERED = "triggered"
    FAILED = "failed"
    SKIPPED = "skipped"
