"""Assessment error taxonomy.

Terminal errors (subclasses of AssessmentError) abort a single assessment run
and are surfaced to the caller. They are never retried automatically.

Criterion-level failures are not exceptions: the sandbox and orchestrator
absorb them into zero-point outcomes tagged with an OutcomeErrorCode.
"""

from assessor.models.enums import FailureReason


class AssessmentError(Exception):
    """Base class for errors that abort an assessment run."""

    reason: FailureReason

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DefinitionNotFound(AssessmentError):
    reason = FailureReason.DEFINITION_NOT_FOUND


class DefinitionInactive(AssessmentError):
    reason = FailureReason.DEFINITION_INACTIVE


class BundleUnavailable(AssessmentError):
    reason = FailureReason.BUNDLE_UNAVAILABLE


class BundleInvalid(AssessmentError):
    reason = FailureReason.BUNDLE_INVALID


class AccessDenied(AssessmentError):
    reason = FailureReason.ACCESS_DENIED


class PersistenceFailure(Exception):
    """Raised by results stores when a completed result cannot be written.

    The orchestrator logs it and still returns the computed result.
    """


class DispatchEnqueueFailure(Exception):
    """Raised by invokers when a work item cannot be handed to the worker."""
