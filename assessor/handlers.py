"""Function-style entry points.

- dispatch_handler: trigger events (schedule, stack change, manual API) -> dispatch summary
- assessment_handler: one AssessmentJob payload -> assessment result or failure

Components are built on first use and reused by warm invocations.
"""

import json
import logging
from functools import lru_cache

from pydantic import ValidationError

from assessor.bootstrap import build_dispatcher, build_orchestrator
from assessor.common.log_utils import configure_logging
from assessor.dispatcher import TriggerDispatcher
from assessor.models.domain import AssessmentFailure
from assessor.models.enums import FailureReason
from assessor.models.job import AssessmentJob
from assessor.orchestrator import AssessmentOrchestrator

configure_logging()
logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    FailureReason.DEFINITION_NOT_FOUND: 404,
    FailureReason.DEFINITION_INACTIVE: 409,
    FailureReason.ACCESS_DENIED: 403,
    FailureReason.BUNDLE_UNAVAILABLE: 502,
    FailureReason.BUNDLE_INVALID: 502,
}


@lru_cache(maxsize=1)
def get_dispatcher() -> TriggerDispatcher:
    return build_dispatcher()


@lru_cache(maxsize=1)
def get_orchestrator() -> AssessmentOrchestrator:
    return build_orchestrator()


def _response(status_code: int, body: dict | str) -> dict:
    return {
        "statusCode": status_code,
        "body": body if isinstance(body, str) else json.dumps(body, default=str),
    }


def dispatch_handler(event, context=None) -> dict:
    """Dispatch assessments for a trigger event."""
    logger.info(f"Assessment trigger received event: {json.dumps(event, default=str)}")

    summary = get_dispatcher().dispatch(event)
    if summary.skipped_reason:
        message = summary.skipped_reason
    else:
        message = (
            f"Triggered {summary.triggered_count} assessments ({summary.failed_count} failed)"
        )

    return _response(
        200,
        {
            "message": message,
            "source": summary.source.value,
            "results": [r.model_dump(mode="json") for r in summary.records],
        },
    )


def assessment_handler(event, context=None) -> dict:
    """Run one assessment for an AssessmentJob payload."""
    try:
        job = AssessmentJob.model_validate(event)
    except ValidationError as e:
        logger.error(f"Invalid assessment job payload: {e}")
        return _response(400, {"error": "Invalid assessment job", "details": e.errors()})

    outcome = get_orchestrator().process_job(job)
    if isinstance(outcome, AssessmentFailure):
        return _response(FAILURE_STATUS[outcome.reason], outcome.model_dump_json())
    return _response(200, outcome.model_dump_json())
