"""Deadline-bounded execution of a single routine.

Every failure mode of a routine (timeout, exception, malformed result) is
converted into a zero-point CheckOutcome. The sandbox never raises for a
routine failure, so one routine can never abort its siblings.

Routines run on a dedicated daemon thread. When the deadline elapses the
sandbox stops waiting and discards whatever the routine produces later;
the thread itself cannot be killed and finishes in the background.
"""

import contextvars
import dataclasses
import json
import logging
import queue
import threading
from collections.abc import Mapping
from typing import Any

from assessor.loader.protocols import CheckRoutine
from assessor.models.domain import CheckOutcome, Credentials, EnvironmentTarget
from assessor.models.enums import OutcomeErrorCode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
RESERVED_KEYS = ("implemented", "details", "error")


class ExecutionSandbox:
    """Invokes routines under a wall-clock deadline and validates what they return."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.default_timeout = default_timeout

    def invoke(
        self,
        routine: CheckRoutine,
        subject_id: str,
        target: EnvironmentTarget,
        credentials: Credentials,
        timeout: float | None = None,
    ) -> CheckOutcome:
        """Run a routine and convert its result into a CheckOutcome.

        Args:
            routine: Loaded routine to run
            subject_id: Subject being assessed
            target: Subject's environment target
            credentials: Short-lived credentials for the target
            timeout: Deadline in seconds (default: sandbox default)

        Returns:
            CheckOutcome; implemented=False with an error code on any failure
        """
        deadline = timeout if timeout is not None else self.default_timeout
        mailbox: queue.Queue = queue.Queue(maxsize=1)

        def _run() -> None:
            try:
                mailbox.put(("ok", routine.invoke(subject_id, target, credentials)))
            except (Exception, SystemExit) as e:
                mailbox.put(("error", e))

        # Copy context so routine log records keep the run's correlation id
        ctx = contextvars.copy_context()
        worker = threading.Thread(
            target=ctx.run, args=(_run,), name=f"routine-{routine.name}", daemon=True
        )
        worker.start()

        try:
            status, value = mailbox.get(timeout=deadline)
        except queue.Empty:
            logger.warning(f"Routine {routine.name} timed out after {deadline:g}s")
            return CheckOutcome.failure(
                OutcomeErrorCode.ROUTINE_TIMEOUT,
                f"Routine '{routine.name}' did not finish within {deadline:g}s",
                {"timeout_seconds": deadline},
            )

        if status == "error":
            logger.warning(f"Routine {routine.name} raised {type(value).__name__}: {value}")
            return CheckOutcome.failure(
                OutcomeErrorCode.ROUTINE_EXCEPTION,
                f"Routine '{routine.name}' raised {type(value).__name__}: {value}",
                {"exception_type": type(value).__name__, "message": str(value)},
            )

        return validate_result(routine.name, value)


def _as_mapping(value: Any) -> Mapping | None:
    if isinstance(value, Mapping):
        return value
    if hasattr(value, "model_dump") and callable(value.model_dump):
        dumped = value.model_dump()
        return dumped if isinstance(dumped, Mapping) else None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return None


def _json_safe(details: Mapping) -> dict[str, Any]:
    return json.loads(json.dumps(dict(details), default=str))


def validate_result(routine_name: str, value: Any) -> CheckOutcome:
    """Validate a routine's return value against the outcome contract.

    The value must be a mapping (or pydantic model / dataclass) with an
    ``implemented`` field that is strictly a bool. Details come from a
    ``details`` mapping when present, otherwise from the remaining keys.

    Args:
        routine_name: Routine that produced the value (for error messages)
        value: Whatever the routine returned

    Returns:
        CheckOutcome; RoutineMalformedResult when the contract is violated
    """
    data = _as_mapping(value)
    if data is None:
        return CheckOutcome.failure(
            OutcomeErrorCode.ROUTINE_MALFORMED_RESULT,
            f"Routine '{routine_name}' returned {type(value).__name__}, "
            "expected a mapping with an 'implemented' boolean",
            {"returned_type": type(value).__name__},
        )

    implemented = data.get("implemented")
    if not isinstance(implemented, bool):
        found = "missing" if "implemented" not in data else type(implemented).__name__
        return CheckOutcome.failure(
            OutcomeErrorCode.ROUTINE_MALFORMED_RESULT,
            f"Routine '{routine_name}' result has no boolean 'implemented' field ({found})",
            {"returned_keys": sorted(str(k) for k in data)},
        )

    raw_details = data.get("details")
    if isinstance(raw_details, Mapping):
        details = raw_details
    else:
        details = {str(k): v for k, v in data.items() if k not in RESERVED_KEYS}

    try:
        safe_details = _json_safe(details)
    except (TypeError, ValueError) as e:
        return CheckOutcome.failure(
            OutcomeErrorCode.ROUTINE_MALFORMED_RESULT,
            f"Routine '{routine_name}' returned details that cannot be serialized: {e}",
        )

    error = data.get("error")
    return CheckOutcome(
        implemented=implemented,
        details=safe_details,
        error=str(error) if error is not None else None,
    )
