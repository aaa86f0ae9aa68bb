"""Unit tests for the execution sandbox."""

import time
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from assessor.models.enums import OutcomeErrorCode
from assessor.sandbox import ExecutionSandbox, validate_result


class StubRoutine:
    def __init__(self, fn, name="checkStub"):
        self.name = name
        self.fn = fn

    def invoke(self, subject_id, target, credentials):
        return self.fn(subject_id, target, credentials)


@pytest.fixture
def sandbox():
    return ExecutionSandbox(default_timeout=1.0)


def test_valid_result(sandbox, target, credentials):
    """Test a well-formed result passes through."""
    routine = StubRoutine(lambda s, t, c: {"implemented": True, "details": {"stack": t.stack_name}})

    outcome = sandbox.invoke(routine, "alice", target, credentials)

    assert outcome.implemented is True
    assert outcome.details == {"stack": "ctf-unreliable-app-alice-dev"}
    assert outcome.error_code is None


def test_timeout_returns_failure_without_waiting(sandbox, target, credentials):
    """Test a routine sleeping past its deadline is abandoned."""

    def slow(s, t, c):
        time.sleep(2)
        return {"implemented": True}

    start = time.monotonic()
    outcome = sandbox.invoke(StubRoutine(slow), "alice", target, credentials, timeout=0.1)
    elapsed = time.monotonic() - start

    assert outcome.implemented is False
    assert outcome.error_code == OutcomeErrorCode.ROUTINE_TIMEOUT
    assert "did not finish within 0.1s" in outcome.error
    assert elapsed < 1.5


def test_exception_is_captured(sandbox, target, credentials):
    """Test a raising routine becomes a RoutineException outcome."""

    def boom(s, t, c):
        raise KeyError("Resources")

    outcome = sandbox.invoke(StubRoutine(boom), "alice", target, credentials)

    assert outcome.implemented is False
    assert outcome.error_code == OutcomeErrorCode.ROUTINE_EXCEPTION
    assert outcome.details == {"exception_type": "KeyError", "message": "'Resources'"}
    assert "KeyError" in outcome.error


def test_system_exit_is_captured(sandbox, target, credentials):
    """Test a routine calling sys.exit cannot take the engine down."""

    def leave(s, t, c):
        raise SystemExit(3)

    outcome = sandbox.invoke(StubRoutine(leave), "alice", target, credentials)

    assert outcome.error_code == OutcomeErrorCode.ROUTINE_EXCEPTION


@pytest.mark.parametrize(
    "value",
    [None, "implemented", {"implemented": "yes"}, {"implemented": 1}, {"details": {}}],
)
def test_malformed_results(value):
    """Test results without a strict boolean implemented flag are rejected."""
    outcome = validate_result("checkStub", value)

    assert outcome.implemented is False
    assert outcome.error_code == OutcomeErrorCode.ROUTINE_MALFORMED_RESULT


def test_details_from_remaining_keys():
    """Test details fall back to the remaining keys and are made JSON-safe."""
    outcome = validate_result(
        "checkStub", {"implemented": False, "tables": {"Orders"}, "count": 2, "error": "no pitr"}
    )

    assert outcome.details["count"] == 2
    assert "tables" in outcome.details
    assert outcome.error == "no pitr"


def test_pydantic_and_dataclass_results():
    """Test model_dump() objects and dataclasses are accepted."""

    class ModelResult(BaseModel):
        implemented: bool
        details: dict = {}

    @dataclass
    class DataResult:
        implemented: bool

    assert validate_result("m", ModelResult(implemented=True)).implemented is True
    assert validate_result("d", DataResult(implemented=True)).implemented is True


def test_sibling_routines_unaffected(sandbox, target, credentials):
    """Test a failure in one invocation leaves the next one intact."""
    sandbox.invoke(StubRoutine(lambda s, t, c: 1 / 0), "alice", target, credentials)

    ok = StubRoutine(lambda s, t, c: {"implemented": True})
    outcome = sandbox.invoke(ok, "alice", target, credentials)

    assert outcome.implemented is True
