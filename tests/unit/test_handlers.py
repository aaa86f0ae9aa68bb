"""Unit tests for the function-style entry points."""

import json

import pytest

from assessor import handlers
from assessor.config import DispatchConfig
from assessor.dispatcher import TriggerDispatcher


class ListInvoker:
    def __init__(self):
        self.jobs = []

    def invoke(self, job):
        self.jobs.append(job)
        return f"req-{len(self.jobs)}"


class Subjects:
    def list_active(self, definition_id):
        return ["alice", "bob"]


@pytest.fixture
def invoker(mocker):
    invoker = ListInvoker()
    dispatcher = TriggerDispatcher(DispatchConfig(), invoker, Subjects())
    mocker.patch.object(handlers, "get_dispatcher", return_value=dispatcher)
    return invoker


def test_dispatch_handler_scheduled(invoker):
    response = handlers.dispatch_handler({"detail-type": "Scheduled Event", "detail": {}})

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["message"] == "Triggered 2 assessments (0 failed)"
    assert body["source"] == "scheduled-event"
    assert {r["subject_id"] for r in body["results"]} == {"alice", "bob"}


def test_dispatch_handler_unrecognized_event(invoker):
    response = handlers.dispatch_handler({"hello": "world"})

    body = json.loads(response["body"])
    assert response["statusCode"] == 200
    assert body["message"] == "Unrecognized event type"
    assert body["results"] == []
    assert invoker.jobs == []


def test_assessment_handler_result(build_orchestrator, pitr_dlq_definition, mocker):
    mocker.patch.object(
        handlers, "get_orchestrator", return_value=build_orchestrator(pitr_dlq_definition)
    )

    response = handlers.assessment_handler(
        {"subject_id": "alice", "definition_id": "reliability-pillar", "correlation_id": "c-1"}
    )

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["score"] == 10
    assert body["correlation_id"] == "c-1"


def test_assessment_handler_failure_status(build_orchestrator, mocker):
    """Test taxonomy failures map onto HTTP-style status codes."""
    mocker.patch.object(handlers, "get_orchestrator", return_value=build_orchestrator())

    response = handlers.assessment_handler({"subject_id": "alice", "definition_id": "nope"})

    assert response["statusCode"] == 404
    assert json.loads(response["body"])["reason"] == "DefinitionNotFound"


def test_assessment_handler_invalid_payload(mocker):
    get_orchestrator = mocker.patch.object(handlers, "get_orchestrator")

    response = handlers.assessment_handler({"subject_id": ""})

    assert response["statusCode"] == 400
    get_orchestrator.assert_not_called()
