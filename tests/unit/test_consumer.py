"""Unit tests for the SQS consumer loop."""

import signal
from unittest.mock import MagicMock

import pytest

from assessor.main import SqsConsumer
from assessor.models.job import AssessmentJob


@pytest.fixture(autouse=True)
def no_signal_handlers(mocker):
    mocker.patch("assessor.main.signal.signal")


@pytest.fixture
def sqs_client():
    return MagicMock()


def _job(definition_id="reliability-pillar"):
    return AssessmentJob(subject_id="alice", definition_id=definition_id)


def test_completed_job_is_deleted(sqs_client, build_orchestrator, pitr_dlq_definition):
    sqs_client.receive_messages.return_value = [(_job(), "r-1")]
    consumer = SqsConsumer(sqs_client, build_orchestrator(pitr_dlq_definition))

    assert consumer.poll_once() == 1
    sqs_client.delete_message.assert_called_once_with("r-1")


def test_terminal_failure_is_deleted(sqs_client, build_orchestrator, caplog):
    """Test a failed assessment is not retried through redelivery."""
    sqs_client.receive_messages.return_value = [(_job("nope"), "r-2")]
    consumer = SqsConsumer(sqs_client, build_orchestrator())

    consumer.poll_once()

    sqs_client.delete_message.assert_called_once_with("r-2")
    assert "DefinitionNotFound" in caplog.text


def test_unexpected_error_leaves_message(sqs_client):
    """Test infrastructure errors leave the message for redelivery."""
    orchestrator = MagicMock()
    orchestrator.process_job.side_effect = ConnectionError("dynamodb down")
    sqs_client.receive_messages.return_value = [(_job(), "r-3")]
    consumer = SqsConsumer(sqs_client, orchestrator)

    with pytest.raises(ConnectionError):
        consumer.poll_once()

    sqs_client.delete_message.assert_not_called()


def test_empty_poll(sqs_client):
    sqs_client.receive_messages.return_value = []

    assert SqsConsumer(sqs_client, MagicMock()).poll_once() == 0


def test_sigterm_stops_loop(sqs_client):
    consumer = SqsConsumer(sqs_client, MagicMock())

    consumer._request_shutdown(signal.SIGTERM, None)

    assert consumer.running is False
