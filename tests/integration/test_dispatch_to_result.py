"""End-to-end: trigger event through dispatcher, in-process worker and results store."""

from assessor.config import DispatchConfig
from assessor.dispatcher import InProcessInvoker, TriggerDispatcher
from assessor.models.domain import AssessmentFailure, AssessmentResult
from assessor.models.enums import DispatchStatus, FailureReason
from tests.utils import FakeBroker, InMemoryResultsStore


class ActiveSubjects:
    def list_active(self, definition_id):
        return ["A", "B", "A"]


def test_scheduled_dispatch_assesses_each_subject(build_orchestrator, pitr_dlq_definition):
    """Test one subject denied access does not affect the other's persisted result."""
    store = InMemoryResultsStore()
    orchestrator = build_orchestrator(
        pitr_dlq_definition, results_store=store, broker=FakeBroker(denied={"A"})
    )
    invoker = InProcessInvoker(orchestrator, max_workers=2)
    dispatcher = TriggerDispatcher(
        DispatchConfig(scheduled_definition_ids=["reliability-pillar"]), invoker, ActiveSubjects()
    )

    summary = dispatcher.dispatch({"detail-type": "Scheduled Event", "detail": {}})
    invoker.shutdown()

    assert summary.triggered_count == 2
    assert all(r.status == DispatchStatus.TRIGGERED for r in summary.records)

    outcomes = {o.subject_id: o for o in (f.result() for f in invoker.futures)}
    assert isinstance(outcomes["A"], AssessmentFailure)
    assert outcomes["A"].reason == FailureReason.ACCESS_DENIED
    assert isinstance(outcomes["B"], AssessmentResult)
    assert outcomes["B"].score == 10

    assert [r.subject_id for r in store.results] == ["B"]
    records = {r.subject_id: r.correlation_id for r in summary.records}
    assert outcomes["B"].correlation_id == records["B"]
    assert outcomes["A"].correlation_id == records["A"]
