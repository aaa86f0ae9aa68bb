"""Trigger Dispatcher - turns trigger events into assessment invocations.

A raw event is parsed into a TriggerEvent, normalized into unique
(subject, definition) work items, and each item is handed to an
AssessmentInvoker concurrently. One failing hand-off never blocks the others.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Protocol

from assessor.common.metrics import MetricsSink
from assessor.common.tracing import correlation_scope, new_correlation_id
from assessor.config import DispatchConfig
from assessor.errors import DispatchEnqueueFailure
from assessor.models.domain import DispatchRecord, DispatchSummary, WorkItem
from assessor.models.enums import DispatchStatus, TriggerSource
from assessor.models.events import (
    ManualEvent,
    ResourceChangeEvent,
    ScheduledEvent,
    parse_trigger_event,
    subject_from_resource_name,
)
from assessor.models.job import AssessmentJob

logger = logging.getLogger(__name__)

TriggerEventType = ScheduledEvent | ResourceChangeEvent | ManualEvent


class AssessmentInvoker(Protocol):
    """Hands one job to the assessment worker.

    Returns a request id when the hand-off is accepted; raises
    DispatchEnqueueFailure otherwise.
    """

    def invoke(self, job: AssessmentJob) -> str | None: ...


class ActiveSubjectsQuery(Protocol):
    def list_active(self, definition_id: str) -> list[str]: ...


class InProcessInvoker:
    """Runs jobs on a local thread pool (fire-and-forget).

    Used for local development and tests where no queue or function exists.
    """

    def __init__(self, orchestrator, max_workers: int = 4):
        self.orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="assess")
        self.futures: list[Future] = []

    def invoke(self, job: AssessmentJob) -> str:
        try:
            future = self._executor.submit(self.orchestrator.process_job, job)
        except RuntimeError as e:
            msg = f"In-process executor rejected job for {job.subject_id}: {e}"
            raise DispatchEnqueueFailure(msg) from e
        self.futures.append(future)
        return job.correlation_id

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def dedupe(items: list[WorkItem]) -> list[WorkItem]:
    """Drop repeated work items, keeping first-occurrence order."""
    seen: set[WorkItem] = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


class TriggerDispatcher:
    """Dispatches one trigger event per call."""

    def __init__(
        self,
        config: DispatchConfig,
        invoker: AssessmentInvoker,
        subjects_query: ActiveSubjectsQuery,
        fallback_query: ActiveSubjectsQuery | None = None,
        metrics: MetricsSink | None = None,
    ):
        self.config = config
        self.invoker = invoker
        self.subjects_query = subjects_query
        self.fallback_query = fallback_query
        self.metrics = metrics

    def dispatch(self, event: Any) -> DispatchSummary:
        """Dispatch assessments for a raw or already-parsed trigger event.

        Returns:
            DispatchSummary; records are unordered
        """
        parsed = (
            event
            if isinstance(event, TriggerEventType)
            else parse_trigger_event(event)
        )
        if parsed is None:
            logger.warning("Unrecognized trigger event, nothing dispatched")
            return DispatchSummary(
                source=TriggerSource.UNKNOWN, skipped_reason="Unrecognized event type"
            )

        source, items, skipped_reason = self._work_items(parsed)
        items = dedupe(items)
        logger.info(f"Dispatching {len(items)} assessments for {source.value} event")

        if not items:
            return DispatchSummary(
                source=source, skipped_reason=skipped_reason or "No subjects to assess"
            )

        records = []
        workers = min(self.config.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch") as executor:
            futures = [executor.submit(self._dispatch_item, item, source) for item in items]
            for future in as_completed(futures):
                records.append(future.result())

        triggered = sum(1 for r in records if r.status == DispatchStatus.TRIGGERED)
        failed = sum(1 for r in records if r.status == DispatchStatus.FAILED)
        self._emit("AssessmentsDispatched", triggered, {"Source": source.value})
        if failed:
            self._emit("DispatchFailures", failed, {"Source": source.value})

        logger.info(f"Dispatch complete: {triggered} triggered, {failed} failed")
        return DispatchSummary(
            source=source,
            triggered_count=triggered,
            failed_count=failed,
            records=tuple(records),
        )

    def _work_items(
        self, event: TriggerEventType
    ) -> tuple[TriggerSource, list[WorkItem], str | None]:
        if isinstance(event, ScheduledEvent):
            definition_ids = event.definition_ids or tuple(self.config.scheduled_definition_ids)
            items = [
                WorkItem(subject_id=subject_id, definition_id=definition_id)
                for definition_id in definition_ids
                for subject_id in self._active_subjects(definition_id)
            ]
            return TriggerSource.SCHEDULED, items, None

        if isinstance(event, ResourceChangeEvent):
            subject_id = subject_from_resource_name(
                event.resource_name, self.config.resource_prefix
            )
            if subject_id is None:
                logger.info(f"Resource {event.resource_name!r} does not belong to a subject")
                reason = f"Resource '{event.resource_name}' does not match subject naming"
                return TriggerSource.RESOURCE_CHANGE, [], reason
            definition_id = event.definition_id or self.config.default_definition_id
            return (
                TriggerSource.RESOURCE_CHANGE,
                [WorkItem(subject_id=subject_id, definition_id=definition_id)],
                None,
            )

        definition_id = event.definition_id or self.config.default_definition_id
        return (
            TriggerSource.MANUAL,
            [WorkItem(subject_id=event.subject_id, definition_id=definition_id)],
            None,
        )

    def _active_subjects(self, definition_id: str) -> list[str]:
        """Query active subjects, degrading to an empty list when no source answers."""
        try:
            return self.subjects_query.list_active(definition_id)
        except Exception as e:
            if self.fallback_query is None or not self.config.stack_fallback_enabled:
                logger.error(f"Active subjects query failed for {definition_id}: {e}")
                return []
            logger.warning(f"Active subjects query failed for {definition_id}: {e}")

        try:
            return self.fallback_query.list_active(definition_id)
        except Exception as e:
            logger.error(f"Fallback subjects query failed for {definition_id}: {e}")
            return []

    def _dispatch_item(self, item: WorkItem, source: TriggerSource) -> DispatchRecord:
        correlation_id = new_correlation_id()
        with correlation_scope(correlation_id, item.subject_id):
            job = AssessmentJob(
                subject_id=item.subject_id,
                definition_id=item.definition_id,
                correlation_id=correlation_id,
                source=source,
            )
            try:
                request_id = self.invoker.invoke(job)
            except Exception as e:  # DispatchEnqueueFailure or an invoker bug
                logger.error(f"Failed to dispatch {item.subject_id}/{item.definition_id}: {e}")
                return DispatchRecord(
                    subject_id=item.subject_id,
                    definition_id=item.definition_id,
                    source=source,
                    status=DispatchStatus.FAILED,
                    correlation_id=correlation_id,
                    error=str(e),
                )

            logger.info(f"Triggered assessment for {item.subject_id}/{item.definition_id}")
            return DispatchRecord(
                subject_id=item.subject_id,
                definition_id=item.definition_id,
                source=source,
                status=DispatchStatus.TRIGGERED,
                correlation_id=correlation_id,
                request_id=request_id,
            )

    def _emit(self, name: str, value: float, dimensions: dict) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.emit(name, value, "Count", dimensions)
        except Exception as e:
            logger.error(f"Error emitting metric {name}: {e}")
