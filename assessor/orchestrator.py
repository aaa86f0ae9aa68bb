"""Assessment Orchestrator - resolves, loads, authorizes, evaluates, scores and persists."""

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from assessor.common.metrics import MetricsSink
from assessor.common.tracing import correlation_scope, new_correlation_id
from assessor.config import EngineConfig
from assessor.errors import AssessmentError, PersistenceFailure
from assessor.loader.protocols import CheckRoutine, LoadedBundleLike, RoutineProvider
from assessor.models.domain import (
    AssessmentDefinition,
    AssessmentFailure,
    AssessmentResult,
    CheckOutcome,
    Credentials,
    Criterion,
    CriterionOutcome,
    EnvironmentTarget,
)
from assessor.models.enums import AssessmentPhase, OutcomeErrorCode
from assessor.models.job import AssessmentJob
from assessor.resolver import DefinitionResolver, derive_environment_target
from assessor.sandbox.sandbox import ExecutionSandbox
from assessor.scoring import build_feedback, is_passed, total_score

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def acquire(self, target: EnvironmentTarget) -> Credentials: ...


class ResultsStore(Protocol):
    """Append-only store for completed results. Raises PersistenceFailure."""

    def put(self, result: AssessmentResult) -> None: ...


class AssessmentOrchestrator:
    """Drives one assessment run per call.

    Phases: RESOLVING -> LOADING -> AUTHORIZING -> EVALUATING -> SCORING -> PERSISTED.
    A taxonomy error in the first three phases fails the whole run and nothing is
    persisted. Criterion failures during EVALUATING become zero-point outcomes.
    """

    def __init__(
        self,
        resolver: DefinitionResolver,
        loader: RoutineProvider,
        broker: IdentityProvider,
        sandbox: ExecutionSandbox,
        results_store: ResultsStore,
        engine_config: EngineConfig,
        region: str,
        metrics: MetricsSink | None = None,
    ):
        self.resolver = resolver
        self.loader = loader
        self.broker = broker
        self.sandbox = sandbox
        self.results_store = results_store
        self.engine_config = engine_config
        self.region = region
        self.metrics = metrics

    def run_assessment(
        self, subject_id: str, definition_id: str, correlation_id: str | None = None
    ) -> AssessmentResult:
        """Run a full assessment of one subject against one definition.

        Args:
            subject_id: Subject to assess
            definition_id: Definition to assess against
            correlation_id: Id from the dispatch record (generated if absent)

        Returns:
            The completed AssessmentResult, also when persisting it failed

        Raises:
            AssessmentError: DefinitionNotFound, DefinitionInactive, BundleUnavailable,
                BundleInvalid or AccessDenied
        """
        correlation_id = correlation_id or new_correlation_id()
        with correlation_scope(correlation_id, subject_id):
            start_time = time.monotonic()
            logger.info(f"Starting assessment of {subject_id} against {definition_id}")

            phase = AssessmentPhase.RESOLVING
            try:
                logger.info("Step 1: Resolving definition")
                definition = self.resolver.resolve(definition_id)
                target = derive_environment_target(
                    subject_id, definition, self.engine_config, self.region
                )

                phase = AssessmentPhase.LOADING
                logger.info(f"Step 2: Loading routine bundle {definition.bundle_location}")
                bundle = self.loader.load(definition.bundle_location, definition.routine_names)

                phase = AssessmentPhase.AUTHORIZING
                logger.info(f"Step 3: Acquiring credentials for {target.stack_name}")
                credentials = self.broker.acquire(target)
            except AssessmentError as e:
                logger.error(
                    f"Assessment {phase.value} -> {AssessmentPhase.FAILED.value}: "
                    f"{e.reason.value}: {e.message}"
                )
                self._emit(
                    "AssessmentsFailed",
                    1,
                    dimensions={"DefinitionId": definition_id, "Reason": e.reason.value},
                )
                raise

            phase = AssessmentPhase.EVALUATING
            logger.info(f"Step 4: Evaluating {len(definition.criteria)} criteria")
            outcomes = self._evaluate(definition, bundle, subject_id, target, credentials)

            phase = AssessmentPhase.SCORING
            logger.info("Step 5: Scoring")
            score = total_score(outcomes)
            passed = is_passed(score, definition.pass_threshold)
            result = AssessmentResult(
                subject_id=subject_id,
                definition_id=definition.definition_id,
                outcomes=tuple(outcomes),
                score=score,
                max_score=definition.max_score,
                passed=passed,
                feedback=build_feedback(definition, outcomes, score, passed),
                correlation_id=correlation_id,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

            logger.info("Step 6: Persisting result")
            try:
                self.results_store.put(result)
                phase = AssessmentPhase.PERSISTED
            except PersistenceFailure as e:
                logger.error(f"Result for {subject_id}/{definition_id} was not persisted: {e}")

            self._emit("AssessmentsCompleted", 1, dimensions={"DefinitionId": definition_id})
            self._emit(
                "AssessmentScore", result.score, "None", dimensions={"DefinitionId": definition_id}
            )
            self._emit(
                "AssessmentDurationMs",
                result.duration_ms,
                "Milliseconds",
                dimensions={"DefinitionId": definition_id},
            )

            logger.info(
                f"Assessment of {subject_id} finished ({phase.value}): "
                f"{result.score}/{result.max_score}, passed={result.passed}, "
                f"{result.duration_ms:.0f}ms"
            )
            return result

    def process_job(self, job: AssessmentJob) -> AssessmentResult | AssessmentFailure:
        """Run the assessment for a queued job, converting terminal failures.

        Returns:
            AssessmentResult, or AssessmentFailure carrying the taxonomy tag
        """
        correlation_id = job.correlation_id or new_correlation_id()
        try:
            return self.run_assessment(job.subject_id, job.definition_id, correlation_id)
        except AssessmentError as e:
            return AssessmentFailure(
                subject_id=job.subject_id,
                definition_id=job.definition_id,
                reason=e.reason,
                message=e.message,
                correlation_id=correlation_id,
            )

    def _evaluate(
        self,
        definition: AssessmentDefinition,
        bundle: LoadedBundleLike,
        subject_id: str,
        target: EnvironmentTarget,
        credentials: Credentials,
    ) -> list[CriterionOutcome]:
        """Evaluate every criterion concurrently; outcomes keep definition order."""
        timeout = definition.routine_timeout_seconds or self.engine_config.routine_timeout_seconds
        workers = max(1, min(self.engine_config.max_parallel_routines, len(definition.criteria)))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="criterion") as executor:
            futures = []
            for criterion in definition.criteria:
                routine = bundle.routines.get(criterion.routine)
                # Each task gets its own context copy so log records keep the correlation id
                ctx = contextvars.copy_context()
                futures.append(
                    executor.submit(
                        ctx.run,
                        self._evaluate_criterion,
                        criterion,
                        routine,
                        subject_id,
                        target,
                        credentials,
                        timeout,
                    )
                )
            return [future.result() for future in futures]

    def _evaluate_criterion(
        self,
        criterion: Criterion,
        routine: CheckRoutine | None,
        subject_id: str,
        target: EnvironmentTarget,
        credentials: Credentials,
        timeout: float,
    ) -> CriterionOutcome:
        if routine is None:
            logger.warning(f"Routine {criterion.routine} not found for {criterion.criterion_id}")
            return CriterionOutcome.from_check(
                criterion,
                CheckOutcome.failure(
                    OutcomeErrorCode.ROUTINE_MISSING,
                    f"Routine '{criterion.routine}' not found in bundle",
                ),
            )

        start = time.monotonic()
        outcome = self.sandbox.invoke(routine, subject_id, target, credentials, timeout=timeout)
        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Criterion {criterion.criterion_id}: implemented={outcome.implemented}"
            + (f" ({outcome.error_code.value})" if outcome.error_code else "")
        )
        return CriterionOutcome.from_check(criterion, outcome, duration_ms)

    def _emit(
        self, name: str, value: float, unit: str = "Count", dimensions: dict | None = None
    ) -> None:
        if self.metrics is None:
            return
        try:
            self.metrics.emit(name, value, unit, dimensions)
        except Exception as e:
            logger.error(f"Error emitting metric {name}: {e}")
