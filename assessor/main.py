"""Long-running assessment worker: polls the job queue and runs each job to completion."""

import logging
import multiprocessing
import signal
import sys
import time

import uvicorn
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from assessor.aws.sqs import SQSClient
from assessor.bootstrap import build_orchestrator, build_results_store
from assessor.common.log_utils import configure_logging
from assessor.config import (
    AWSConfig,
    DatabaseSettings,
    EngineConfig,
    HealthConfig,
    ResultsBackend,
    ResultsConfig,
    WorkerConfig,
)
from assessor.health import app as health_app
from assessor.models.domain import AssessmentFailure
from assessor.orchestrator import AssessmentOrchestrator

configure_logging()
logger = logging.getLogger(__name__)

# Pause after an unexpected loop error so a broken dependency is not hammered
ERROR_BACKOFF_SECONDS = 5


def run_health_server(port: int) -> None:
    """Serve the health endpoint (target of the health process)."""
    uvicorn.run(health_app, host="0.0.0.0", port=port, log_level="warning")


def start_health_process(port: int) -> multiprocessing.Process:
    """Start the health endpoint in its own process so slow routines never block it."""
    process = multiprocessing.Process(target=run_health_server, args=(port,), daemon=True)
    process.start()
    logger.info(f"Health endpoint listening on port {port}")
    return process


def stop_health_process(process: multiprocessing.Process | None) -> None:
    if process is None or not process.is_alive():
        return
    logger.info("Stopping health endpoint")
    process.terminate()
    process.join(timeout=5)


class SqsConsumer:
    """Receives assessment jobs and hands them to the orchestrator one batch at a time.

    A message is deleted once its job has produced either a result or a
    terminal AssessmentFailure. Anything else leaves the message in flight,
    so the queue redelivers it and eventually dead-letters it.
    """

    def __init__(self, sqs_client: SQSClient, orchestrator: AssessmentOrchestrator):
        self.sqs_client = sqs_client
        self.orchestrator = orchestrator
        self.running = True

        for signum in (signal.SIGTERM, signal.SIGINT):
            signal.signal(signum, self._request_shutdown)

    def run(self) -> None:
        logger.info("Assessment worker waiting for jobs")

        while self.running:
            try:
                self.poll_once()
            except KeyboardInterrupt:
                break
            except Exception as e:
                logger.exception(f"Job processing interrupted, backing off: {e}")
                time.sleep(ERROR_BACKOFF_SECONDS)

        logger.info("Assessment worker stopped")

    def poll_once(self) -> int:
        """Receive one batch and process it.

        Returns:
            Number of jobs processed
        """
        batch = self.sqs_client.receive_messages()

        for job, receipt_handle in batch:
            outcome = self.orchestrator.process_job(job)

            if isinstance(outcome, AssessmentFailure):
                logger.warning(
                    f"Assessment {job.subject_id}/{job.definition_id} failed: "
                    f"{outcome.reason.value}: {outcome.message}"
                )
            else:
                logger.info(
                    f"Assessment {job.subject_id}/{job.definition_id} scored "
                    f"{outcome.score}/{outcome.max_score}"
                )

            self.sqs_client.delete_message(receipt_handle)

        return len(batch)

    def _request_shutdown(self, signum, _frame):
        # SIGTERM from ECS task stop, SIGINT from a local Ctrl+C
        logger.info(f"Received {signal.Signals(signum).name}, finishing current batch")
        self.running = False


def check_database_connection(db_settings: DatabaseSettings, aws_config: AWSConfig) -> bool:
    """Probe the results database at startup.

    Only logs on failure; a later write failure is reported per run.
    """
    from assessor.repositories.engine import create_db_engine

    try:
        engine = create_db_engine(db_settings, aws_config, use_null_pool=True)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Results database unreachable at startup: {e}")
        return False

    logger.info("Results database reachable")
    return True


def main():
    """Entry point for the assessment worker container."""
    health_process = None

    try:
        aws_config = AWSConfig()
        worker_config = WorkerConfig()
        results_config = ResultsConfig()
        db_settings = DatabaseSettings()

        if results_config.backend == ResultsBackend.POSTGRES:
            check_database_connection(db_settings, aws_config)

        health_process = start_health_process(HealthConfig().port)

        orchestrator = build_orchestrator(
            engine_config=EngineConfig(),
            aws_config=aws_config,
            results_store=build_results_store(aws_config, results_config, db_settings),
        )
        queue = SQSClient(
            queue_url=worker_config.queue_url,
            region=aws_config.region,
            wait_time_seconds=worker_config.wait_time_seconds,
            visibility_timeout=worker_config.visibility_timeout,
            max_messages=worker_config.max_messages,
            endpoint_url=aws_config.endpoint_url,
        )

        SqsConsumer(sqs_client=queue, orchestrator=orchestrator).run()

    except Exception as e:
        logger.exception(f"Assessment worker failed to start: {e}")
        sys.exit(1)

    finally:
        stop_health_process(health_process)


if __name__ == "__main__":
    main()
