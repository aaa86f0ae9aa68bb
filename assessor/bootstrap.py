"""Component wiring from configuration.

Clients are built once per process and reused across runs. Nothing here holds
per-run state: credentials and loaded bundles live only inside a run.
"""

import logging

from assessor.aws.cloudformation import StackSubjectsQuery
from assessor.aws.dynamodb import (
    DynamoActiveSubjectsQuery,
    DynamoDefinitionStore,
    DynamoResultsStore,
)
from assessor.aws.lambda_invoker import LambdaAssessmentInvoker
from assessor.aws.s3 import S3BlobStore
from assessor.aws.sqs import SQSClient
from assessor.aws.sts import CredentialBroker
from assessor.common.metrics import EmfMetricsSink
from assessor.config import (
    AWSConfig,
    DatabaseSettings,
    DispatchConfig,
    DispatchMode,
    EngineConfig,
    ResultsBackend,
    ResultsConfig,
)
from assessor.dispatcher import AssessmentInvoker, TriggerDispatcher
from assessor.loader import BlobStoreRouter, BuiltinBlobStore, RoutineLoader
from assessor.orchestrator import AssessmentOrchestrator, ResultsStore
from assessor.resolver import DefinitionResolver
from assessor.sandbox import ExecutionSandbox

logger = logging.getLogger(__name__)


def build_results_store(
    aws_config: AWSConfig,
    results_config: ResultsConfig | None = None,
    db_settings: DatabaseSettings | None = None,
) -> ResultsStore:
    results_config = results_config or ResultsConfig()
    db_settings = db_settings or DatabaseSettings()
    if results_config.backend == ResultsBackend.POSTGRES:
        from assessor.repositories.engine import create_db_engine
        from assessor.repositories.results import SqlResultsStore

        logger.info("Using PostgreSQL results store")
        return SqlResultsStore(create_db_engine(db_settings, aws_config))

    logger.info(f"Using DynamoDB results store: {aws_config.results_table}")
    return DynamoResultsStore(
        table_name=aws_config.results_table,
        region=aws_config.region,
        endpoint_url=aws_config.endpoint_url,
    )


def build_orchestrator(
    engine_config: EngineConfig | None = None,
    aws_config: AWSConfig | None = None,
    results_store: ResultsStore | None = None,
) -> AssessmentOrchestrator:
    """Build an AssessmentOrchestrator backed by AWS adapters."""
    engine_config = engine_config or EngineConfig()
    aws_config = aws_config or AWSConfig()

    blob_store = BlobStoreRouter(
        {
            "s3": S3BlobStore(region=aws_config.region, endpoint_url=aws_config.endpoint_url),
            "builtin": BuiltinBlobStore(),
        }
    )
    broker = CredentialBroker(
        external_id=engine_config.external_id,
        duration_seconds=engine_config.credential_duration_seconds,
        session_prefix=engine_config.role_session_prefix,
        region=aws_config.region,
        endpoint_url=aws_config.endpoint_url,
    )
    definitions = DynamoDefinitionStore(
        table_name=aws_config.definitions_table,
        region=aws_config.region,
        endpoint_url=aws_config.endpoint_url,
    )

    return AssessmentOrchestrator(
        resolver=DefinitionResolver(definitions),
        loader=RoutineLoader(blob_store),
        broker=broker,
        sandbox=ExecutionSandbox(default_timeout=engine_config.routine_timeout_seconds),
        results_store=results_store or build_results_store(aws_config),
        engine_config=engine_config,
        region=aws_config.region,
        metrics=EmfMetricsSink(enabled=engine_config.metrics_enabled),
    )


def build_invoker(dispatch_config: DispatchConfig, aws_config: AWSConfig) -> AssessmentInvoker:
    if dispatch_config.mode == DispatchMode.LAMBDA:
        logger.info(f"Dispatching to function {dispatch_config.assessment_function}")
        return LambdaAssessmentInvoker(
            function_name=dispatch_config.assessment_function,
            region=aws_config.region,
            endpoint_url=aws_config.endpoint_url,
        )

    if not dispatch_config.queue_url:
        msg = "DISPATCH_QUEUE_URL is required when DISPATCH_MODE=sqs"
        raise ValueError(msg)
    logger.info(f"Dispatching to queue {dispatch_config.queue_url}")
    return SQSClient(
        queue_url=dispatch_config.queue_url,
        region=aws_config.region,
        endpoint_url=aws_config.endpoint_url,
    )


def build_dispatcher(
    dispatch_config: DispatchConfig | None = None,
    aws_config: AWSConfig | None = None,
    invoker: AssessmentInvoker | None = None,
    metrics_enabled: bool = True,
) -> TriggerDispatcher:
    """Build a TriggerDispatcher with the configured invoker and subject queries."""
    dispatch_config = dispatch_config or DispatchConfig()
    aws_config = aws_config or AWSConfig()

    fallback = None
    if dispatch_config.stack_fallback_enabled:
        fallback = StackSubjectsQuery(
            prefix=dispatch_config.resource_prefix,
            region=aws_config.region,
            endpoint_url=aws_config.endpoint_url,
        )

    return TriggerDispatcher(
        config=dispatch_config,
        invoker=invoker or build_invoker(dispatch_config, aws_config),
        subjects_query=DynamoActiveSubjectsQuery(
            table_name=aws_config.subjects_table,
            index_name=aws_config.subjects_status_index,
            region=aws_config.region,
            endpoint_url=aws_config.endpoint_url,
        ),
        fallback_query=fallback,
        metrics=EmfMetricsSink(enabled=metrics_enabled),
    )
