"""Shared fixtures wiring the engine to in-memory fakes."""

import pytest

from assessor.config import EngineConfig
from assessor.loader import RoutineLoader
from assessor.models.domain import EnvironmentTarget
from assessor.orchestrator import AssessmentOrchestrator
from assessor.resolver import DefinitionResolver
from assessor.sandbox import ExecutionSandbox
from tests.utils import (
    BUNDLE_LOCATION,
    BUNDLE_SOURCE,
    DictBlobStore,
    FakeBroker,
    InMemoryDefinitionStore,
    InMemoryResultsStore,
    make_credentials,
    make_definition,
)


@pytest.fixture
def engine_config():
    return EngineConfig(routine_timeout_seconds=1.0, max_parallel_routines=4, metrics_enabled=False)


@pytest.fixture
def credentials():
    return make_credentials()


@pytest.fixture
def target():
    return EnvironmentTarget(
        subject_id="alice",
        stack_name="ctf-unreliable-app-alice-dev",
        role_arn="arn:aws:iam::000000000000:role/ctf-assessment-engine-access",
        region="us-east-1",
    )


@pytest.fixture
def blob_store():
    return DictBlobStore({BUNDLE_LOCATION: BUNDLE_SOURCE.encode("utf-8")})


@pytest.fixture
def pitr_dlq_definition():
    return make_definition(("pitr", 10, "checkBackup"), ("dlq", 10, "checkDLQ"))


@pytest.fixture
def build_orchestrator(engine_config, blob_store):
    """Factory wiring a real orchestrator to in-memory fakes."""

    def _build(*definitions, results_store=None, broker=None, metrics=None, store=None):
        return AssessmentOrchestrator(
            resolver=DefinitionResolver(InMemoryDefinitionStore(*definitions)),
            loader=RoutineLoader(store or blob_store),
            broker=broker or FakeBroker(),
            sandbox=ExecutionSandbox(default_timeout=engine_config.routine_timeout_seconds),
            results_store=results_store if results_store is not None else InMemoryResultsStore(),
            engine_config=engine_config,
            region="us-east-1",
            metrics=metrics,
        )

    return _build
