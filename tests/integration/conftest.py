"""Integration test fixtures for the PostgreSQL results store."""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from assessor.repositories.results import SqlResultsStore

TEST_DATABASE = "test_reliability_assessment"
ADMIN_URL = "postgresql://postgres@localhost:5432/postgres"


def _drop_database(admin_engine: Engine) -> None:
    with admin_engine.connect() as conn:
        conn.execution_options(isolation_level="AUTOCOMMIT")
        # Terminate existing connections
        conn.execute(
            text(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                f"WHERE datname = '{TEST_DATABASE}' AND pid <> pg_backend_pid()"
            )
        )
        conn.execute(text(f"DROP DATABASE IF EXISTS {TEST_DATABASE}"))


@pytest.fixture(scope="session")
def test_engine() -> Engine:
    """Create the test database and return an engine for it.

    This is a session-scoped fixture that:
    1. Creates the test database
    2. Creates the results schema
    3. Returns engine for test use
    4. Drops database after all tests complete
    """
    admin_engine = create_engine(ADMIN_URL)
    _drop_database(admin_engine)
    with admin_engine.connect() as conn:
        conn.execution_options(isolation_level="AUTOCOMMIT")
        conn.execute(text(f"CREATE DATABASE {TEST_DATABASE}"))
    admin_engine.dispose()

    engine = create_engine(f"postgresql://postgres@localhost:5432/{TEST_DATABASE}")
    SqlResultsStore(engine).create_schema()

    yield engine

    engine.dispose()
    admin_engine = create_engine(ADMIN_URL)
    _drop_database(admin_engine)
    admin_engine.dispose()


@pytest.fixture(scope="function")
def results_store(test_engine: Engine) -> SqlResultsStore:
    """Results store over an emptied table for each test."""
    with test_engine.connect() as conn:
        conn.execution_options(isolation_level="AUTOCOMMIT")
        conn.execute(text("TRUNCATE assessment_results"))

    return SqlResultsStore(test_engine)
