"""
Pytest fixtures for the chart-of-accounts combination rule test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- SQLite in-memory database sessions with per-test rollback
- The bundled municipal configuration and services built over it

Environment Variables:
- DATABASE_URL: optional SQLAlchemy URL for the selector/store tests.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from coa_config import get_active_configuration
from coa_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from coa_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from coa_services import CombinationService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_TEST_DATABASE_URL = "sqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture coa_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            evaluate(...)
            logs = captured_logs()
            assert any(r["message"] == "combination_config_warning" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("coa_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Session-scoped engine with all tables created."""
    engine = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session that is rolled back after the test.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside the test is not propagated to it.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="rollback_only", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Configuration fixtures
# =============================================================================


@pytest.fixture(scope="session")
def municipal_config():
    """The bundled municipal configuration set, loaded once."""
    return get_active_configuration(set_id="municipal-coa")


@pytest.fixture
def municipal_service(municipal_config) -> CombinationService:
    return CombinationService.from_configuration(municipal_config)
