"""
Shared fixtures: database, request/loader contexts and log capture.

The suite runs against in-memory SQLite unless DATABASE_URL names another
database. Tables are created once; each test's session lives inside an outer
transaction that is rolled back afterwards.
"""

import json
import logging
import os
from collections.abc import Iterator
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

import loader_policies  # noqa: F401  (registers the policy models)
from loader_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, reset_engine
from loader_kernel.domain.types import LoaderContext, LoadOptions, RequestContext, TargetOperation
from loader_kernel.logging_config import (
    LOGGER_NAMESPACE,
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

ACTOR_ID = uuid4()


@pytest.fixture(autouse=True, scope="session")
def _suite_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Collect loader_kernel records as parsed JSON; call the fixture to read them.

        def test_x(captured_logs, ...):
            ...
            assert "entity_load_completed" in [r["message"] for r in captured_logs()]
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    saved_level = namespace_logger.level
    namespace_logger.setLevel(logging.DEBUG)
    namespace_logger.addHandler(capture)

    yield lambda: [json.loads(raw) for raw in buffer.getvalue().splitlines() if raw]

    namespace_logger.removeHandler(capture)
    namespace_logger.setLevel(saved_level)


@pytest.fixture(scope="session")
def db_engine():
    engine = init_engine_from_url(os.environ.get("DATABASE_URL", "sqlite:///:memory:"))
    yield engine
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Iterator[Session]:
    """A session whose work, commits included, is discarded after the test."""
    connection = db_engine.connect()
    outer = connection.begin()
    test_session = Session(bind=connection, join_transaction_mode="create_savepoint", expire_on_commit=False)
    try:
        yield test_session
    finally:
        test_session.close()
        outer.rollback()
        connection.close()


@pytest.fixture
def test_actor_id() -> UUID:
    return ACTOR_ID


@pytest.fixture
def request_context(session, test_actor_id) -> RequestContext:
    return RequestContext(session=session, actor_id=test_actor_id, correlation_id="test-correlation")


@pytest.fixture
def loader_context(request_context):
    """Build a LoaderContext on the test session, e.g.
    ``loader_context(TargetOperation.UPSERT, ("code", "id"), dry_run=True)``.
    """

    def build(
        operation: TargetOperation = TargetOperation.UPSERT,
        lookup_fields: tuple[str, ...] = (),
        **options,
    ) -> LoaderContext:
        return LoaderContext(
            ctx=request_context,
            operation=operation,
            lookup_fields=tuple(lookup_fields),
            options=LoadOptions(**options),
        )

    return build
