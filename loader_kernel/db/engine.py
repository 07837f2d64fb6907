"""
Engine and session wiring for the loader's SQLAlchemy persistence layer.

A host program calls init_engine_from_url() once, then opens a unit of work
with session_scope() and hands the session to a load through its
RequestContext. Loads themselves never commit; session_scope() does, once,
when the with-block exits cleanly.

SQLite URLs get a single shared connection (StaticPool), so an in-memory
database is visible to every session. pysqlite's own transaction handling
is switched off for them, which lets the per-record SAVEPOINTs of a load
roll back correctly. Other dialects get a pre-pinged QueuePool.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from loader_kernel.db.base import Base
from loader_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "No database engine; call init_engine_from_url() first."


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    hide_parameters: bool = True,
) -> Engine:
    """
    Build the module engine and its session factory, replacing any earlier one.

    The pool arguments apply to non-SQLite URLs only. hide_parameters keeps
    bound values (customer e-mails, for one) out of SQL error text and echo output.
    """
    global _engine, _session_factory

    reset_engine()
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            hide_parameters=hide_parameters,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        _hand_transactions_to_sqlalchemy(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            hide_parameters=hide_parameters,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
        )

    _engine = engine
    # Loaded ids must stay readable after the caller commits.
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def get_engine() -> Engine:
    """
    Raises:
        RuntimeError: Before init_engine_from_url().
    """
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit if the block finishes, roll back if it raises.

    Usage:
        with session_scope() as session:
            result = loader.load(context_for(session), records)
    """
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    session = _session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    else:
        session.commit()
        logger.debug("transaction_committed")
    finally:
        session.close()


def create_tables() -> None:
    """Create the tables of every model imported so far (import loader_policies first)."""
    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)


def _hand_transactions_to_sqlalchemy(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")
