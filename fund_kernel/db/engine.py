"""
Module: fund_kernel.db.engine
Responsibility: Owns the process-wide engine and session factory, and the
    ``session_scope`` unit of work every caller wraps kernel operations in.
Architecture position: Kernel > DB.  May import from db/base.py, config and
    logging_config.  create_tables/drop_tables import models lazily so the
    metadata is complete.

Backends:
    - PostgreSQL in production, at READ COMMITTED.  Balance-gated writes
      lock the allocation or spender row with SELECT ... FOR UPDATE.
    - SQLite for local runs and tests.  No row locks there; SQLite's
      database lock serializes writers.

Failure modes:
    - get_engine/get_session before init_engine_from_url() -> RuntimeError.
    - Exhausted pool (pool_size + max_overflow in use) -> TimeoutError from
      SQLAlchemy after pool_timeout seconds.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from fund_kernel.config import KernelSettings
from fund_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_NOT_INITIALIZED = "Database engine is not initialized; call init_engine_from_url() first."

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on SQLite instead of pysqlite, so
    SAVEPOINT and nested transactions behave as on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _build_engine(
    database_url: str,
    echo: bool,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # One shared connection so every session sees the same database
            options["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **options)
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory used by get_session/session_scope.

    Calling again replaces both.  Pool arguments apply to PostgreSQL only;
    an in-memory SQLite URL gets a single shared connection.
    """
    global _engine, _SessionFactory

    _engine = _build_engine(
        database_url, echo, pool_size, max_overflow,
        pool_pre_ping, pool_timeout, pool_recycle,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    dialect = _engine.dialect.name
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": None if dialect == "sqlite" else pool_size,
            "echo": echo,
        },
    )
    return _engine


def init_engine_from_settings(settings: KernelSettings) -> Engine:
    """Initialize logging and the engine from loaded ``KernelSettings``."""
    configure_logging(level=settings.log_level_value)
    return init_engine_from_url(
        settings.database_url,
        echo=settings.sql_echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session() -> Session:
    """A new session from the configured factory.  The caller closes it."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work.  Commits when the block exits normally; on any
    exception rolls back and re-raises.  The session is always closed.

        with session_scope() as session:
            SettlementService(session).pay_salary(actor, worker_id, allocation_id)
    """
    session = get_session()
    logger.debug("unit_of_work_started")
    try:
        yield session
        session.commit()
        logger.debug("unit_of_work_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from fund_kernel.db.base import Base
    import fund_kernel.models  # noqa: F401  -- registers every table on Base.metadata

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every kernel table.  Test and local-reset use only."""
    from fund_kernel.db.base import Base
    import fund_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
