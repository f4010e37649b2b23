"""
Module: docflow_kernel.db.engine
Responsibility: build SQLAlchemy engines for workflow storage and hold the
    process-wide engine/session factory used by ``bootstrap``.
Architecture position: Kernel > DB.  Imports db/base.py; ``create_tables``
    additionally imports the model modules so Base.metadata is complete.

Backends:
    - PostgreSQL (psycopg2) in deployment: QueuePool with pre-ping,
      READ COMMITTED.  Document updates are conditional on the stored
      version, so nothing relies on a stricter isolation level.
    - SQLite for tests and local runs.  ``sqlite://`` and ``:memory:`` URLs
      share one StaticPool connection so all sessions see one database.

Failure modes:
    - RuntimeError from get_engine/get_session_factory before
      init_engine_from_url().
"""

import atexit

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from docflow_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_IN_MEMORY_SQLITE = (None, "", ":memory:")
_NOT_INITIALIZED = "Workflow database not initialized; call init_engine_from_url() first."

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """Create an engine for ``database_url`` without touching module state."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in _IN_MEMORY_SQLITE:
            options["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **options)

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Make ``database_url`` the process-wide workflow database.

    A second call disposes the previous engine and replaces it.

    Args:
        database_url: SQLAlchemy URL (postgresql+psycopg2://..., sqlite://...).
        echo: Log SQL statements.
        pool_size: Pooled connections kept open (server backends only).
        max_overflow: Connections allowed beyond ``pool_size``.
    """
    global _engine, _session_factory

    reset_engine()
    _engine = build_engine(
        database_url, echo=echo, pool_size=pool_size, max_overflow=max_overflow,
    )
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "database": _engine.url.render_as_string(hide_password=True),
            "pool_size": pool_size,
            "max_overflow": max_overflow,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for new sessions; every unit of work opens its own."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def create_tables(engine: Engine | None = None) -> None:
    """Create the workflow tables and seed the sequence counters."""
    import docflow_kernel.models  # noqa: F401
    from docflow_kernel.db.base import Base
    from docflow_kernel.services.sequence_service import SequenceService

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        SequenceService(session).initialize_sequences()
        session.commit()
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every workflow table.  Tests only."""
    from docflow_kernel.db.base import Base

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
