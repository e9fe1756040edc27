"""
Module: bilanz_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine and session factory for the
    ledger database, plus a commit-or-rollback session scope.
Architecture position: Kernel > DB.  Only create_tables/drop_tables import
    the models.

Failure modes:
    - RuntimeError when a session or the engine is requested before
      init_engine_from_url().

Notes:
    Statements only read posted rows, so the default isolation level is
    enough.  Fiscal-year closing serializes itself per year with
    SELECT ... FOR UPDATE (see bilanz_reporting.closing); SQLite ignores the
    lock clause.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bilanz_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_NOT_INITIALIZED = "Ledger database not initialized. Call init_engine_from_url() first."

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _build_engine(database_url: str, echo: bool, pool_size: int) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # One shared connection, otherwise every session of an in-memory
        # database would see its own empty schema.
        return create_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(url, echo=echo, pool_size=pool_size, pool_pre_ping=True)


def init_engine_from_url(database_url: str, echo: bool = False, pool_size: int = 5) -> Engine:
    """
    Point the kernel at a database, replacing any previous engine.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite://`` or
            ``postgresql+psycopg2://user@host/bilanz``.
        echo: Log every SQL statement.
        pool_size: Pooled connections for server databases.
    """
    global _engine, _session_factory

    reset_engine()
    _engine = _build_engine(database_url, echo, pool_size)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session() -> Session:
    """New session; the caller owns its transaction."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session committed on normal exit, rolled back if the block raises.

    Usage::

        with session_scope() as session:
            FiscalYearClosingService(session).close(fiscal_year_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from bilanz_kernel.db.base import Base
    import bilanz_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from bilanz_kernel.db.base import Base
    import bilanz_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
