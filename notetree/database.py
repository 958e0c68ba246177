"""Database configuration and session management.

Engines and session factories are built explicitly so that every caller
(the FastAPI app, tests, embedding applications) owns an isolated store.
The module-level defaults below only back the ``get_db`` dependency.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings

# Create base class for models
Base = declarative_base()

# Connection execution option naming the SQLite BEGIN mode. Write units of
# work set it to IMMEDIATE so the write lock is taken (and waited for under
# busy_timeout) before the first read.
SQLITE_BEGIN_OPTION = "sqlite_begin"
WRITE_TRANSACTION_OPTIONS = {SQLITE_BEGIN_OPTION: "IMMEDIATE"}


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def make_engine(url: str, busy_timeout_ms: int | None = None) -> Engine:
    """Create an engine with database-specific tuning.

    For SQLite, transactions are begun explicitly at session start instead of
    being deferred by pysqlite until the first write. Every operation reads
    the tree (closure, sibling counts) before writing, and those reads must
    belong to the same transaction as the writes. A connection carrying
    WRITE_TRANSACTION_OPTIONS begins with BEGIN IMMEDIATE: a deferred
    transaction that read first cannot wait for the write lock once another
    writer has committed, it fails with "database is locked".
    """
    if not is_sqlite(url):
        return create_engine(url, pool_pre_ping=True)

    timeout = settings.sqlite_busy_timeout_ms if busy_timeout_ms is None else busy_timeout_ms
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(url):
        # One shared connection, otherwise each checkout sees an empty database.
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        # Take over transaction control from the driver.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout={int(timeout)}")
        if not _is_memory_sqlite(url):
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "")
        conn.exec_driver_sql(f"BEGIN {mode}".rstrip())

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False: services return ORM objects after committing and
    # callers read their attributes outside the transaction.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables. Schema migrations are handled outside this package."""
    from . import models  # noqa: F401  (registers the mappers)

    Base.metadata.create_all(bind=engine)


DATABASE_URL = settings.database_url
engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db():
    """Dependency for FastAPI routes to get database session.

    Rolls back the transaction on unhandled exceptions so that the
    connection is returned to the pool in a clean state.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
