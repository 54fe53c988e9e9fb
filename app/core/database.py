"""Database engine configuration for the audit record store.

The engine is shared by the request handlers and by the debounced item
writes, which run later from the scheduler outside of any request. Each
repository operation therefore opens its own short-lived ``Session``
against this engine instead of borrowing a request-scoped one.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Allows concurrent readers while writing.
      Debounced item writes land while other requests are reading audit
      data, so readers must not be blocked by the writer.

    - **Foreign Keys**: Disabled by default in SQLite. Enabled so that items
      cannot point at a missing audit and evidence cannot point at a missing
      item.

    - **check_same_thread=False**: Debounced writes are executed in the
      threadpool, so a pooled connection may be used from a different
      thread than the one that opened it.
"""

from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from app.core.config import settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with the SQLite pragmas applied on every connection."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    new_engine = create_engine(database_url, connect_args=connect_args, echo=echo)

    if database_url.startswith("sqlite"):

        @sa_event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Configure SQLite pragmas on each new connection.

            These settings are connection-level, not database-level, so they
            must be set each time a new connection is established from the pool.
            """
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = build_engine(settings.database_url, echo=settings.debug)


def create_db_and_tables(target: Engine = engine) -> None:
    """Create all database tables."""
    # Table classes must be registered on the metadata before create_all
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(target)
