"""Engine and session factory for Tripline storage.

Builds SQLite engines suited to execution bookkeeping, and creates or
verifies the schema of a bookkeeping database.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tripline.exceptions import SchemaVersionError
from tripline.storage.schema import Base, MetaRow

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def create_tripline_engine(
    db_path: str = ":memory:",
    *,
    url: str | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for execution bookkeeping.

    An in-memory database lives on one shared connection that every
    thread uses, so concurrent executions see the same rows. File
    databases get WAL journaling and a busy timeout, since timers and
    request threads write to them concurrently.

    Args:
        db_path: Path to SQLite database file, or ``":memory:"``.
            Ignored when *url* is provided.
        url: Full SQLAlchemy database URL.

    Returns:
        Configured SQLAlchemy Engine.
    """
    if url is not None:
        engine = create_engine(url, echo=False)
    elif db_path == ":memory:":
        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(f"sqlite:///{db_path}", echo=False)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables and stamp or verify the schema version.

    Raises:
        SchemaVersionError: If the database was written by a newer schema.
    """
    Base.metadata.create_all(engine)
    with create_session_factory(engine).begin() as session:
        row = session.get(MetaRow, "schema_version")
        if row is None:
            session.add(MetaRow(key="schema_version", value=str(SCHEMA_VERSION)))
            logger.debug("Initialised execution database at schema v%d", SCHEMA_VERSION)
            return
        found = int(row.value)
        if found > SCHEMA_VERSION:
            raise SchemaVersionError(found, SCHEMA_VERSION)
