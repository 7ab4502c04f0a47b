from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for the single-writer ETL workload."""
    cursor = dbapi_connection.cursor()
    try:
        # Wait for locks instead of failing immediately.
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        # prod_findings.object_map_id references objects_map.
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


DB_PATH = os.path.join(os.path.dirname(__file__), "data", "findings.db")
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{DB_PATH}"


def make_engine(url: str, *, connect_timeout: int = 30) -> Engine:
    """Create an engine; SQLite engines get the project pragmas and a lock timeout."""

    if url.startswith("sqlite"):
        path = url.split(":///", 1)[-1]
        if path and path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        eng = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": connect_timeout},
            pool_pre_ping=True,
        )
        event.listen(eng, "connect", _set_sqlite_pragmas)
        return eng

    return create_engine(
        url,
        connect_args={"connect_timeout": connect_timeout},
        pool_pre_ping=True,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = make_session_factory(engine)
Base = declarative_base()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit the session's work on success, roll everything back on any error."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def apply_command_timeout(session: Session, seconds: int) -> None:
    """Apply a per-operation timeout to the session's connection.

    SQLite has no statement timeout; the closest knob is how long a statement
    waits on a locked database, so the timeout becomes the busy timeout.
    Other dialects keep their server-side defaults.
    """

    if session.get_bind().dialect.name != "sqlite":
        return
    session.execute(text(f"PRAGMA busy_timeout={int(seconds) * 1000}"))
