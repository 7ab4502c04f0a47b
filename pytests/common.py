"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite database
- create all SQLAlchemy tables
- point the app (db.engine / db.SessionLocal) at it
- write small CSV inputs and a matching EtlConfig

These utilities keep tests small and consistent.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

import db
from config import EtlConfig, SourceConfig
from models import Base

__all__ = [
    "make_sqlite_engine",
    "create_empty_sqlite_db",
    "patch_app_db",
    "add_dicts",
    "write_csv",
    "make_config",
    "RAW_HEADER",
]

RAW_HEADER: list[str] = [
    "Category",
    "Severity",
    "Issue Name",
    "Affected Targets",
    "Status",
    "Impact",
    "Ease Of Implementation",
    "Urgency",
    "Issue Priority",
    "Due Date",
    "Owner",
    "Notes",
]


def make_sqlite_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine with the project pragmas."""

    return db.make_engine(f"sqlite:///{db_path}")


def create_empty_sqlite_db(db_path: Path) -> tuple[Session, Engine]:
    """Create an empty SQLite DB file and initialize all models.

    Returns (session, engine).
    """

    engine = make_sqlite_engine(db_path)
    Base.metadata.create_all(engine)
    SessionLocal = db.make_session_factory(engine)
    return SessionLocal(), engine


def patch_app_db(monkeypatch, engine: Engine) -> None:
    """Point the module-level engine/sessionmaker in db.py at `engine`."""

    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", db.make_session_factory(engine))


def add_dicts(session: Session, model, rows: Iterable[dict[str, Any]]) -> list:
    """Insert a list of dicts into a SQLAlchemy model table; return the objects."""

    objs = [model(**row) for row in rows]
    session.add_all(objs)
    session.commit()
    return objs


def write_csv(path: Path, header: list[str], rows: Iterable[Iterable[Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(header)
        for row in rows:
            w.writerow(["" if v is None else v for v in row])
    return path


def make_config(
    tmp_path: Path,
    *,
    whitelist: Iterable[str] = ("SRV01", "SQL02", "APP-03"),
    domain_suffix: str | None = ".corp.local",
    **source_overrides: Any,
) -> EtlConfig:
    """EtlConfig backed by a whitelist file under tmp_path."""

    wl = write_csv(tmp_path / "whitelist.csv", ["ServerName"], [[n] for n in whitelist])
    source = replace(SourceConfig(name="mssql", object_whitelist_file=wl), **source_overrides)
    return EtlConfig(source=source, domain_suffix=domain_suffix)
