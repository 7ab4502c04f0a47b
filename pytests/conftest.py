from __future__ import annotations

import os
import tempfile
from typing import Generator

# Per-module log handlers are created at import time; keep them out of the
# project tree.
os.environ.setdefault("FINDINGS_ETL_LOG_DIR", tempfile.mkdtemp(prefix="findings_etl_logs_"))

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from config import EtlConfig  # noqa: E402
from pytests.common import create_empty_sqlite_db, make_config, patch_app_db  # noqa: E402
from utils.object_map_store import ensure_unknown_entry  # noqa: E402


@pytest.fixture()
def db_session(tmp_path, monkeypatch) -> Generator[Session, None, None]:
    """Session on a fresh temp SQLite DB (schema + 'Unknown' row).

    db.engine / db.SessionLocal are patched so stages and the app use it.
    """

    session, engine = create_empty_sqlite_db(tmp_path / "findings.db")
    patch_app_db(monkeypatch, engine)
    ensure_unknown_entry(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def etl_config(tmp_path) -> EtlConfig:
    return make_config(tmp_path)
