"""Create or reset the findings schema.

`ensure_schema(engine)` is the idempotent setup every pipeline run performs:
missing tables are created and the 'Unknown' objects_map row is added.

`recreate_schema(engine)` drops and recreates every table. Running this module
does that against the local SQLite DB (destructive, for local development).

Usage:
    python utils/recreate_sqlite_db.py          # with confirmation prompt
    python utils/recreate_sqlite_db.py --yes    # skip confirmation
    python utils/recreate_sqlite_db.py --backup # create backup before reset
"""

from __future__ import annotations

import argparse
import os
import shutil
import sys
from datetime import datetime

# Allow running as: `python utils/recreate_sqlite_db.py`
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

import db
from logging_utils import get_logger
from models import Base
from utils.object_map_store import ensure_unknown_entry

logger = get_logger(__name__)


def ensure_schema(engine: Engine) -> int:
    """Create missing tables and the 'Unknown' row; return the Unknown id."""

    Base.metadata.create_all(bind=engine)
    factory = db.make_session_factory(engine)
    with factory() as session:
        with db.transaction(session):
            unknown_id = ensure_unknown_entry(session)
    return unknown_id


def recreate_schema(engine: Engine) -> int:
    """Drop every table, then rebuild the schema from the models."""

    logger.warning("Dropping all tables on %s", engine.url)
    Base.metadata.drop_all(bind=engine)
    return ensure_schema(engine)


def _sqlite_path(url: str) -> str | None:
    if not url.startswith("sqlite"):
        return None
    path = url.split(":///", 1)[-1]
    return None if not path or path == ":memory:" else path


def _confirm_or_exit(target: str, assume_yes: bool) -> None:
    """Prompt user for confirmation before proceeding with destructive operation."""
    if assume_yes:
        return

    if os.path.exists(target):
        size_mb = os.path.getsize(target) / (1024 * 1024)
        print(f"\nWARNING: Database exists ({size_mb:.2f} MB)")

    resp = input(
        f"\nThis will DROP and RECREATE ALL TABLES in:\n  {target}\n\n"
        "ALL DATA WILL BE LOST!\n\n"
        "Continue? [y/N]: "
    ).strip()
    if resp.lower() not in {"y", "yes"}:
        print("Aborted.")
        raise SystemExit(1)


def _create_backup(db_path: str) -> str | None:
    """Create a timestamped backup of the database file."""
    if not os.path.exists(db_path):
        return None

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = f"{db_path}.backup_{timestamp}"
    try:
        shutil.copy2(db_path, backup_path)
    except OSError as e:
        print(f"Failed to create backup: {e}")
        return None
    print(f"Backup created: {backup_path}")
    return backup_path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reset the findings database by dropping and recreating all tables."
    )
    parser.add_argument(
        "--db",
        default=db.SQLALCHEMY_DATABASE_URL,
        help="SQLAlchemy database URL (default: DATABASE_URL or data/findings.db)",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Do not prompt for confirmation.")
    parser.add_argument(
        "--backup",
        "-b",
        action="store_true",
        help="Create a timestamped backup of the SQLite file before resetting.",
    )
    args = parser.parse_args(argv)

    path = _sqlite_path(args.db)
    _confirm_or_exit(path or args.db, args.yes)

    if args.backup:
        if path:
            _create_backup(path)
        else:
            print("--backup only applies to SQLite files; skipping.")

    engine = db.make_engine(args.db)
    try:
        unknown_id = recreate_schema(engine)
        tables = sorted(inspect(engine).get_table_names())
    finally:
        engine.dispose()

    print(f"\nRecreated tables ({len(tables)}):")
    for table in tables:
        print(f"  - {table}")
    print(f"Sentinel 'Unknown' object id: {unknown_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
