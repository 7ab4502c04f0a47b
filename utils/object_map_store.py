"""Persistence helpers for the objects_map identity table."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logging_utils import get_logger
from models.objects_map import UNKNOWN_OBJECT_NAME, ObjectMap, current_db_user
from utils.time_utils import utcnow

logger = get_logger(__name__)

# SQLite's default SQLITE_MAX_VARIABLE_NUMBER is 999 on older builds.
_SQLITE_MAX_PARAMS = 999
_PARAMS_PER_ROW = 6


def ensure_unknown_entry(session: Session) -> int:
    """Create the 'Unknown' sentinel row if missing and return its id."""

    existing = get_unknown_map_id(session)
    if existing is not None:
        return existing

    row = ObjectMap(
        object_name=UNKNOWN_OBJECT_NAME,
        object_type="Unknown",
        description="Fallback for findings whose object cannot be resolved",
    )
    session.add(row)
    session.flush()
    logger.info("Created sentinel objects_map row '%s' (id=%s)", UNKNOWN_OBJECT_NAME, row.id)
    return row.id


def get_unknown_map_id(session: Session) -> int | None:
    return session.execute(
        select(ObjectMap.id).where(ObjectMap.object_name == UNKNOWN_OBJECT_NAME)
    ).scalar_one_or_none()


def get_existing_map_names(session: Session) -> set[str]:
    """All canonical names in the map, uppercased."""
    return {name.upper() for name in session.execute(select(ObjectMap.object_name)).scalars()}


def get_map_ids(session: Session) -> dict[str, int]:
    """Uppercased object name -> surrogate id."""
    rows = session.execute(select(ObjectMap.object_name, ObjectMap.id)).all()
    return {name.upper(): map_id for name, map_id in rows}


def count_map_entries(session: Session) -> int:
    return int(session.execute(select(func.count(ObjectMap.id))).scalar_one())


def _chunks(items: list[dict], size: int) -> Iterable[list[dict]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def insert_names(session: Session, names: Iterable[str], *, batch_size: int = 1000) -> int:
    """Insert new canonical names; return how many rows were actually added.

    Runs in the caller's transaction using multi-row INSERT statements. Names
    that already exist (including a concurrent insert of the same name) are
    skipped via ON CONFLICT DO NOTHING. Any other failure rolls back the whole
    batch and re-raises the original error.
    """

    unique = sorted({n.strip().upper() for n in names if n and n.strip()})
    if not unique:
        return 0

    now = utcnow()
    user = current_db_user()
    rows = [
        {
            "object_name": n,
            "object_type": "Server",
            "created_date": now,
            "created_by": user,
            "modified_date": now,
            "modified_by": user,
        }
        for n in unique
    ]

    per_stmt = max(1, min(batch_size, _SQLITE_MAX_PARAMS // _PARAMS_PER_ROW))
    inserted = 0
    try:
        for chunk in _chunks(rows, per_stmt):
            stmt = (
                sqlite_insert(ObjectMap)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=["object_name"])
            )
            res = session.execute(stmt)
            inserted += max(res.rowcount or 0, 0)
        session.flush()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("objects_map insert failed; rolled back %s names", len(unique))
        raise

    skipped = len(unique) - inserted
    if skipped:
        logger.info("objects_map: %s names already present, skipped", skipped)
    logger.info("objects_map: inserted %s new names", inserted)
    return inserted
