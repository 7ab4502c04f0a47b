from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from models.objects_map import UNKNOWN_OBJECT_NAME, ObjectMap
from utils import object_map_store
from utils.object_map_store import (
    count_map_entries,
    ensure_unknown_entry,
    get_existing_map_names,
    get_map_ids,
    get_unknown_map_id,
    insert_names,
)


def test_unknown_entry_is_created_once(db_session) -> None:
    first = get_unknown_map_id(db_session)
    assert first is not None

    assert ensure_unknown_entry(db_session) == first
    db_session.commit()
    assert count_map_entries(db_session) == 1

    row = db_session.get(ObjectMap, first)
    assert row.object_name == UNKNOWN_OBJECT_NAME
    assert row.created_by
    assert row.created_date is not None


def test_insert_names_adds_canonical_rows(db_session) -> None:
    n = insert_names(db_session, {"srv01", "SQL02", " app-03 "}, batch_size=2)
    db_session.commit()

    assert n == 3
    assert get_existing_map_names(db_session) == {"UNKNOWN", "SRV01", "SQL02", "APP-03"}
    ids = get_map_ids(db_session)
    assert len(set(ids.values())) == 4


def test_insert_names_skips_existing_names(db_session) -> None:
    insert_names(db_session, {"SRV01"})
    db_session.commit()

    # 'srv01' collides case-insensitively; only SQL02 is new.
    n = insert_names(db_session, {"srv01", "SQL02"})
    db_session.commit()

    assert n == 1
    assert count_map_entries(db_session) == 3


def test_insert_names_empty_is_noop(db_session) -> None:
    assert insert_names(db_session, []) == 0
    assert insert_names(db_session, ["", "  "]) == 0


def test_insert_names_large_batch_is_chunked(db_session) -> None:
    names = {f"HOST-{i:04d}" for i in range(450)}
    assert insert_names(db_session, names, batch_size=1000) == 450
    db_session.commit()
    assert count_map_entries(db_session) == 451


def test_insert_names_failure_rolls_back_whole_batch(db_session, monkeypatch) -> None:
    calls = {"n": 0}
    real_execute = db_session.execute

    def flaky_execute(stmt, *args, **kwargs):
        if getattr(stmt, "table", None) is not None and stmt.table.name == "objects_map":
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", flaky_execute)

    with pytest.raises(OperationalError):
        insert_names(db_session, {f"HOST-{i}" for i in range(10)}, batch_size=5)

    monkeypatch.setattr(db_session, "execute", real_execute)
    assert count_map_entries(db_session) == 1
    assert object_map_store.get_unknown_map_id(db_session) is not None
