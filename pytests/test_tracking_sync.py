from __future__ import annotations

from datetime import datetime

import pytest

from config import ConfigurationError
from jobs.tracking_sync import TrackingSyncStage, parse_tracking_row
from models.stg_findings import StgFinding
from pytests.common import add_dicts, make_config, write_csv
from utils.time_utils import parse_tracking_date

HEADER = [
    "finding_object_id",
    "level_of_effort",
    "assigned_to",
    "notes",
    "exception",
    "exception_notes",
    "exception_proof",
    "start_date",
    "end_date",
]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-03-01", datetime(2024, 3, 1)),
        ("2024-03-01 10:30:00", datetime(2024, 3, 1, 10, 30)),
        ("1900-01-01", None),
        ("1900-01-01 00:00:00", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_tracking_date(value, expected) -> None:
    assert parse_tracking_date(value) == expected


def test_parse_tracking_date_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_tracking_date("next tuesday")


def test_parse_tracking_row_normalizes_vocabularies() -> None:
    values = parse_tracking_row(
        {
            "finding_object_id": " 12 ",
            "level_of_effort": "high",
            "exception": "Waiver",
            "assigned_to": " alice ",
            "end_date": "2024-05-02",
            "start_date": "1900-01-01",
        },
        key_column="finding_object_id",
        placeholder="1900-01-01",
    )
    assert values["finding_object_id"] == 12
    assert values["level_of_effort"] == "High"
    assert values["exception"] is None
    assert values["assigned_to"] == "alice"
    assert values["start_date"] is None
    assert values["end_date"] == datetime(2024, 5, 2)
    assert values["fixed"] == "Y"


@pytest.mark.parametrize("record", [{"finding_object_id": "abc"}, {"finding_object_id": ""}, {}])
def test_parse_tracking_row_without_valid_key(record) -> None:
    assert (
        parse_tracking_row(record, key_column="finding_object_id", placeholder="1900-01-01")
        is None
    )


def test_stage_is_skipped_without_tracking_file(db_session, etl_config) -> None:
    result = TrackingSyncStage(etl_config).execute()
    assert result.skipped


def test_stage_missing_key_column_is_configuration_error(db_session, tmp_path) -> None:
    sheet = write_csv(tmp_path / "tracking.csv", ["id", "notes"], [["1", "x"]])
    cfg = make_config(tmp_path, data_sample_file=sheet)
    with pytest.raises(ConfigurationError, match="finding_object_id"):
        TrackingSyncStage(cfg).execute()


def _stg(obj: str, name: str, category: str, group: int) -> dict:
    return {
        "normalized_object": obj,
        "finding_name": name,
        "finding_category": category,
        "finding_object_id": group,
        "priority_rank": group,
    }


def test_stage_applies_tracking_to_whole_group(db_session, tmp_path) -> None:
    add_dicts(
        db_session,
        StgFinding,
        [
            _stg("SRV01", "A", "c1", 1),
            _stg("SRV01", "A", "c2", 1),
            _stg("SQL02", "B", "c1", 2),
            _stg("SQL02", "C", "c1", 3),
        ],
    )
    sheet = write_csv(
        tmp_path / "tracking.csv",
        HEADER,
        [
            ["1", "low", "bob", "patched", "STIG", "", "", "2024-01-10", "2024-02-01"],
            ["2", "Huge", "carol", "", "", "", "", "1900-01-01", "1900-01-01"],
            ["77", "Low", "", "", "", "", "", "", ""],
            ["abc", "Low", "", "", "", "", "", "", ""],
        ],
    )
    cfg = make_config(tmp_path, data_sample_file=sheet)

    result = TrackingSyncStage(cfg).execute()
    assert result.counts == {"tracking_rows": 3, "updated": 3, "unmatched": 1}

    db_session.expire_all()
    rows = db_session.query(StgFinding).order_by(StgFinding.id).all()

    for r in rows[:2]:
        assert r.level_of_effort == "Low"
        assert r.assigned_to == "bob"
        assert r.exception == "STIG"
        assert r.start_date == datetime(2024, 1, 10)
        assert r.end_date == datetime(2024, 2, 1)
        assert r.fixed == "Y"

    assert rows[2].level_of_effort is None
    assert rows[2].assigned_to == "carol"
    assert rows[2].start_date is None
    assert rows[2].end_date is None
    assert rows[2].fixed == "N"

    # Groups not in the sheet keep consolidation's values.
    assert rows[3].assigned_to is None
    assert rows[3].fixed == "N"
