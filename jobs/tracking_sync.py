"""Merge operator tracking data into stg_findings by finding group id.

The tracking sheet is a CSV keyed by `sample_data_key_column`
(finding_object_id by default). Each listed group gets its tracking columns
replaced on every staged row of the group; groups not listed keep the values
consolidation left (fixed='N', no tracking data).
"""

from __future__ import annotations

import csv
from pathlib import Path

from sqlalchemy import update
from sqlalchemy.orm import Session

from config import ConfigurationError
from logging_utils import get_logger
from models.prod_findings import EXCEPTION_VALUES, LEVEL_OF_EFFORT_VALUES
from models.stg_findings import StgFinding
from support.stage_base import EtlStageBase
from utils.time_utils import parse_tracking_date
from utils.value_parsing import clean_cell, match_choice

logger = get_logger(__name__)

TEXT_COLUMNS: tuple[str, ...] = ("assigned_to", "notes", "exception_notes", "exception_proof")
DATE_COLUMNS: tuple[str, ...] = ("start_date", "end_date")


def parse_tracking_row(record: dict, *, key_column: str, placeholder: str) -> dict | None:
    """Turn one tracking CSV record into stg_findings values.

    Returns None (and logs a warning) when the key is missing or not an
    integer. Values outside the allowed vocabularies and unparseable dates
    are dropped with a warning.
    """

    key_raw = clean_cell(record.get(key_column))
    try:
        key = int(key_raw) if key_raw is not None else None
    except ValueError:
        key = None
    if key is None:
        logger.warning("Tracking row skipped: invalid %s %r", key_column, key_raw)
        return None

    values: dict = {"finding_object_id": key}
    for col in TEXT_COLUMNS:
        values[col] = clean_cell(record.get(col))

    for col, choices in (
        ("level_of_effort", LEVEL_OF_EFFORT_VALUES),
        ("exception", EXCEPTION_VALUES),
    ):
        try:
            values[col] = match_choice(record.get(col), choices)
        except ValueError as e:
            logger.warning("Tracking row %s: dropping %s (%s)", key, col, e)
            values[col] = None

    for col in DATE_COLUMNS:
        try:
            values[col] = parse_tracking_date(record.get(col), placeholder=placeholder)
        except ValueError:
            logger.warning("Tracking row %s: invalid %s %r", key, col, record.get(col))
            values[col] = None

    values["fixed"] = "Y" if values["end_date"] is not None else "N"
    return values


def read_tracking_csv(path: Path, *, key_column: str, placeholder: str) -> dict[int, dict]:
    """Read the tracking sheet; the last row wins for a repeated key."""

    if not path.is_file():
        raise ConfigurationError(f"Tracking data file not found: {path}")

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        if key_column not in headers:
            raise ConfigurationError(
                f"Tracking data file {path} is missing the key column '{key_column}'"
            )
        by_key: dict[int, dict] = {}
        for record in reader:
            stripped = {(k or "").strip(): v for k, v in record.items()}
            values = parse_tracking_row(stripped, key_column=key_column, placeholder=placeholder)
            if values is not None:
                by_key[values["finding_object_id"]] = values
    return by_key


class TrackingSyncStage(EtlStageBase):
    stage_name = "tracking_sync"

    def __init__(self, config, *, session_factory=None) -> None:
        super().__init__(config, session_factory=session_factory)
        self._tracking: dict[int, dict] = {}

    @property
    def enabled(self) -> bool:
        return self.config.source.data_sample_file is not None

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.sample_sync

    def preflight(self) -> None:
        src = self.config.source
        self._tracking = read_tracking_csv(
            src.data_sample_file,
            key_column=src.sample_data_key_column,
            placeholder=src.default_date_placeholder,
        )
        logger.info("Read %s tracking rows from %s", len(self._tracking), src.data_sample_file)

    def run(self, session: Session) -> dict[str, int]:
        updated = 0
        unmatched = 0
        with self.phase("apply"):
            for key, values in self._tracking.items():
                changes = {k: v for k, v in values.items() if k != "finding_object_id"}
                n = session.execute(
                    update(StgFinding)
                    .where(StgFinding.finding_object_id == key)
                    .values(**changes)
                    .execution_options(synchronize_session=False)
                ).rowcount or 0
                if n == 0:
                    unmatched += 1
                updated += n
            self.log_count("apply", updated, "staged rows updated")
            if unmatched:
                logger.warning(
                    "[%s] %s tracking keys matched no finding group", self.stage_name, unmatched
                )
        return {"tracking_rows": len(self._tracking), "updated": updated, "unmatched": unmatched}
