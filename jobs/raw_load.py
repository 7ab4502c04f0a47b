"""Load the cleaned assessment export into raw_findings (truncate + reload)."""

from __future__ import annotations

import csv
from pathlib import Path

from sqlalchemy import delete, insert
from sqlalchemy.orm import Session

from config import ConfigurationError
from logging_utils import get_logger
from models.raw_findings import RawFinding
from support.stage_base import EtlStageBase
from utils.time_utils import utcnow
from utils.value_parsing import clean_cell

logger = get_logger(__name__)

# CSV header -> raw_findings attribute.
RAW_COLUMNS: dict[str, str] = {
    "Category": "category",
    "Severity": "severity",
    "Issue Name": "issue_name",
    "Affected Targets": "affected_targets",
    "Status": "status",
    "Impact": "impact",
    "Ease Of Implementation": "ease_of_implementation",
    "Urgency": "urgency",
    "Issue Priority": "issue_priority",
    "Due Date": "due_date",
    "Owner": "owner",
    "Notes": "notes",
}


def read_clean_csv(
    path: Path, *, required_columns: tuple[str, ...], object_column: str
) -> list[dict[str, str | None]]:
    """Read the clean export into raw_findings row dicts (file order).

    The configured object column is loaded into `affected_targets` whatever
    its header is called. Raises ConfigurationError for a missing file or
    missing required headers.
    """

    if not path.is_file():
        raise ConfigurationError(f"Clean CSV file not found: {path}")

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        missing = [c for c in (*required_columns, object_column) if c not in headers]
        if missing:
            raise ConfigurationError(
                f"Clean CSV {path} is missing required column(s): {', '.join(missing)}"
            )

        columns = dict(RAW_COLUMNS)
        if object_column != "Affected Targets":
            columns.pop("Affected Targets", None)
            columns[object_column] = "affected_targets"

        rows: list[dict[str, str | None]] = []
        for record in reader:
            stripped = {(k or "").strip(): v for k, v in record.items()}
            rows.append({attr: clean_cell(stripped.get(col)) for col, attr in columns.items()})
    return rows


class RawLoadStage(EtlStageBase):
    stage_name = "raw_load"

    def __init__(self, config, *, session_factory=None) -> None:
        super().__init__(config, session_factory=session_factory)
        self._rows: list[dict[str, str | None]] | None = None

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.bulk_copy

    def preflight(self) -> None:
        src = self.config.source
        if src.csv_clean_file is None:
            raise ConfigurationError(
                f"Missing required setting 'sources.{src.name}.csv_clean_file'"
            )
        self._rows = read_clean_csv(
            src.csv_clean_file,
            required_columns=src.header_check_cols,
            object_column=src.source_object_column,
        )
        logger.info("Read %s rows from %s", len(self._rows), src.csv_clean_file)

    def run(self, session: Session) -> dict[str, int]:
        rows = self._rows or []

        with self.phase("truncate"):
            deleted = session.execute(delete(RawFinding)).rowcount or 0
            self.log_count("truncate", deleted, "rows removed from raw_findings")

        with self.phase("insert"):
            now = utcnow()
            size = self.config.batch_size_bulk_load
            for i in range(0, len(rows), size):
                chunk = [dict(r, raw_load_time=now) for r in rows[i : i + size]]
                session.execute(insert(RawFinding), chunk)
            self.log_count("insert", len(rows), "rows loaded into raw_findings")

        return {"deleted": deleted, "inserted": len(rows)}
