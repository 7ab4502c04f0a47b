"""Copy stg_findings into prod_findings (truncate + reload)."""

from __future__ import annotations

from sqlalchemy import case, delete, func, insert, literal, select
from sqlalchemy.orm import Session

from logging_utils import get_logger
from models.objects_map import current_db_user
from models.prod_findings import ProdFinding
from models.stg_findings import StgFinding
from support.stage_base import EtlStageBase
from utils.time_utils import utcnow

logger = get_logger(__name__)

# Columns copied unchanged from staging.
COPIED_COLUMNS: tuple[str, ...] = (
    "raw_finding_id",
    "normalized_object",
    "object_map_id",
    "finding_name",
    "finding_category",
    "risk_level",
    "impacted_objects",
    "priority_rank",
    "finding_object_id",
    "level_of_effort",
    "assigned_to",
    "notes",
    "exception",
    "exception_notes",
    "exception_proof",
    "start_date",
    "end_date",
)


class ProdLoadStage(EtlStageBase):
    stage_name = "prod_load"

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.bulk_copy

    def run(self, session: Session) -> dict[str, int]:
        with self.phase("truncate"):
            deleted = session.execute(
                delete(ProdFinding).execution_options(synchronize_session=False)
            ).rowcount or 0
            self.log_count("truncate", deleted, "rows removed from prod_findings")

        with self.phase("insert"):
            now = utcnow()
            user = current_db_user()
            fixed = case((StgFinding.end_date.is_not(None), "Y"), else_="N")
            source = select(
                *(getattr(StgFinding, c) for c in COPIED_COLUMNS),
                fixed,
                literal(now),
                literal(user),
                literal(now),
                literal(user),
            ).order_by(StgFinding.id)
            target_cols = [
                *COPIED_COLUMNS,
                "fixed",
                "prod_created_date",
                "prod_created_by",
                "prod_modified_date",
                "prod_modified_by",
            ]
            session.execute(insert(ProdFinding).from_select(target_cols, source))
            inserted = int(session.execute(select(func.count(ProdFinding.id))).scalar_one())
            self.log_count("insert", inserted, "rows loaded into prod_findings")

        return {"deleted": deleted, "inserted": inserted}
