from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from models import Base
from models.objects_map import current_db_user
from utils.time_utils import utcnow_sa_default

LEVEL_OF_EFFORT_VALUES: tuple[str, ...] = ("High", "Medium", "Low")
EXCEPTION_VALUES: tuple[str, ...] = ("GPO", "Org Policy", "Other", "STIG")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IS NULL OR {column} IN ({quoted})"


class ProdFinding(Base):
    """Reporting copy of the staged findings (truncated and reloaded per run).

    `fixed` is derived: 'Y' iff `end_date` is present.
    `risk_level` is not constrained to the five canonical tiers; anomalous
    values are ranked after Informational and still reported.
    """

    __tablename__ = "prod_findings"
    __table_args__ = (
        CheckConstraint("fixed IN ('Y', 'N')", name="ck_prod_findings_fixed"),
        CheckConstraint(
            _in_list("level_of_effort", LEVEL_OF_EFFORT_VALUES),
            name="ck_prod_findings_loe",
        ),
        CheckConstraint(
            _in_list("exception", EXCEPTION_VALUES),
            name="ck_prod_findings_exception",
        ),
        Index("ix_prod_findings_risk_priority", "risk_level", "priority_rank"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Link to raw source (for traceability).
    raw_finding_id = Column(Integer, nullable=True, index=True)

    normalized_object = Column(String(512), nullable=True, index=True)
    object_map_id = Column(
        Integer,
        ForeignKey("objects_map.id", ondelete="NO ACTION"),
        nullable=False,
        index=True,
    )
    finding_name = Column(String(2048), nullable=True, index=True)
    finding_category = Column(String(1000), nullable=False)
    risk_level = Column(String(16), nullable=True)
    impacted_objects = Column(Text, nullable=True)

    fixed = Column(String(1), nullable=False, default="N")
    priority_rank = Column(Integer, nullable=True)
    finding_object_id = Column(Integer, nullable=True, index=True)

    level_of_effort = Column(String(32), nullable=True)
    assigned_to = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    exception = Column(String(255), nullable=True)
    exception_notes = Column(String(255), nullable=True)
    exception_proof = Column(String(255), nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    prod_created_date = Column(DateTime, nullable=False, default=utcnow_sa_default)
    prod_created_by = Column(String(128), nullable=False, default=current_db_user)
    prod_modified_date = Column(
        DateTime,
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
    prod_modified_by = Column(String(128), nullable=False, default=current_db_user)

    object_map = relationship("ObjectMap")
