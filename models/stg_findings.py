from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from models import Base
from models.objects_map import current_db_user
from utils.time_utils import utcnow_sa_default


class StgFinding(Base):
    """Staged finding: one row per (raw finding, single target, single category).

    - normalized_object: canonical object name (UPPERCASE) after cleaning;
      NULL marks a row that could not be attributed and is about to be purged.
    - object_map_id: resolved objects_map id (no FK; staging is rebuilt each run).
    - finding_object_id / priority_rank: the same computed value, written by
      consolidation. NULL for rows whose group has no risk level.
    """

    __tablename__ = "stg_findings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raw_finding_id = Column(Integer, nullable=True, index=True)

    normalized_object = Column(String(512), nullable=True)
    object_map_id = Column(Integer, nullable=True)
    impacted_objects = Column(Text, nullable=True)
    finding_category = Column(String(1000), nullable=True)
    risk_level = Column(String(16), nullable=True)
    finding_name = Column(String(2048), nullable=True)

    # Status & calculated values.
    fixed = Column(String(16), nullable=True, default="N")
    priority_rank = Column(Integer, nullable=True)
    finding_object_id = Column(Integer, nullable=True)

    # Tracking attributes (see jobs/tracking_sync.py).
    level_of_effort = Column(String(32), nullable=True)
    assigned_to = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    exception = Column(String(255), nullable=True)
    exception_notes = Column(String(255), nullable=True)
    exception_proof = Column(String(255), nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    stg_load_date = Column(DateTime, nullable=False, default=utcnow_sa_default)
    stg_created_by = Column(String(128), nullable=False, default=current_db_user)
