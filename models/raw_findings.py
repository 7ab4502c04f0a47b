from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from models import Base
from utils.time_utils import utcnow_sa_default


class RawFinding(Base):
    """One assessment finding exactly as exported by the assessment tool.

    `affected_targets` and `category` are free text, possibly multi-valued
    (semicolon separated). Staging splits them; this table keeps them intact
    so every staged row can be traced back to its source line.
    """

    __tablename__ = "raw_findings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    category = Column(String(2000), nullable=True)
    severity = Column(String(16), nullable=True)
    issue_name = Column(String(256), nullable=True)
    affected_targets = Column(Text, nullable=True)

    # Status & priority indicators (strings as exported)
    status = Column(String(64), nullable=True)
    impact = Column(String(64), nullable=True)
    ease_of_implementation = Column(String(64), nullable=True)
    urgency = Column(String(64), nullable=True)
    issue_priority = Column(String(64), nullable=True)

    due_date = Column(String(64), nullable=True)
    owner = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    raw_load_time = Column(DateTime, nullable=False, default=utcnow_sa_default)
