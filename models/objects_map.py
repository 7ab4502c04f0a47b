from __future__ import annotations

import getpass

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from models import Base
from utils.time_utils import utcnow_sa_default

UNKNOWN_OBJECT_NAME = "Unknown"


def current_db_user() -> str:
    """Login recorded in the audit columns."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class ObjectMap(Base):
    """Canonical object (server) names with stable surrogate ids.

    Uniqueness:
    - `object_name` is unique case-insensitively (NOCASE collation), so
      'SQL01' and 'sql01' can never both exist.
    - The sentinel row named 'Unknown' is the fallback target for findings
      whose object cannot be resolved. Rows are never deleted by the ETL.
    """

    __tablename__ = "objects_map"
    __table_args__ = (
        UniqueConstraint("object_name", name="uq_objects_map_object_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    object_name = Column(String(512, collation="NOCASE"), nullable=False)
    object_type = Column(String(50), nullable=True)
    description = Column(String(1024), nullable=True)

    # Auditability.
    created_date = Column(DateTime, nullable=False, default=utcnow_sa_default)
    created_by = Column(String(128), nullable=False, default=current_db_user)
    modified_date = Column(
        DateTime,
        nullable=False,
        default=utcnow_sa_default,
        onupdate=utcnow_sa_default,
    )
    modified_by = Column(String(128), nullable=False, default=current_db_user)
