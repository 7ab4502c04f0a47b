"""SQLAlchemy models package.

Important: This project uses a single declarative Base defined in `db.py`.
Import `Base` from this package in all model modules.

Table layout mirrors the ETL layers:

- raw_findings: one row per finding exactly as exported (multi-valued fields intact)
- objects_map: canonical object names with stable surrogate ids
- stg_findings: split, normalized, linked and ranked rows
- prod_findings: the reporting copy of the staged rows

    Base.metadata.create_all(...)
"""

from db import Base  # re-export a single shared Base

# Import models so they are registered with SQLAlchemy metadata on startup.
from models.raw_findings import RawFinding  # noqa: F401
from models.objects_map import ObjectMap  # noqa: F401
from models.stg_findings import StgFinding  # noqa: F401
from models.prod_findings import ProdFinding  # noqa: F401
