"""Staging normalizer: raw_findings -> canonicalized, linked stg_findings.

Phases (one transaction, each a bulk operation over the whole batch):

1. reset        - truncate stg_findings; derived columns start at fixed='N',
                  no group id, no rank
2. expand       - one row per (affected target, category) of every raw row
3. canonicalize - BULK canonicalization of normalized_object
4. invalidate   - NULL names that are malformed or not in objects_map
5. purge        - delete rows with no normalized_object
6. link         - set object_map_id, falling back to the 'Unknown' id
7. deduplicate  - keep the lowest id per (raw row, map id, name, category)
"""

from __future__ import annotations

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.orm import Session

from logging_utils import get_logger
from models.objects_map import UNKNOWN_OBJECT_NAME, ObjectMap
from models.raw_findings import RawFinding
from models.stg_findings import StgFinding
from support.stage_base import EtlStageBase, StageError
from utils.name_extraction import (
    FRAGMENT_SEPARATOR,
    CanonicalMode,
    canonicalize,
    is_valid_object_name,
)
from utils.object_map_store import get_map_ids, get_unknown_map_id
from utils.time_utils import utcnow

logger = get_logger(__name__)

_NO_SYNC = {"synchronize_session": False}


def split_multi_value(text: str | None) -> list[str]:
    """Split a ';' list, trimming and dropping empty fragments."""
    if not text:
        return []
    return [p.strip() for p in text.split(FRAGMENT_SEPARATOR) if p.strip()]


def expand_raw_row(raw) -> list[dict]:
    """Cartesian product of a raw row's targets and categories.

    A raw row without any target or without any category yields no rows.
    """

    targets = split_multi_value(raw.affected_targets)
    categories = split_multi_value(raw.category)
    return [
        {
            "raw_finding_id": raw.id,
            "normalized_object": target,
            "impacted_objects": raw.affected_targets,
            "finding_category": category,
            "risk_level": raw.severity,
            "finding_name": raw.issue_name,
        }
        for target in targets
        for category in categories
    ]


class StagingStage(EtlStageBase):
    stage_name = "staging"

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.bulk_copy

    def _bulk_update(self, session: Session, changes: list[dict]) -> None:
        size = self.config.batch_size_bulk_load
        for i in range(0, len(changes), size):
            session.execute(
                update(StgFinding).execution_options(**_NO_SYNC), changes[i : i + size]
            )

    def run(self, session: Session) -> dict[str, int]:
        counts: dict[str, int] = {}

        unknown_id = get_unknown_map_id(session)
        if unknown_id is None:
            raise StageError(
                self.stage_name,
                "link",
                f"'{UNKNOWN_OBJECT_NAME}' entry not found in objects_map",
            )

        with self.phase("reset"):
            counts["reset"] = (
                session.execute(delete(StgFinding).execution_options(**_NO_SYNC)).rowcount
                or 0
            )
            self.log_count("reset", counts["reset"], "previous staged rows removed")

        with self.phase("expand"):
            now = utcnow()
            size = self.config.batch_size_bulk_load
            buffer: list[dict] = []
            expanded = 0
            raws = session.execute(select(RawFinding).order_by(RawFinding.id)).scalars().all()
            for raw in raws:
                buffer.extend(expand_raw_row(raw))
                if len(buffer) >= size:
                    session.execute(insert(StgFinding), [dict(r, stg_load_date=now) for r in buffer])
                    expanded += len(buffer)
                    buffer = []
            if buffer:
                session.execute(insert(StgFinding), [dict(r, stg_load_date=now) for r in buffer])
                expanded += len(buffer)
            counts["expanded"] = expanded
            self.log_count("expand", expanded, "rows inserted (targets x categories)")

        with self.phase("canonicalize"):
            changes = []
            for row_id, value in session.execute(
                select(StgFinding.id, StgFinding.normalized_object)
            ):
                cleaned = canonicalize(
                    value, domain_suffix=self.config.domain_suffix, mode=CanonicalMode.BULK
                )
                if cleaned != value:
                    changes.append({"id": row_id, "normalized_object": cleaned})
            self._bulk_update(session, changes)
            counts["canonicalized"] = len(changes)
            self.log_count("canonicalize", len(changes), "names rewritten")

        with self.phase("invalidate"):
            known = set(get_map_ids(session))
            changes = [
                {"id": row_id, "normalized_object": None}
                for row_id, name in session.execute(
                    select(StgFinding.id, StgFinding.normalized_object).where(
                        StgFinding.normalized_object.is_not(None)
                    )
                )
                if not is_valid_object_name(name) or name not in known
            ]
            self._bulk_update(session, changes)
            counts["invalidated"] = len(changes)
            self.log_count("invalidate", len(changes), "invalid or unmapped objects nullified")

        with self.phase("purge"):
            purged = session.execute(
                delete(StgFinding)
                .where(StgFinding.normalized_object.is_(None))
                .execution_options(**_NO_SYNC)
            ).rowcount or 0
            counts["purged"] = purged
            self.log_count("purge", purged, "unattributable rows deleted")

        with self.phase("link"):
            map_id = (
                select(ObjectMap.id)
                .where(ObjectMap.object_name == StgFinding.normalized_object)
                .limit(1)
                .scalar_subquery()
            )
            linked = session.execute(
                update(StgFinding)
                .where(StgFinding.object_map_id.is_(None))
                .values(object_map_id=func.coalesce(map_id, unknown_id))
                .execution_options(**_NO_SYNC)
            ).rowcount or 0
            counts["linked"] = linked
            fallback = session.execute(
                select(func.count(StgFinding.id)).where(StgFinding.object_map_id == unknown_id)
            ).scalar_one()
            counts["linked_unknown"] = int(fallback)
            self.log_count("link", linked, "rows linked to objects_map")
            if fallback:
                logger.warning(
                    "[%s] link: %s rows fell back to '%s'",
                    self.stage_name,
                    fallback,
                    UNKNOWN_OBJECT_NAME,
                )

        with self.phase("deduplicate"):
            ranked = select(
                StgFinding.id.label("id"),
                func.row_number()
                .over(
                    partition_by=(
                        StgFinding.raw_finding_id,
                        StgFinding.object_map_id,
                        StgFinding.finding_name,
                        StgFinding.finding_category,
                    ),
                    order_by=StgFinding.id,
                )
                .label("rn"),
            ).subquery()
            deduped = session.execute(
                delete(StgFinding)
                .where(StgFinding.id.in_(select(ranked.c.id).where(ranked.c.rn > 1)))
                .execution_options(**_NO_SYNC)
            ).rowcount or 0
            counts["deduplicated"] = deduped
            self.log_count("deduplicate", deduped, "duplicate rows deleted")

        counts["staged"] = int(
            session.execute(select(func.count(StgFinding.id))).scalar_one()
        )
        return counts
