"""Finding-group ids and the global priority rank for stg_findings."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from logging_utils import get_logger
from models.stg_findings import StgFinding
from support.stage_base import EtlStageBase
from utils.severity import SeverityTier, tier_offsets

logger = get_logger(__name__)


class RankInput(NamedTuple):
    id: int
    normalized_object: str | None
    finding_name: str | None
    risk_level: str | None


def rank_finding_groups(rows: Iterable[RankInput]) -> dict[int, int]:
    """Compute finding_object_id/priority_rank for every rankable row.

    - Rows sharing (normalized_object, finding_name) form one group; the row
      with the smallest id is its representative.
    - Representatives are ranked by id within their severity tier, then
      shifted by the number of representatives in all more severe tiers.
    - Groups whose representative has no risk level are left out.

    Returns {row id: value}; rows missing from the result stay unranked.
    """

    rows = list(rows)
    representative: dict[tuple[str, str], RankInput] = {}
    members: dict[tuple[str, str], list[int]] = defaultdict(list)
    for r in rows:
        if r.normalized_object is None or r.finding_name is None:
            continue
        key = (r.normalized_object, r.finding_name)
        members[key].append(r.id)
        current = representative.get(key)
        if current is None or r.id < current.id:
            representative[key] = r

    by_tier: dict[SeverityTier, list[tuple[int, tuple[str, str]]]] = defaultdict(list)
    for key, rep in representative.items():
        tier = SeverityTier.from_risk_level(rep.risk_level)
        if tier is not None:
            by_tier[tier].append((rep.id, key))

    offsets = tier_offsets({tier: len(reps) for tier, reps in by_tier.items()})

    result: dict[int, int] = {}
    for tier, reps in by_tier.items():
        for rank, (_, key) in enumerate(sorted(reps), start=1):
            value = offsets[tier] + rank
            for row_id in members[key]:
                result[row_id] = value
    return result


class ConsolidationStage(EtlStageBase):
    stage_name = "consolidation"

    def run(self, session: Session) -> dict[str, int]:
        with self.phase("reset"):
            reset = session.execute(
                update(StgFinding)
                .values(fixed="N", finding_object_id=None, priority_rank=None)
                .execution_options(synchronize_session=False)
            ).rowcount or 0
            self.log_count("reset", reset, "rows reinitialized")

        with self.phase("rank"):
            rows = [
                RankInput(*r)
                for r in session.execute(
                    select(
                        StgFinding.id,
                        StgFinding.normalized_object,
                        StgFinding.finding_name,
                        StgFinding.risk_level,
                    )
                )
            ]
            ranks = rank_finding_groups(rows)
            groups = len(set(ranks.values()))
            self.log_count("rank", groups, "ranked finding groups")
            self.log_count("rank", len(rows) - len(ranks), "rows left unranked")

        with self.phase("update"):
            changes = [
                {"id": row_id, "finding_object_id": value, "priority_rank": value}
                for row_id, value in ranks.items()
            ]
            size = self.config.batch_size_bulk_load
            for i in range(0, len(changes), size):
                session.execute(
                    update(StgFinding).execution_options(synchronize_session=False),
                    changes[i : i + size],
                )
            self.log_count("update", len(changes), "rows updated")

        return {
            "reset": reset,
            "groups": groups,
            "ranked_rows": len(ranks),
            "unranked_rows": len(rows) - len(ranks),
        }
