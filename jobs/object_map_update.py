"""Extract object names from raw_findings and add whitelisted ones to objects_map."""

from __future__ import annotations

from collections import Counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from logging_utils import get_logger
from models.raw_findings import RawFinding
from support.stage_base import EtlStageBase
from utils.name_extraction import extract_candidates
from utils.object_map_store import ensure_unknown_entry, get_existing_map_names, insert_names
from utils.whitelist import load_whitelist, reconcile_map

logger = get_logger(__name__)


def collect_candidates(
    fields, *, domain_suffix: str | None, ignore_keywords
) -> tuple[set[str], Counter]:
    """Run the extractor over many affected-targets fields.

    Returns the accepted canonical names and a Counter of rejection reasons.
    """

    names: set[str] = set()
    rejected: Counter = Counter()
    for raw_field in fields:
        for c in extract_candidates(
            raw_field, domain_suffix=domain_suffix, ignore_keywords=ignore_keywords
        ):
            if c.accepted:
                names.add(c.normalized)
            else:
                rejected[c.reason.value] += 1
                logger.debug("Rejected fragment %r: %s", c.raw, c.reason.value)
    return names, rejected


class ObjectMapUpdateStage(EtlStageBase):
    stage_name = "object_map"

    def __init__(self, config, *, session_factory=None) -> None:
        super().__init__(config, session_factory=session_factory)
        self._whitelist: set[str] = set()

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.map_write

    def preflight(self) -> None:
        self._whitelist = load_whitelist(self.config.source.object_whitelist_file)

    def run(self, session: Session) -> dict[str, int]:
        with self.phase("extract"):
            fields = session.execute(
                select(RawFinding.affected_targets).where(
                    RawFinding.affected_targets.is_not(None)
                )
            ).scalars()
            candidates, rejected = collect_candidates(
                fields,
                domain_suffix=self.config.domain_suffix,
                ignore_keywords=self.config.source.extractor_ignore_keywords,
            )
            self.log_count("extract", len(candidates), "distinct candidate names")
            for reason, n in sorted(rejected.items()):
                self.log_count("extract", n, f"fragments rejected ({reason})")

        with self.phase("reconcile"):
            ensure_unknown_entry(session)
            existing = get_existing_map_names(session)
            to_insert = reconcile_map(candidates, self._whitelist, existing)
            not_whitelisted = len({c.upper() for c in candidates} - self._whitelist)
            self.log_count("reconcile", not_whitelisted, "candidates not in whitelist")
            self.log_count("reconcile", len(to_insert), "names to insert")

        with self.phase("insert"):
            inserted = insert_names(
                session, to_insert, batch_size=self.config.batch_size_map_insert
            )

        return {
            "candidates": len(candidates),
            "rejected_fragments": sum(rejected.values()),
            "not_whitelisted": not_whitelisted,
            "inserted": inserted,
        }
