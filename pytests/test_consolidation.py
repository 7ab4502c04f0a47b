from __future__ import annotations

import random

import pytest

from jobs.consolidation import ConsolidationStage, RankInput, rank_finding_groups
from models.stg_findings import StgFinding
from pytests.common import add_dicts
from utils.severity import OTHER_TIER_OFFSET, SeverityTier, tier_offsets

ROWS = [
    RankInput(1, "SRV01", "Weak password", "High"),
    RankInput(2, "SRV01", "Weak password", "High"),
    RankInput(3, "SQL02", "Weak password", "Critical"),
    RankInput(4, "SRV01", "Open port", "Medium"),
    RankInput(5, "SQL02", "Open port", "Severe"),
    RankInput(6, "APP-03", "X", None),
    RankInput(7, "APP-03", "Y", "informational"),
    RankInput(8, "APP-03", "Z", "  "),
    RankInput(9, "APP-03", None, "Critical"),
]


@pytest.mark.parametrize(
    "risk,tier",
    [
        ("Critical", SeverityTier.CRITICAL),
        (" high ", SeverityTier.HIGH),
        ("MEDIUM", SeverityTier.MEDIUM),
        ("Low", SeverityTier.LOW),
        ("Informational", SeverityTier.INFORMATIONAL),
        ("Severe", SeverityTier.OTHER),
        ("Other", SeverityTier.OTHER),
        ("", None),
        (None, None),
    ],
)
def test_severity_tier_from_risk_level(risk, tier) -> None:
    assert SeverityTier.from_risk_level(risk) is tier


def test_tier_order_and_offsets() -> None:
    assert SeverityTier.CRITICAL < SeverityTier.HIGH < SeverityTier.INFORMATIONAL < SeverityTier.OTHER
    offsets = tier_offsets({SeverityTier.CRITICAL: 2, SeverityTier.LOW: 3})
    assert offsets[SeverityTier.CRITICAL] == 0
    assert offsets[SeverityTier.HIGH] == 2
    assert offsets[SeverityTier.INFORMATIONAL] == 5
    assert offsets[SeverityTier.OTHER] == 5 + OTHER_TIER_OFFSET


def test_rank_finding_groups_values() -> None:
    assert rank_finding_groups(ROWS) == {
        3: 1,
        1: 2,
        2: 2,
        4: 3,
        7: 4,
        5: 4 + OTHER_TIER_OFFSET + 1,
    }


def test_group_members_share_the_representative_value() -> None:
    rows = [
        RankInput(10, "HOST-A", "Q", "Low"),
        RankInput(11, "HOST-A", "Q", "Critical"),
    ]
    # The representative (id 10) decides the tier for the whole group.
    assert rank_finding_groups(rows) == {10: 1, 11: 1}


def test_group_with_null_representative_risk_is_unranked() -> None:
    rows = [
        RankInput(10, "HOST-A", "Q", None),
        RankInput(11, "HOST-A", "Q", "High"),
        RankInput(12, "HOST-B", "Q", "High"),
    ]
    assert rank_finding_groups(rows) == {12: 1}


def test_ranking_is_deterministic_for_any_row_order() -> None:
    expected = rank_finding_groups(ROWS)
    rng = random.Random(1234)
    for _ in range(5):
        shuffled = list(ROWS)
        rng.shuffle(shuffled)
        assert rank_finding_groups(shuffled) == expected


def test_more_severe_tiers_always_rank_first() -> None:
    levels = ["Critical", "High", "Medium", "Low", "Informational", "Bogus", "other-ish"]
    rng = random.Random(42)
    rows = [
        RankInput(i, f"HOST-{i % 13}", f"finding-{i % 7}", rng.choice(levels))
        for i in range(1, 300)
    ]
    ranks = rank_finding_groups(rows)
    tier = {r.id: SeverityTier.from_risk_level(r.risk_level) for r in rows}

    # Tier of a ranked row is its group's representative tier.
    rep_tier: dict[tuple, SeverityTier] = {}
    for r in sorted(rows, key=lambda r: r.id):
        rep_tier.setdefault((r.normalized_object, r.finding_name), tier[r.id])
    row_tier = {r.id: rep_tier[(r.normalized_object, r.finding_name)] for r in rows}

    ranked = list(ranks.items())
    for a_id, a_rank in ranked:
        for b_id, b_rank in ranked:
            if row_tier[a_id] < row_tier[b_id]:
                assert a_rank < b_rank

    # Every group gets a distinct value.
    groups = {(r.normalized_object, r.finding_name) for r in rows}
    assert len(set(ranks.values())) == len(groups)


def test_consolidation_stage_writes_same_value_to_both_columns(db_session, etl_config) -> None:
    add_dicts(
        db_session,
        StgFinding,
        [
            {
                "normalized_object": r.normalized_object,
                "finding_name": r.finding_name,
                "risk_level": r.risk_level,
                "finding_category": "Config",
                "object_map_id": 1,
                "fixed": "Y",
                "priority_rank": 999,
                "finding_object_id": 999,
            }
            for r in ROWS
        ],
    )

    result = ConsolidationStage(etl_config).execute()
    assert result.counts["reset"] == len(ROWS)
    assert result.counts["groups"] == 5
    assert result.counts["ranked_rows"] == 6
    assert result.counts["unranked_rows"] == 3

    db_session.expire_all()
    rows = {r.id: r for r in db_session.query(StgFinding).all()}
    expected = rank_finding_groups(ROWS)
    for row_id, row in rows.items():
        assert row.fixed == "N"
        assert row.finding_object_id == row.priority_rank
        assert row.priority_rank == expected.get(row_id)


def test_consolidation_rerun_is_stable(db_session, etl_config) -> None:
    add_dicts(
        db_session,
        StgFinding,
        [
            {
                "normalized_object": r.normalized_object,
                "finding_name": r.finding_name,
                "risk_level": r.risk_level,
                "finding_category": "Config",
                "object_map_id": 1,
            }
            for r in ROWS
        ],
    )

    def snapshot():
        db_session.expire_all()
        return sorted(
            (r.id, r.finding_object_id, r.priority_rank) for r in db_session.query(StgFinding)
        )

    ConsolidationStage(etl_config).execute()
    first = snapshot()
    ConsolidationStage(etl_config).execute()
    assert snapshot() == first
