"""Severity tiers used for the global priority order."""

from __future__ import annotations

from enum import IntEnum

OTHER_TIER_OFFSET = 100000


class SeverityTier(IntEnum):
    """Risk-level tiers, most severe first.

    Integer order is the severity order, so tiers compare with `<`.
    Anything that is not one of the five canonical levels is OTHER.
    """

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4
    INFORMATIONAL = 5
    OTHER = 6

    @property
    def extra_offset(self) -> int:
        return OTHER_TIER_OFFSET if self is SeverityTier.OTHER else 0

    @classmethod
    def from_risk_level(cls, risk_level: str | None) -> "SeverityTier | None":
        """Map a risk-level string to its tier; None/blank means unranked."""

        if risk_level is None:
            return None
        key = str(risk_level).strip()
        if not key:
            return None
        try:
            tier = cls[key.upper()]
        except KeyError:
            return cls.OTHER
        return tier


def tier_offsets(counts: dict[SeverityTier, int]) -> dict[SeverityTier, int]:
    """Rank offset per tier: representatives in all strictly more severe tiers."""

    offsets: dict[SeverityTier, int] = {}
    running = 0
    for tier in SeverityTier:
        offsets[tier] = running + tier.extra_offset
        running += counts.get(tier, 0)
    return offsets
