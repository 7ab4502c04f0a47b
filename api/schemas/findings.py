from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, field_serializer


class FindingOut(BaseModel):
    """One production finding as exposed to dashboards."""

    id: int
    finding_object_id: Optional[int] = None
    priority_rank: Optional[int] = None
    normalized_object: Optional[str] = None
    object_map_id: int
    finding_name: Optional[str] = None
    finding_category: str
    risk_level: Optional[str] = None
    impacted_objects: Optional[str] = None
    fixed: str
    level_of_effort: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    exception: Optional[str] = None
    exception_notes: Optional[str] = None
    exception_proof: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    # Dashboards only care about the day.
    @field_serializer("start_date", "end_date")
    def _as_date(self, value: Optional[datetime]) -> Optional[date]:
        return value.date() if value is not None else None


class ObjectOut(BaseModel):
    id: int
    object_name: str
    object_type: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FindingsSummary(BaseModel):
    total: int
    open: int
    fixed: int
    by_risk_level: Dict[str, int]
    unranked: int
