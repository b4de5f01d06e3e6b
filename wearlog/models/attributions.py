"""Pydantic models for hour attributions and reconciled hours."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import Field

from wearlog.engine.attributions import AttributionChange
from wearlog.engine.base import OwnershipSource
from wearlog.models.base import WearlogBase


class AttributionSet(WearlogBase):
    equipment_id: uuid.UUID


class AttributionBatchSet(WearlogBase):
    equipment_id: uuid.UUID
    hours: list[datetime] = Field(min_length=1, max_length=24 * 31)


class AttributionBatchDelete(WearlogBase):
    hours: list[datetime] = Field(min_length=1, max_length=24 * 31)


class HourAttributionRead(WearlogBase):
    attribution_id: uuid.UUID
    equipment_id: uuid.UUID
    hour_date: datetime
    steps: int
    distance_km: float
    created_at: datetime


class AttributionChangeRead(WearlogBase):
    attribution: HourAttributionRead
    removed_session_ids: list[uuid.UUID] = Field(default_factory=list)
    removed_attribution_ids: list[uuid.UUID] = Field(default_factory=list)
    affected_equipment_ids: list[uuid.UUID] = Field(default_factory=list)

    @classmethod
    def from_change(cls, change: AttributionChange) -> "AttributionChangeRead":
        return cls(
            attribution=HourAttributionRead.model_validate(change.attribution),
            removed_session_ids=change.conflicts.removed_session_ids,
            removed_attribution_ids=change.conflicts.removed_attribution_ids,
            affected_equipment_ids=change.conflicts.affected_equipment_ids,
        )


class AttributedHourRead(WearlogBase):
    day: date
    hour: int = Field(ge=0, le=23)
    hour_start: datetime
    steps: int
    distance_km: float
    owner: uuid.UUID | None = None
    source: OwnershipSource | None = None
