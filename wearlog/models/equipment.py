"""Pydantic models for equipment and its derived statistics."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from wearlog.models.base import WearlogBase


class EquipmentCreate(WearlogBase):
    brand: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    notes: str = ""
    inactivity_timeout_seconds: int | None = Field(default=None, gt=0)
    estimated_lifespan_km: float | None = Field(default=None, gt=0)
    is_default: bool = False


class EquipmentUpdate(WearlogBase):
    brand: str | None = Field(default=None, min_length=1, max_length=100)
    model: str | None = Field(default=None, min_length=1, max_length=100)
    notes: str | None = None
    inactivity_timeout_seconds: int | None = Field(default=None, gt=0)
    estimated_lifespan_km: float | None = Field(default=None, gt=0)


class DefaultUpdate(WearlogBase):
    is_default: bool = True


class EquipmentRead(WearlogBase):
    equipment_id: uuid.UUID
    brand: str
    model: str
    display_name: str
    notes: str
    archived: bool
    is_default: bool
    inactivity_timeout_seconds: int
    estimated_lifespan_km: float
    created_at: datetime


class EquipmentStatisticsRead(WearlogBase):
    equipment_id: uuid.UUID
    session_count: int
    total_wear_seconds: float
    average_session_seconds: float
    total_steps: int
    total_distance_km: float
    lifespan_progress: float = Field(ge=0, le=1)
    usage_days: int
    last_used: datetime | None = None
    is_active: bool


class CollectionStatisticsRead(WearlogBase):
    total: int
    active: int
    archived: int
    default_equipment_id: uuid.UUID | None = None
