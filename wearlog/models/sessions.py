"""Pydantic models for wear sessions and the auto-management sweep."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from wearlog.models.base import WearlogBase


class WearSessionRead(WearlogBase):
    session_id: uuid.UUID
    equipment_id: uuid.UUID
    start: datetime
    end: datetime | None = None
    is_open: bool
    auto_started: bool
    auto_closed: bool
    steps: int = Field(ge=0)
    distance_km: float = Field(ge=0)


class SweepReportRead(WearlogBase):
    ran_at: datetime
    closed_sessions: list[WearSessionRead] = Field(default_factory=list)
    started_session: WearSessionRead | None = None
    changed: bool
