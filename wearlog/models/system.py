"""Pydantic models for the integrity report."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from wearlog.models.base import WearlogBase


class IntegrityIssueRead(WearlogBase):
    code: str
    message: str
    record_ids: list[uuid.UUID] = Field(default_factory=list)


class IntegrityReportRead(WearlogBase):
    checked_at: datetime
    is_valid: bool
    equipment_count: int
    session_count: int
    attribution_count: int
    issues: list[IntegrityIssueRead] = Field(default_factory=list)
