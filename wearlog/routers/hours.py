"""Reconciled per-hour ownership view."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Query

from wearlog.dependencies import Engine
from wearlog.models.attributions import AttributedHourRead

router = APIRouter(prefix="/hours", tags=["hours"])


@router.get("/{day}", response_model=list[AttributedHourRead])
async def reconciled_hours(
    day: date,
    engine: Engine,
    include_zero: bool = Query(default=True, description="Include hours with zero steps"),
) -> Any:
    hours = await engine.get_reconciled_hours(day)
    if not include_zero:
        hours = [h for h in hours if h.steps > 0]
    return [AttributedHourRead.model_validate(h) for h in hours]
