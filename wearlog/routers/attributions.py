"""Hour attribution endpoints.

Hours are ISO-8601 timestamps; they are normalised to the start of their hour
in the policy timezone.  Naive timestamps are read as UTC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from wearlog.dependencies import Engine
from wearlog.models.attributions import (
    AttributionBatchDelete,
    AttributionBatchSet,
    AttributionChangeRead,
    AttributionSet,
    HourAttributionRead,
)

router = APIRouter(prefix="/attributions", tags=["attributions"])


@router.get("", response_model=list[HourAttributionRead])
async def list_attributions(
    engine: Engine,
    start: datetime = Query(...),
    end: datetime = Query(...),
) -> Any:
    attributions = await engine.get_attributions(start, end)
    return [HourAttributionRead.model_validate(a) for a in attributions]


@router.get("/{hour}", response_model=HourAttributionRead)
async def get_attribution(hour: datetime, engine: Engine) -> Any:
    attribution = await engine.get_attribution(hour)
    if attribution is None:
        raise HTTPException(status_code=404, detail="Attribution not found")
    return HourAttributionRead.model_validate(attribution)


@router.put("/{hour}", response_model=AttributionChangeRead)
async def set_attribution(hour: datetime, engine: Engine, body: AttributionSet) -> Any:
    change = await engine.attribute_hour(hour, body.equipment_id)
    return AttributionChangeRead.from_change(change)


@router.delete("/{hour}", status_code=204)
async def remove_attribution(hour: datetime, engine: Engine) -> None:
    removed = await engine.remove_attribution(hour)
    if removed is None:
        raise HTTPException(status_code=404, detail="Attribution not found")


@router.post("/batch", response_model=list[AttributionChangeRead])
async def set_attributions(engine: Engine, body: AttributionBatchSet) -> Any:
    changes = await engine.attribute_hours(body.hours, body.equipment_id)
    return [AttributionChangeRead.from_change(c) for c in changes]


@router.post("/batch-delete", response_model=list[HourAttributionRead])
async def remove_attributions(engine: Engine, body: AttributionBatchDelete) -> Any:
    removed = await engine.remove_attributions(body.hours)
    return [HourAttributionRead.model_validate(a) for a in removed]
