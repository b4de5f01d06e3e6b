"""Equipment endpoints: CRUD, archive, default selection and statistics."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from wearlog.dependencies import Engine
from wearlog.models.equipment import (
    CollectionStatisticsRead,
    DefaultUpdate,
    EquipmentCreate,
    EquipmentRead,
    EquipmentStatisticsRead,
    EquipmentUpdate,
)

router = APIRouter(prefix="/equipment", tags=["equipment"])


@router.get("", response_model=list[EquipmentRead])
async def list_equipment(
    engine: Engine,
    include_archived: bool = Query(default=True),
) -> Any:
    items = await engine.list_equipment(include_archived=include_archived)
    return [EquipmentRead.model_validate(e) for e in items]


@router.post("", response_model=EquipmentRead, status_code=201)
async def create_equipment(engine: Engine, body: EquipmentCreate) -> Any:
    equipment = await engine.create_equipment(
        body.brand,
        body.model,
        notes=body.notes,
        inactivity_timeout_seconds=body.inactivity_timeout_seconds,
        estimated_lifespan_km=body.estimated_lifespan_km,
        is_default=body.is_default,
    )
    return EquipmentRead.model_validate(equipment)


@router.get("/statistics", response_model=CollectionStatisticsRead)
async def collection_statistics(engine: Engine) -> Any:
    return CollectionStatisticsRead.model_validate(await engine.collection_statistics())


@router.get("/{equipment_id}", response_model=EquipmentRead)
async def get_equipment(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return EquipmentRead.model_validate(await engine.get_equipment(equipment_id))


@router.patch("/{equipment_id}", response_model=EquipmentRead)
async def update_equipment(
    equipment_id: uuid.UUID, engine: Engine, body: EquipmentUpdate
) -> Any:
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    equipment = await engine.update_equipment(equipment_id, **updates)
    return EquipmentRead.model_validate(equipment)


@router.delete("/{equipment_id}", status_code=204)
async def delete_equipment(equipment_id: uuid.UUID, engine: Engine) -> None:
    await engine.delete_equipment(equipment_id)


@router.post("/{equipment_id}/archive", response_model=EquipmentRead)
async def archive_equipment(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return EquipmentRead.model_validate(await engine.archive_equipment(equipment_id))


@router.post("/{equipment_id}/unarchive", response_model=EquipmentRead)
async def unarchive_equipment(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return EquipmentRead.model_validate(await engine.unarchive_equipment(equipment_id))


@router.put("/{equipment_id}/default", response_model=EquipmentRead)
async def set_default_equipment(
    equipment_id: uuid.UUID, engine: Engine, body: DefaultUpdate | None = None
) -> Any:
    is_default = body.is_default if body is not None else True
    equipment = await engine.set_default_equipment(equipment_id, is_default)
    return EquipmentRead.model_validate(equipment)


@router.get("/{equipment_id}/statistics", response_model=EquipmentStatisticsRead)
async def equipment_statistics(equipment_id: uuid.UUID, engine: Engine) -> Any:
    stats = await engine.equipment_statistics(equipment_id)
    return EquipmentStatisticsRead.model_validate(stats)
