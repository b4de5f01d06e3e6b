"""Wear session endpoints."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Query

from wearlog.dependencies import Engine
from wearlog.models.sessions import WearSessionRead

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=list[WearSessionRead])
async def list_sessions(
    engine: Engine,
    equipment_id: uuid.UUID | None = Query(default=None),
) -> Any:
    sessions = await engine.list_sessions(equipment_id)
    return [WearSessionRead.model_validate(s) for s in sessions]


@router.get("/active", response_model=WearSessionRead | None)
async def active_session(engine: Engine) -> Any:
    session = await engine.active_session()
    return WearSessionRead.model_validate(session) if session is not None else None


@router.post("/{equipment_id}/start", response_model=WearSessionRead, status_code=201)
async def start_session(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return WearSessionRead.model_validate(await engine.start_session(equipment_id))


@router.post("/{equipment_id}/stop", response_model=WearSessionRead)
async def stop_session(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return WearSessionRead.model_validate(await engine.stop_session(equipment_id))


@router.post("/{equipment_id}/toggle", response_model=WearSessionRead)
async def toggle_session(equipment_id: uuid.UUID, engine: Engine) -> Any:
    return WearSessionRead.model_validate(await engine.toggle_session(equipment_id))
