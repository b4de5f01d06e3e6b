"""Auto-management sweep and integrity audit."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from wearlog.dependencies import Engine
from wearlog.models.sessions import SweepReportRead
from wearlog.models.system import IntegrityReportRead

router = APIRouter(tags=["maintenance"])


@router.post("/auto-management/sweep", response_model=SweepReportRead)
async def run_sweep(engine: Engine) -> Any:
    return SweepReportRead.model_validate(await engine.run_auto_management_sweep())


@router.get("/integrity", response_model=IntegrityReportRead)
async def integrity(engine: Engine) -> Any:
    return IntegrityReportRead.model_validate(await engine.validate_integrity())
