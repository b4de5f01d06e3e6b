"""Health check endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from wearlog.dependencies import AppSettings, Engine
from wearlog.engine.errors import PersistenceFailure

router = APIRouter(tags=["system"])
logger = logging.getLogger("wearlog.health")


@router.get("/health")
async def health_check(engine: Engine, settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also performs a lightweight store connectivity check.
    """
    db_ok = False
    try:
        db_ok = await engine.store.ping()
    except PersistenceFailure as exc:
        logger.warning("Health check store probe failed: %s", exc)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if db_ok else "unreachable",
        "activity_provider": engine.ledger.provider.SOURCE_ID,
        "policy_version": engine.policy.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
