"""Wearlog API: FastAPI application entry point.

Run locally:
    uvicorn wearlog.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wearlog.config import Settings, get_settings
from wearlog.engine.config_loader import get_policy, load_policy
from wearlog.engine.core import WearEngine
from wearlog.engine.errors import (
    EquipmentArchived,
    EquipmentNotFound,
    InvalidEquipment,
    InvalidInterval,
    NoActiveSession,
    PersistenceFailure,
    SessionAlreadyActive,
    WearlogError,
)
from wearlog.routers import attributions, equipment, health, hours, maintenance, sessions
from wearlog.services.factory import create_provider, create_store

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("wearlog")

# Engine error → HTTP status.  Checked in order; first isinstance match wins.
ERROR_STATUS: list[tuple[type[WearlogError], int]] = [
    (EquipmentNotFound, 404),
    (EquipmentArchived, 409),
    (NoActiveSession, 409),
    (SessionAlreadyActive, 409),
    (InvalidInterval, 422),
    (InvalidEquipment, 422),
    (PersistenceFailure, 503),
]


def status_for(exc: WearlogError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


async def wearlog_error_handler(request: Request, exc: WearlogError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def provider_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.error("Activity provider request failed: %s", exc)
    return JSONResponse(status_code=502, content={"detail": "Activity provider unavailable"})


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Wearlog API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    policy = load_policy(Path(settings.policy_path)) if settings.policy_path else get_policy()
    store = create_store(settings)
    await store.open()
    provider = create_provider(settings, policy.tz)
    app.state.engine = WearEngine(store, provider, policy)
    yield
    await app.state.engine.aclose()
    await store.close()
    app.state.engine = None
    logger.info("Wearlog API shut down")


# ---------- App factory ----------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger("wearlog").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Wearlog API",
        description=(
            "Equipment wear tracking: sessions, hour attributions and a "
            "reconciled per-hour ownership view of step activity."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(WearlogError, wearlog_error_handler)
    app.add_exception_handler(httpx.HTTPError, provider_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (always at /health, mirrored under v1) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(health.router, prefix=v1_prefix)
    app.include_router(equipment.router, prefix=v1_prefix)
    app.include_router(sessions.router, prefix=v1_prefix)
    app.include_router(attributions.router, prefix=v1_prefix)
    app.include_router(hours.router, prefix=v1_prefix)
    app.include_router(maintenance.router, prefix=v1_prefix)

    return app


app = create_app()
