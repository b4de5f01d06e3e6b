"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from wearlog.config import Settings, get_settings
from wearlog.engine.core import WearEngine


async def get_engine(request: Request) -> WearEngine:
    """Return the engine built during app startup.

    The lifespan hook in ``wearlog.main`` sets ``app.state.engine``.
    """
    engine: WearEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


async def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, falling back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


# Annotated shortcuts for route signatures
Engine = Annotated[WearEngine, Depends(get_engine)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
