"""Shared fixtures for persistence backend tests."""

from __future__ import annotations

import pytest
import pytest_asyncio

from wearlog.engine.base import Equipment
from wearlog.services.sqlite_store import SQLiteStore


@pytest_asyncio.fixture
async def store():
    sqlite_store = SQLiteStore(":memory:")
    await sqlite_store.open()
    yield sqlite_store
    await sqlite_store.close()


@pytest.fixture
def shoe() -> Equipment:
    return Equipment(brand="Altra", model="Lone Peak 8", notes="trail pair")


@pytest.fixture
def spare() -> Equipment:
    return Equipment(brand="Hoka", model="Speedgoat 5")
