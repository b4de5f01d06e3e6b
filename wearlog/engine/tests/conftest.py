"""Shared fixtures for wearlog engine tests.

Tests run against a real in-memory SQLite store and an in-memory activity
provider; time is driven by a ``FakeClock`` so every transition is explicit.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import UUID

import pytest
import pytest_asyncio

from wearlog.engine.adapters.static import StaticActivityProvider
from wearlog.engine.base import Equipment, RawSample
from wearlog.engine.config_loader import EnginePolicy, default_policy
from wearlog.engine.core import WearEngine
from wearlog.services.sqlite_store import SQLiteStore

TEST_DATE = date(2026, 2, 23)
UNKNOWN_EQUIPMENT_ID = UUID("12345678-1234-5678-1234-567812345678")


def at(hour: int, minute: int = 0, second: int = 0, day: date = TEST_DATE) -> datetime:
    """UTC instant on ``day`` (TEST_DATE by default)."""
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc)


def sample(hour: int, steps: int, distance_km: float = 0.0, day: date = TEST_DATE) -> RawSample:
    return RawSample(day=day, hour=hour, steps=steps, distance_km=distance_km)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def policy() -> EnginePolicy:
    return default_policy()


@pytest.fixture
def provider() -> StaticActivityProvider:
    return StaticActivityProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(8))


@pytest_asyncio.fixture
async def store():
    sqlite_store = SQLiteStore(":memory:")
    await sqlite_store.open()
    yield sqlite_store
    await sqlite_store.close()


@pytest.fixture
def engine(store, provider, policy, clock) -> WearEngine:
    return WearEngine(store, provider, policy, clock=clock)


@pytest_asyncio.fixture
async def shoe_x(engine) -> Equipment:
    return await engine.create_equipment("Altra", "Lone Peak 8", inactivity_timeout_seconds=3600)


@pytest_asyncio.fixture
async def shoe_y(engine) -> Equipment:
    return await engine.create_equipment("Hoka", "Speedgoat 5", inactivity_timeout_seconds=3600)
