"""Fixtures for API tests.

The app starts through its real lifespan against an in-memory SQLite store.
The engine it builds is then swapped for one sharing the same store but
driven by a fake clock and an in-memory activity provider.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from wearlog.config import Settings
from wearlog.engine.adapters.static import StaticActivityProvider
from wearlog.engine.config_loader import default_policy
from wearlog.engine.core import WearEngine
from wearlog.engine.tests.conftest import FakeClock, at
from wearlog.main import create_app

API = "/api/v1"


@pytest.fixture
def provider() -> StaticActivityProvider:
    return StaticActivityProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(8))


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=":memory:", environment="test", cors_origins=["http://testserver"])


@pytest.fixture
def client(settings, provider, clock):
    app = create_app(settings)
    with TestClient(app) as test_client:
        started = app.state.engine
        app.state.engine = WearEngine(started.store, provider, default_policy(), clock=clock)
        yield test_client
        app.state.engine = started


@pytest.fixture
def shoe(client) -> dict:
    response = client.post(
        f"{API}/equipment",
        json={"brand": "Altra", "model": "Lone Peak 8", "inactivity_timeout_seconds": 3600},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def other_shoe(client) -> dict:
    response = client.post(f"{API}/equipment", json={"brand": "Hoka", "model": "Speedgoat 5"})
    assert response.status_code == 201
    return response.json()
