"""End-to-end API tests through the FastAPI app."""

from __future__ import annotations

import httpx

from wearlog.engine.errors import (
    EquipmentArchived,
    EquipmentNotFound,
    InvalidInterval,
    NoActiveSession,
    PersistenceFailure,
    SessionAlreadyActive,
)
from wearlog.engine.tests.conftest import UNKNOWN_EQUIPMENT_ID, sample
from wearlog.main import status_for
from wearlog.routers.tests.conftest import API

HOUR_9 = "2026-02-23T09:00:00Z"


class TestErrorMapping:
    def test_status_codes(self) -> None:
        assert status_for(EquipmentNotFound(UNKNOWN_EQUIPMENT_ID)) == 404
        assert status_for(EquipmentArchived(UNKNOWN_EQUIPMENT_ID)) == 409
        assert status_for(NoActiveSession(UNKNOWN_EQUIPMENT_ID)) == 409
        assert status_for(SessionAlreadyActive(UNKNOWN_EQUIPMENT_ID)) == 409
        assert status_for(InvalidInterval("bad")) == 422
        assert status_for(PersistenceFailure("down")) == 503


class TestHealth:
    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["activity_provider"] == "static"
        assert body["environment"] == "test"

    def test_health_mirrored_under_v1(self, client) -> None:
        assert client.get(f"{API}/health").status_code == 200


class TestEquipmentApi:
    def test_create_and_get(self, client, shoe) -> None:
        assert shoe["display_name"] == "Altra Lone Peak 8"
        response = client.get(f"{API}/equipment/{shoe['equipment_id']}")
        assert response.status_code == 200
        assert response.json()["inactivity_timeout_seconds"] == 3600

    def test_validation_error(self, client) -> None:
        response = client.post(f"{API}/equipment", json={"brand": "", "model": "X"})
        assert response.status_code == 422

    def test_unknown_equipment(self, client) -> None:
        response = client.get(f"{API}/equipment/{UNKNOWN_EQUIPMENT_ID}")
        assert response.status_code == 404
        assert str(UNKNOWN_EQUIPMENT_ID) in response.json()["detail"]

    def test_update(self, client, shoe) -> None:
        response = client.patch(f"{API}/equipment/{shoe['equipment_id']}", json={"notes": "resoled"})
        assert response.status_code == 200
        assert response.json()["notes"] == "resoled"

    def test_empty_update(self, client, shoe) -> None:
        response = client.patch(f"{API}/equipment/{shoe['equipment_id']}", json={})
        assert response.status_code == 400

    def test_archive_then_update_conflicts(self, client, shoe) -> None:
        archived = client.post(f"{API}/equipment/{shoe['equipment_id']}/archive")
        assert archived.json()["archived"]
        response = client.patch(f"{API}/equipment/{shoe['equipment_id']}", json={"notes": "x"})
        assert response.status_code == 409

    def test_default_and_collection_statistics(self, client, shoe, other_shoe) -> None:
        response = client.put(f"{API}/equipment/{shoe['equipment_id']}/default")
        assert response.json()["is_default"]

        stats = client.get(f"{API}/equipment/statistics").json()
        assert stats["total"] == 2
        assert stats["default_equipment_id"] == shoe["equipment_id"]

        cleared = client.put(
            f"{API}/equipment/{shoe['equipment_id']}/default", json={"is_default": False}
        )
        assert not cleared.json()["is_default"]

    def test_delete(self, client, shoe) -> None:
        assert client.delete(f"{API}/equipment/{shoe['equipment_id']}").status_code == 204
        assert client.get(f"{API}/equipment/{shoe['equipment_id']}").status_code == 404


class TestSessionsApi:
    def test_start_stop_flow(self, client, provider, clock, shoe) -> None:
        provider.add_sample(sample(8, 640, 0.5))
        started = client.post(f"{API}/sessions/{shoe['equipment_id']}/start")
        assert started.status_code == 201
        assert started.json()["is_open"]

        assert client.get(f"{API}/sessions/active").json()["session_id"] == started.json()["session_id"]

        clock.advance(hours=1)
        stopped = client.post(f"{API}/sessions/{shoe['equipment_id']}/stop")
        assert stopped.status_code == 200
        assert stopped.json()["steps"] == 640
        assert client.get(f"{API}/sessions/active").json() is None

    def test_double_start_conflicts(self, client, clock, shoe) -> None:
        client.post(f"{API}/sessions/{shoe['equipment_id']}/start")
        clock.advance(minutes=1)
        assert client.post(f"{API}/sessions/{shoe['equipment_id']}/start").status_code == 409

    def test_stop_without_session(self, client, shoe) -> None:
        assert client.post(f"{API}/sessions/{shoe['equipment_id']}/stop").status_code == 409

    def test_stop_at_start_instant(self, client, shoe) -> None:
        client.post(f"{API}/sessions/{shoe['equipment_id']}/start")
        assert client.post(f"{API}/sessions/{shoe['equipment_id']}/stop").status_code == 422

    def test_toggle_and_list(self, client, clock, shoe, other_shoe) -> None:
        client.post(f"{API}/sessions/{shoe['equipment_id']}/toggle")
        clock.advance(minutes=30)
        client.post(f"{API}/sessions/{other_shoe['equipment_id']}/toggle")

        sessions = client.get(f"{API}/sessions").json()
        assert [s["is_open"] for s in sessions] == [False, True]
        mine = client.get(f"{API}/sessions", params={"equipment_id": shoe["equipment_id"]}).json()
        assert len(mine) == 1


class TestAttributionsApi:
    def test_set_get_remove(self, client, shoe) -> None:
        response = client.put(
            f"{API}/attributions/2026-02-23T09:41:00Z", json={"equipment_id": shoe["equipment_id"]}
        )
        assert response.status_code == 200
        assert response.json()["attribution"]["hour_date"].startswith("2026-02-23T09:00:00")

        assert client.get(f"{API}/attributions/{HOUR_9}").status_code == 200
        assert client.delete(f"{API}/attributions/{HOUR_9}").status_code == 204
        assert client.delete(f"{API}/attributions/{HOUR_9}").status_code == 404
        assert client.get(f"{API}/attributions/{HOUR_9}").status_code == 404

    def test_reattribution_reports_conflict(self, client, shoe, other_shoe) -> None:
        client.put(f"{API}/attributions/{HOUR_9}", json={"equipment_id": shoe["equipment_id"]})
        response = client.put(
            f"{API}/attributions/{HOUR_9}", json={"equipment_id": other_shoe["equipment_id"]}
        )
        body = response.json()
        assert len(body["removed_attribution_ids"]) == 1
        assert body["affected_equipment_ids"] == [shoe["equipment_id"]]

    def test_batch_and_range(self, client, shoe) -> None:
        hours = ["2026-02-23T06:00:00Z", "2026-02-23T07:00:00Z", "2026-02-23T07:30:00Z"]
        response = client.post(
            f"{API}/attributions/batch", json={"equipment_id": shoe["equipment_id"], "hours": hours}
        )
        assert response.status_code == 200
        assert len(response.json()) == 2

        listed = client.get(
            f"{API}/attributions",
            params={"start": "2026-02-23T00:00:00Z", "end": "2026-02-24T00:00:00Z"},
        ).json()
        assert len(listed) == 2

        removed = client.post(f"{API}/attributions/batch-delete", json={"hours": hours[:1]})
        assert len(removed.json()) == 1

    def test_empty_batch_rejected(self, client, shoe) -> None:
        response = client.post(
            f"{API}/attributions/batch", json={"equipment_id": shoe["equipment_id"], "hours": []}
        )
        assert response.status_code == 422

    def test_archived_equipment(self, client, shoe) -> None:
        client.post(f"{API}/equipment/{shoe['equipment_id']}/archive")
        response = client.put(f"{API}/attributions/{HOUR_9}", json={"equipment_id": shoe["equipment_id"]})
        assert response.status_code == 409


class TestHoursApi:
    def test_reconciled_hours(self, client, provider, shoe) -> None:
        provider.add_sample(sample(6, 0))
        provider.add_sample(sample(9, 500))
        client.put(f"{API}/attributions/{HOUR_9}", json={"equipment_id": shoe["equipment_id"]})

        hours = client.get(f"{API}/hours/2026-02-23").json()
        assert [(h["hour"], h["owner"], h["source"]) for h in hours] == [
            (6, None, None),
            (9, shoe["equipment_id"], "attribution"),
        ]

        busy = client.get(f"{API}/hours/2026-02-23", params={"include_zero": False}).json()
        assert [h["hour"] for h in busy] == [9]

    def test_provider_failure_is_bad_gateway(self, client, provider, monkeypatch) -> None:
        async def broken(day):
            raise httpx.ConnectError("unreachable")

        monkeypatch.setattr(provider, "fetch_hourly_samples", broken)
        assert client.get(f"{API}/hours/2026-02-23").status_code == 502


class TestMaintenanceApi:
    def test_sweep_starts_default(self, client, provider, shoe) -> None:
        client.put(f"{API}/equipment/{shoe['equipment_id']}/default")
        provider.add_sample(sample(7, 300))

        report = client.post(f"{API}/auto-management/sweep").json()

        assert report["changed"]
        assert report["started_session"]["equipment_id"] == shoe["equipment_id"]
        assert report["started_session"]["auto_started"]

    def test_integrity(self, client, clock, shoe) -> None:
        client.post(f"{API}/sessions/{shoe['equipment_id']}/start")
        clock.advance(hours=2)
        client.put(f"{API}/attributions/{HOUR_9}", json={"equipment_id": shoe["equipment_id"]})

        report = client.get(f"{API}/integrity").json()
        assert report["is_valid"]
        assert report["issues"] == []
