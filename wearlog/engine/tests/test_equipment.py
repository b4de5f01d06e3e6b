"""Tests for the equipment registry and derived statistics."""

from __future__ import annotations

from datetime import timedelta, timezone

import pytest

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.errors import EquipmentArchived, EquipmentNotFound, InvalidEquipment
from wearlog.engine.statistics import compute_collection_statistics, compute_equipment_statistics
from wearlog.engine.tests.conftest import TEST_DATE, UNKNOWN_EQUIPMENT_ID, at, sample


class TestCreate:
    @pytest.mark.asyncio
    async def test_policy_defaults_applied(self, engine, policy) -> None:
        shoe = await engine.create_equipment("  Salomon ", "Speedcross 6")

        assert shoe.brand == "Salomon"
        assert shoe.display_name == "Salomon Speedcross 6"
        assert shoe.inactivity_timeout_seconds == policy.sessions.default_inactivity_timeout_seconds
        assert shoe.estimated_lifespan_km == policy.equipment.default_lifespan_km
        assert not shoe.archived

    @pytest.mark.asyncio
    async def test_blank_brand_rejected(self, engine) -> None:
        with pytest.raises(InvalidEquipment):
            await engine.create_equipment("   ", "Speedcross 6")

    @pytest.mark.asyncio
    async def test_non_positive_timeout_rejected(self, engine) -> None:
        with pytest.raises(InvalidEquipment, match="inactivity_timeout_seconds"):
            await engine.create_equipment("Altra", "Olympus 5", inactivity_timeout_seconds=0)

    @pytest.mark.asyncio
    async def test_create_as_default_replaces_previous(self, engine, shoe_x) -> None:
        await engine.set_default_equipment(shoe_x.equipment_id)
        new = await engine.create_equipment("Nike", "Pegasus 41", is_default=True)

        assert new.is_default
        assert not (await engine.get_equipment(shoe_x.equipment_id)).is_default


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_fields(self, engine, shoe_x) -> None:
        updated = await engine.update_equipment(
            shoe_x.equipment_id, notes="resoled", estimated_lifespan_km=1000.0, model=None
        )
        assert updated.notes == "resoled"
        assert updated.model == "Lone Peak 8"
        stored = await engine.get_equipment(shoe_x.equipment_id)
        assert stored.estimated_lifespan_km == 1000.0

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, engine, shoe_x) -> None:
        with pytest.raises(InvalidEquipment):
            await engine.update_equipment(shoe_x.equipment_id, archived=True)

    @pytest.mark.asyncio
    async def test_archived_is_read_only(self, engine, shoe_x) -> None:
        await engine.archive_equipment(shoe_x.equipment_id)
        with pytest.raises(EquipmentArchived):
            await engine.update_equipment(shoe_x.equipment_id, notes="x")

    @pytest.mark.asyncio
    async def test_unknown_equipment(self, engine) -> None:
        with pytest.raises(EquipmentNotFound):
            await engine.update_equipment(UNKNOWN_EQUIPMENT_ID, notes="x")


class TestArchive:
    @pytest.mark.asyncio
    async def test_archive_stops_open_session_and_clears_default(self, engine, shoe_x, clock) -> None:
        await engine.set_default_equipment(shoe_x.equipment_id)
        await engine.start_session(shoe_x.equipment_id)
        clock.advance(hours=2)

        archived = await engine.archive_equipment(shoe_x.equipment_id)

        assert archived.archived
        assert not archived.is_default
        [session] = await engine.list_sessions(shoe_x.equipment_id)
        assert session.end == clock.now

    @pytest.mark.asyncio
    async def test_archive_keeps_history(self, engine, shoe_x) -> None:
        await engine.attribute_hour(at(6), shoe_x.equipment_id)
        await engine.archive_equipment(shoe_x.equipment_id)

        assert await engine.get_attribution(at(6)) is not None
        active_only = await engine.list_equipment(include_archived=False)
        assert shoe_x.equipment_id not in [e.equipment_id for e in active_only]

    @pytest.mark.asyncio
    async def test_unarchive(self, engine, shoe_x) -> None:
        await engine.archive_equipment(shoe_x.equipment_id)
        restored = await engine.unarchive_equipment(shoe_x.equipment_id)
        assert not restored.archived
        await engine.start_session(shoe_x.equipment_id)


class TestDefault:
    @pytest.mark.asyncio
    async def test_single_default(self, engine, shoe_x, shoe_y) -> None:
        await engine.set_default_equipment(shoe_x.equipment_id)
        await engine.set_default_equipment(shoe_y.equipment_id)

        defaults = [e for e in await engine.list_equipment() if e.is_default]
        assert [e.equipment_id for e in defaults] == [shoe_y.equipment_id]

    @pytest.mark.asyncio
    async def test_clear_default(self, engine, shoe_x) -> None:
        await engine.set_default_equipment(shoe_x.equipment_id)
        cleared = await engine.set_default_equipment(shoe_x.equipment_id, is_default=False)
        assert not cleared.is_default

    @pytest.mark.asyncio
    async def test_archived_cannot_be_default(self, engine, shoe_x) -> None:
        await engine.archive_equipment(shoe_x.equipment_id)
        with pytest.raises(EquipmentArchived):
            await engine.set_default_equipment(shoe_x.equipment_id)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_cascades(self, engine, shoe_x, clock) -> None:
        await engine.attribute_hour(at(6), shoe_x.equipment_id)
        await engine.start_session(shoe_x.equipment_id)

        await engine.delete_equipment(shoe_x.equipment_id)

        with pytest.raises(EquipmentNotFound):
            await engine.get_equipment(shoe_x.equipment_id)
        assert await engine.list_sessions() == []
        assert await engine.get_attribution(at(6)) is None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class TestEquipmentStatistics:
    def test_pure_computation(self) -> None:
        shoe = Equipment(brand="Altra", model="Lone Peak 8", estimated_lifespan_km=10.0)
        other = Equipment(brand="Hoka", model="Speedgoat 5")
        sessions = [
            WearSession(shoe.equipment_id, at(8), at(10), steps=2000, distance_km=1.5),
            WearSession(shoe.equipment_id, at(22), at(2, day=TEST_DATE + timedelta(days=1)),
                        steps=500, distance_km=0.5),
            WearSession(other.equipment_id, at(12), at(13), steps=9999, distance_km=9.0),
        ]
        attributions = [HourAttribution(shoe.equipment_id, at(6), steps=300, distance_km=0.25)]

        stats = compute_equipment_statistics(
            shoe, sessions, attributions, now=at(12, day=TEST_DATE + timedelta(days=1)),
            tz=timezone.utc,
        )

        assert stats.session_count == 2
        assert stats.total_wear_seconds == 6 * 3600
        assert stats.average_session_seconds == 3 * 3600
        assert stats.total_steps == 2800
        assert stats.total_distance_km == pytest.approx(2.25)
        assert stats.lifespan_progress == pytest.approx(0.225)
        assert stats.usage_days == 2
        assert stats.last_used == at(2, day=TEST_DATE + timedelta(days=1))
        assert not stats.is_active

    def test_lifespan_progress_capped(self) -> None:
        shoe = Equipment(brand="Altra", model="Lone Peak 8", estimated_lifespan_km=1.0)
        sessions = [WearSession(shoe.equipment_id, at(8), at(10), distance_km=5.0)]
        stats = compute_equipment_statistics(shoe, sessions, [], at(12), timezone.utc)
        assert stats.lifespan_progress == 1.0

    def test_unused_equipment(self) -> None:
        shoe = Equipment(brand="Altra", model="Lone Peak 8")
        stats = compute_equipment_statistics(shoe, [], [], at(12), timezone.utc)
        assert stats.session_count == 0
        assert stats.average_session_seconds == 0.0
        assert stats.last_used is None

    @pytest.mark.asyncio
    async def test_open_session_counts_to_now(self, engine, provider, shoe_x, clock) -> None:
        provider.add_sample(sample(8, 400))
        await engine.start_session(shoe_x.equipment_id)
        clock.set(at(9, 30))

        stats = await engine.equipment_statistics(shoe_x.equipment_id)

        assert stats.is_active
        assert stats.total_wear_seconds == 90 * 60
        # totals are cached on close, not while open
        assert stats.total_steps == 0

    @pytest.mark.asyncio
    async def test_reflects_latest_mutations(self, engine, provider, shoe_x) -> None:
        provider.add_sample(sample(6, 250, 0.2))
        await engine.attribute_hour(at(6), shoe_x.equipment_id)
        assert (await engine.equipment_statistics(shoe_x.equipment_id)).total_steps == 250

        await engine.remove_attribution(at(6))
        assert (await engine.equipment_statistics(shoe_x.equipment_id)).total_steps == 0


class TestCollectionStatistics:
    def test_counts(self) -> None:
        a = Equipment(brand="A", model="1", is_default=True)
        b = Equipment(brand="B", model="2", archived=True)
        c = Equipment(brand="C", model="3")

        stats = compute_collection_statistics([a, b, c])

        assert (stats.total, stats.active, stats.archived) == (3, 2, 1)
        assert stats.default_equipment_id == a.equipment_id

    @pytest.mark.asyncio
    async def test_through_engine(self, engine, shoe_x, shoe_y) -> None:
        await engine.archive_equipment(shoe_y.equipment_id)
        stats = await engine.collection_statistics()
        assert stats.total == 2
        assert stats.archived == 1
        assert stats.default_equipment_id is None
