"""Tests for the reconciliation merge: priority, coverage and round-trips."""

from __future__ import annotations

from datetime import timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from wearlog.engine.base import HourAttribution, OwnershipSource, WearSession
from wearlog.engine.reconciliation import reconcile
from wearlog.engine.tests.conftest import TEST_DATE, at, sample

UTC = timezone.utc


# ---------------------------------------------------------------------------
# Pure merge
# ---------------------------------------------------------------------------


class TestReconcilePure:
    def test_attribution_beats_covering_session(self) -> None:
        x, y = uuid4(), uuid4()
        session = WearSession(equipment_id=x, start=at(8), end=at(12))
        attribution = HourAttribution(equipment_id=y, hour_date=at(9))

        hours = reconcile(
            [sample(9, 500), sample(10, 200)],
            TEST_DATE,
            sessions=[session],
            attributions=[attribution],
            tz=UTC,
        )

        assert [(h.hour, h.owner, h.source) for h in hours] == [
            (9, y, OwnershipSource.ATTRIBUTION),
            (10, x, OwnershipSource.SESSION),
        ]

    def test_volume_always_from_raw_sample(self) -> None:
        y = uuid4()
        attribution = HourAttribution(equipment_id=y, hour_date=at(9), steps=1, distance_km=0.01)
        [hour] = reconcile(
            [sample(9, 500, 0.4)], TEST_DATE, sessions=[], attributions=[attribution], tz=UTC
        )
        assert hour.steps == 500
        assert hour.distance_km == pytest.approx(0.4)

    def test_session_must_cover_hour_start(self) -> None:
        x = uuid4()
        session = WearSession(equipment_id=x, start=at(9, 30), end=at(11, 30))
        hours = reconcile(
            [sample(9, 10), sample(10, 10), sample(11, 10), sample(12, 10)],
            TEST_DATE,
            sessions=[session],
            attributions=[],
            tz=UTC,
        )
        assert [h.owner for h in hours] == [None, x, x, None]

    def test_open_session_covers_rest_of_day(self) -> None:
        x = uuid4()
        hours = reconcile(
            [sample(h, 1) for h in (7, 8, 23)],
            TEST_DATE,
            sessions=[WearSession(equipment_id=x, start=at(8))],
            attributions=[],
            tz=UTC,
        )
        assert [h.owner for h in hours] == [None, x, x]

    def test_zero_step_hours_are_kept(self) -> None:
        x = uuid4()
        hours = reconcile(
            [sample(9, 0)],
            TEST_DATE,
            sessions=[WearSession(equipment_id=x, start=at(8), end=at(10))],
            attributions=[],
            tz=UTC,
        )
        assert len(hours) == 1
        assert hours[0].owner == x
        assert hours[0].steps == 0

    def test_sorted_and_other_days_ignored(self) -> None:
        hours = reconcile(
            [sample(14, 1), sample(3, 1), sample(9, 1, day=TEST_DATE + timedelta(days=1))],
            TEST_DATE,
            sessions=[],
            attributions=[],
            tz=UTC,
        )
        assert [h.hour for h in hours] == [3, 14]

    def test_local_timezone_hours(self) -> None:
        tz = ZoneInfo("America/New_York")
        x = uuid4()
        # 09:00 EST == 14:00 UTC
        attribution = HourAttribution(equipment_id=x, hour_date=at(14))
        [hour] = reconcile([sample(9, 42)], TEST_DATE, sessions=[], attributions=[attribution], tz=tz)
        assert hour.hour_start == at(14)
        assert hour.owner == x

    def test_empty_samples(self) -> None:
        assert reconcile([], TEST_DATE, sessions=[], attributions=[], tz=UTC) == []


# ---------------------------------------------------------------------------
# Through the engine
# ---------------------------------------------------------------------------


class TestReconcileEngine:
    @pytest.mark.asyncio
    async def test_session_scenario(self, engine, provider, shoe_x, clock) -> None:
        """X starts 09:00, stops 10:00; one sample of 500 steps at hour 9."""
        provider.add_sample(sample(9, 500))
        clock.set(at(9))
        await engine.start_session(shoe_x.equipment_id)
        clock.set(at(10))
        await engine.stop_session(shoe_x.equipment_id)

        [hour] = await engine.get_reconciled_hours(TEST_DATE)

        assert hour.hour == 9
        assert hour.owner == shoe_x.equipment_id
        assert hour.steps == 500

    @pytest.mark.asyncio
    async def test_round_trip(self, engine, provider, shoe_x) -> None:
        provider.add_sample(sample(9, 321))

        await engine.attribute_hour(at(9), shoe_x.equipment_id)
        [owned] = await engine.get_reconciled_hours(TEST_DATE)
        assert owned.owner == shoe_x.equipment_id
        assert owned.source is OwnershipSource.ATTRIBUTION

        await engine.remove_attribution(at(9))
        [unowned] = await engine.get_reconciled_hours(TEST_DATE)
        assert unowned.owner is None
        assert unowned.source is None

    @pytest.mark.asyncio
    async def test_reattribution_scenario(self, engine, provider, shoe_x, shoe_y) -> None:
        provider.add_sample(sample(9, 100))
        await engine.attribute_hour(at(9), shoe_x.equipment_id)
        await engine.attribute_hour(at(9), shoe_y.equipment_id)

        [hour] = await engine.get_reconciled_hours(TEST_DATE)
        assert hour.owner == shoe_y.equipment_id

    @pytest.mark.asyncio
    async def test_each_hour_has_one_owner(self, engine, provider, shoe_x, shoe_y, clock) -> None:
        for h in range(24):
            provider.add_sample(sample(h, 100))
        await engine.start_session(shoe_x.equipment_id)          # 08:00
        clock.set(at(10, 30))
        await engine.start_session(shoe_y.equipment_id)          # closes X at 10:30
        await engine.attribute_hour(at(6), shoe_y.equipment_id)
        clock.set(at(13))
        await engine.stop_session(shoe_y.equipment_id)

        hours = {h.hour: h for h in await engine.get_reconciled_hours(TEST_DATE)}

        assert hours[6].owner == shoe_y.equipment_id
        assert hours[7].owner is None
        assert [hours[h].owner for h in (8, 9, 10)] == [shoe_x.equipment_id] * 3
        assert [hours[h].owner for h in (11, 12)] == [shoe_y.equipment_id] * 2
        assert hours[13].owner is None

    @pytest.mark.asyncio
    async def test_view_is_recomputed(self, engine, provider, shoe_x) -> None:
        provider.add_sample(sample(9, 10))
        first = await engine.get_reconciled_hours(TEST_DATE)
        provider.add_sample(sample(9, 20))
        second = await engine.get_reconciled_hours(TEST_DATE)
        assert first[0].steps == 10
        assert second[0].steps == 20
