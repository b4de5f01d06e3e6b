"""Tests for the state validator.

The database constraints keep most corruption out of a real store, so the
corrupt cases are built in memory and fed straight to ``validate_state``.
"""

from __future__ import annotations

from datetime import timezone

import pytest

from wearlog.engine import integrity
from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.integrity import validate_state
from wearlog.engine.tests.conftest import at

UTC = timezone.utc


@pytest.fixture
def pair() -> tuple[Equipment, Equipment]:
    return Equipment(brand="Altra", model="Lone Peak 8"), Equipment(brand="Hoka", model="Speedgoat 5")


def _check(equipment, sessions=(), attributions=()):
    return validate_state(equipment, sessions, attributions, UTC, at(23))


class TestValidateState:
    def test_clean_state(self, pair) -> None:
        x, y = pair
        report = _check(
            [x, y],
            [WearSession(x.equipment_id, at(8), at(10)), WearSession(y.equipment_id, at(10))],
            [HourAttribution(y.equipment_id, at(6))],
        )
        assert report.is_valid
        assert (report.equipment_count, report.session_count, report.attribution_count) == (2, 2, 1)

    def test_multiple_open_sessions(self, pair) -> None:
        x, y = pair
        report = _check([x, y], [WearSession(x.equipment_id, at(8)), WearSession(y.equipment_id, at(9))])
        assert integrity.MULTIPLE_OPEN_SESSIONS in report.codes()
        assert integrity.OVERLAPPING_SESSIONS in report.codes()

    def test_overlapping_closed_sessions(self, pair) -> None:
        x, y = pair
        a = WearSession(x.equipment_id, at(8), at(10))
        b = WearSession(y.equipment_id, at(9), at(11))
        report = _check([x, y], [a, b])
        [issue] = report.issues
        assert issue.code == integrity.OVERLAPPING_SESSIONS
        assert set(issue.record_ids) == {a.session_id, b.session_id}

    def test_adjacent_sessions_are_fine(self, pair) -> None:
        x, y = pair
        report = _check([x, y], [WearSession(x.equipment_id, at(8), at(9)), WearSession(y.equipment_id, at(9), at(10))])
        assert report.is_valid

    def test_non_positive_interval(self, pair) -> None:
        x, _ = pair
        report = _check([x], [WearSession(x.equipment_id, at(10), at(10))])
        assert report.codes() == {integrity.NON_POSITIVE_INTERVAL}

    def test_unaligned_attribution(self, pair) -> None:
        x, _ = pair
        report = _check([x], attributions=[HourAttribution(x.equipment_id, at(6, 15))])
        assert report.codes() == {integrity.UNALIGNED_ATTRIBUTION}

    def test_duplicate_attribution_hour(self, pair) -> None:
        x, y = pair
        report = _check(
            [x, y],
            attributions=[HourAttribution(x.equipment_id, at(6)), HourAttribution(y.equipment_id, at(6))],
        )
        assert report.codes() == {integrity.DUPLICATE_ATTRIBUTION_HOUR}

    def test_hour_claimed_by_session_and_attribution(self, pair) -> None:
        x, y = pair
        report = _check(
            [x, y],
            [WearSession(x.equipment_id, at(8), at(12))],
            [HourAttribution(y.equipment_id, at(9))],
        )
        assert report.codes() == {integrity.HOUR_DOUBLE_CLAIMED}

    def test_multiple_defaults(self) -> None:
        a = Equipment(brand="A", model="1", is_default=True)
        b = Equipment(brand="B", model="2", is_default=True)
        assert _check([a, b]).codes() == {integrity.MULTIPLE_DEFAULTS}

    def test_orphans(self, pair) -> None:
        x, y = pair
        report = _check(
            [x],
            [WearSession(y.equipment_id, at(8), at(9))],
            [HourAttribution(y.equipment_id, at(6))],
        )
        assert report.codes() == {integrity.ORPHAN_SESSION, integrity.ORPHAN_ATTRIBUTION}


class TestEngineIntegrity:
    @pytest.mark.asyncio
    async def test_engine_keeps_state_valid(self, engine, provider, shoe_x, shoe_y, clock) -> None:
        await engine.set_default_equipment(shoe_x.equipment_id)
        await engine.start_session(shoe_x.equipment_id)
        clock.set(at(10, 15))
        await engine.start_session(shoe_y.equipment_id)
        await engine.attribute_hours([at(6), at(7), at(11)], shoe_x.equipment_id)
        clock.set(at(12, 45))
        await engine.toggle_session(shoe_x.equipment_id)
        await engine.attribute_hour(at(9), shoe_y.equipment_id)
        await engine.remove_attribution(at(7))

        report = await engine.validate_integrity()

        assert report.is_valid, report.issues
        assert report.equipment_count == 2
