"""Reconciliation: merge raw samples, session coverage and attributions.

For each hour that has a raw sample the owner is decided in priority order:

    1. an explicit HourAttribution for that hour
    2. a session whose interval covers the hour's start instant
    3. nobody

Steps and distance always come from the raw sample; ownership never changes
measured volume.  Zero-step hours are reconciled like any other.  The result
is a view computed fresh on every call and never stored.
"""

from __future__ import annotations

import logging
from datetime import date, tzinfo
from typing import TYPE_CHECKING, Iterable

from wearlog.engine.activity import ActivityLedger
from wearlog.engine.base import (
    AttributedHour,
    HourAttribution,
    OwnershipSource,
    RawSample,
    WearSession,
)
from wearlog.engine.intervals import covers, day_interval, ensure_aware, hour_start

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.reconciliation")


def reconcile(
    raw_samples: Iterable[RawSample],
    day: date,
    *,
    sessions: Iterable[WearSession],
    attributions: Iterable[HourAttribution],
    tz: tzinfo,
) -> list[AttributedHour]:
    """Assign an owner to every sampled hour of ``day``.

    Pure: no I/O, no clock.  Samples for other days are ignored and a
    repeated hour keeps its last sample.

    Returns:
        One AttributedHour per sampled hour, sorted by hour.
    """
    by_hour: dict[int, RawSample] = {}
    for sample in raw_samples:
        if sample.day == day:
            by_hour[sample.hour] = sample

    explicit = {ensure_aware(a.hour_date): a for a in attributions}
    session_list = list(sessions)

    result: list[AttributedHour] = []
    for hour in sorted(by_hour):
        sample = by_hour[hour]
        start = hour_start(day, hour, tz)

        owner = None
        source = None
        attribution = explicit.get(start)
        if attribution is not None:
            owner = attribution.equipment_id
            source = OwnershipSource.ATTRIBUTION
        else:
            for session in session_list:
                if covers(session.interval, start):
                    owner = session.equipment_id
                    source = OwnershipSource.SESSION
                    break

        result.append(
            AttributedHour(
                day=day,
                hour=hour,
                hour_start=start,
                steps=sample.steps,
                distance_km=sample.distance_km,
                owner=owner,
                source=source,
            )
        )
    return result


class ReconciliationEngine:
    """Loads the state for a day and runs ``reconcile`` over it."""

    def __init__(self, ledger: ActivityLedger, tz: tzinfo) -> None:
        self._ledger = ledger
        self._tz = tz

    async def fetch_samples(self, day: date) -> list[RawSample]:
        return await self._ledger.samples_for_day(day)

    async def reconcile(
        self,
        records: Records,
        day: date,
        raw_samples: Iterable[RawSample] | None = None,
    ) -> list[AttributedHour]:
        """Reconcile ``day`` against persisted sessions and attributions.

        Args:
            records:     Unit of work to read sessions and attributions from.
            day:         Local calendar day.
            raw_samples: Samples to use; fetched from the provider when omitted.
        """
        if raw_samples is None:
            raw_samples = await self.fetch_samples(day)
        window = day_interval(day, self._tz)
        sessions = await records.list_sessions_overlapping(window)
        attributions = await records.list_attributions_overlapping(window)
        hours = reconcile(
            raw_samples, day, sessions=sessions, attributions=attributions, tz=self._tz
        )
        logger.debug(
            "Reconciled %s: %d hours, %d owned",
            day, len(hours), sum(1 for h in hours if h.is_owned),
        )
        return hours
