"""Activity ledger: the engine's view of the external activity provider.

Wraps an ``ActivityProvider`` and answers the three questions the engine
asks of raw activity:

- which samples were recorded on a local day
- how many steps / km fall inside an interval (cached session totals)
- whether any activity happened recently (idle-timeout probe)

A sample belongs to an interval when the interval covers the sample's hour
start instant, the same rule reconciliation uses for session ownership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from wearlog.engine.base import ActivityProvider, RawSample
from wearlog.engine.intervals import (
    Interval,
    days_spanned,
    ensure_aware,
    hour_interval,
    hour_start,
    overlaps,
)

logger = logging.getLogger("wearlog.engine.activity")


@dataclass(frozen=True)
class ActivityTotals:
    steps: int = 0
    distance_km: float = 0.0


class ActivityLedger:
    """Provider wrapper producing per-day samples, totals and activity probes."""

    def __init__(self, provider: ActivityProvider, tz: tzinfo) -> None:
        self._provider = provider
        self._tz = tz

    @property
    def provider(self) -> ActivityProvider:
        return self._provider

    async def samples_for_day(self, day: date) -> list[RawSample]:
        """Samples for ``day``, at most one per hour, sorted by hour.

        Out-of-range hours and samples for other days are dropped.  Duplicate
        hours keep the last sample the provider returned.
        """
        raw = await self._provider.fetch_hourly_samples(day)
        by_hour: dict[int, RawSample] = {}
        for sample in raw:
            if sample.day != day or not 0 <= sample.hour <= 23:
                logger.warning(
                    "Provider %s returned a sample outside %s: %r",
                    self._provider.SOURCE_ID, day, sample,
                )
                continue
            by_hour[sample.hour] = sample
        return [by_hour[h] for h in sorted(by_hour)]

    async def _samples_with_starts(
        self, interval: Interval, now: datetime
    ) -> list[tuple[datetime, RawSample]]:
        found: list[tuple[datetime, RawSample]] = []
        for day in days_spanned(interval, self._tz, now):
            for sample in await self.samples_for_day(day):
                found.append((hour_start(day, sample.hour, self._tz), sample))
        return found

    async def totals(self, interval: Interval, now: datetime) -> ActivityTotals:
        """Sum the samples whose hour start ``interval`` covers.

        Open intervals are measured up to ``now``.
        """
        bounded = interval
        if interval.end is None:
            now = ensure_aware(now)
            if now <= interval.start:
                return ActivityTotals()
            bounded = Interval(interval.start, now)

        steps = 0
        distance = 0.0
        for start, sample in await self._samples_with_starts(bounded, now):
            if bounded.covers(start):
                steps += sample.steps
                distance += sample.distance_km
        return ActivityTotals(steps=steps, distance_km=round(distance, 4))

    async def has_activity(self, since: datetime, until: datetime) -> bool:
        """True when any hour overlapping ``[since, until)`` recorded steps."""
        since = ensure_aware(since)
        until = ensure_aware(until)
        if until <= since:
            return False
        window = Interval(since, until)
        for start, sample in await self._samples_with_starts(window, until):
            if sample.steps > 0 and overlaps(hour_interval(start), window):
                return True
        return False
