"""Explicit hour attributions.

An attribution pins one hour to one equipment item and always beats session
coverage during reconciliation.  Hours are normalised to the start of the
hour in the policy timezone, and each hour has at most one attribution.

Writes resolve conflicts over the hour first, so re-attributing an hour
replaces its previous owner and deletes any session overlapping it.  Batches
run inside the caller's transaction: if any hour fails, or the task is
cancelled, nothing from the batch is committed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import TYPE_CHECKING, Iterable, Mapping
from uuid import UUID

from wearlog.engine.activity import ActivityLedger
from wearlog.engine.base import Equipment, HourAttribution, RawSample
from wearlog.engine.conflicts import ConflictResolution, ConflictResolver
from wearlog.engine.errors import EquipmentArchived, EquipmentNotFound
from wearlog.engine.intervals import (
    Interval,
    floor_hour,
    hour_interval,
    local_day,
    local_hour,
)

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.attributions")


@dataclass
class AttributionChange:
    """Result of attributing one hour."""

    attribution: HourAttribution
    conflicts: ConflictResolution

    @property
    def hour_date(self) -> datetime:
        return self.attribution.hour_date

    @property
    def replaced_owner_ids(self) -> list[UUID]:
        return [
            e for e in self.conflicts.affected_equipment_ids
            if e != self.attribution.equipment_id
        ]


class AttributionStore:
    """CRUD and batch operations over hour attributions."""

    def __init__(self, resolver: ConflictResolver, ledger: ActivityLedger, tz: tzinfo) -> None:
        self._resolver = resolver
        self._ledger = ledger
        self._tz = tz

    def normalize(self, hour: datetime) -> datetime:
        return floor_hour(hour, self._tz)

    def _normalize_unique(self, hours: Iterable[datetime]) -> list[datetime]:
        seen: dict[datetime, None] = {}
        for hour in hours:
            seen.setdefault(self.normalize(hour), None)
        return sorted(seen)

    async def _require_wearable(self, records: Records, equipment_id: UUID) -> Equipment:
        equipment = await records.get_equipment(equipment_id)
        if equipment is None:
            raise EquipmentNotFound(equipment_id)
        if equipment.archived:
            raise EquipmentArchived(equipment_id)
        return equipment

    async def _sample_for(
        self, hour: datetime, cache: dict[date, dict[int, RawSample]]
    ) -> RawSample | None:
        day = local_day(hour, self._tz)
        if day not in cache:
            cache[day] = {s.hour: s for s in await self._ledger.samples_for_day(day)}
        return cache[day].get(local_hour(hour, self._tz))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, records: Records, hour: datetime) -> HourAttribution | None:
        return await records.get_attribution(self.normalize(hour))

    async def get_range(
        self, records: Records, start: datetime, end: datetime
    ) -> list[HourAttribution]:
        """Attributions whose hour overlaps ``[start, end)``, ordered by hour."""
        return await records.list_attributions_overlapping(Interval(start, end))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _apply(
        self,
        records: Records,
        hour: datetime,
        equipment_id: UUID,
        sample: RawSample | None,
    ) -> AttributionChange:
        conflicts = await self._resolver.resolve(records, hour_interval(hour))
        attribution = HourAttribution(
            equipment_id=equipment_id,
            hour_date=hour,
            steps=sample.steps if sample else 0,
            distance_km=sample.distance_km if sample else 0.0,
        )
        await records.insert_attribution(attribution)
        return AttributionChange(attribution=attribution, conflicts=conflicts)

    async def set(
        self,
        records: Records,
        hour: datetime,
        equipment_id: UUID,
        sample: RawSample | None = None,
    ) -> AttributionChange:
        """Attribute ``hour`` to ``equipment_id``, replacing any prior claim.

        ``sample`` is the step/distance snapshot to store; when omitted it is
        looked up from the activity provider.

        Raises:
            EquipmentNotFound: Unknown equipment.
            EquipmentArchived: Archived equipment cannot receive attributions.
        """
        await self._require_wearable(records, equipment_id)
        hour = self.normalize(hour)
        if sample is None:
            sample = await self._sample_for(hour, {})
        change = await self._apply(records, hour, equipment_id, sample)
        logger.info("Attributed %s to %s", hour.isoformat(), equipment_id)
        return change

    async def set_batch(
        self,
        records: Records,
        hours: Iterable[datetime],
        equipment_id: UUID,
        samples: Mapping[datetime, RawSample] | None = None,
    ) -> list[AttributionChange]:
        """Attribute every hour in ``hours`` to ``equipment_id``.

        Duplicate hours collapse.  Cancellation is only observed between
        fully-applied hours, and the caller's transaction discards the partial
        batch.
        """
        await self._require_wearable(records, equipment_id)
        normalized_samples = (
            {self.normalize(h): s for h, s in samples.items()} if samples else {}
        )
        cache: dict[date, dict[int, RawSample]] = {}
        changes: list[AttributionChange] = []
        for hour in self._normalize_unique(hours):
            sample = normalized_samples.get(hour)
            if sample is None:
                sample = await self._sample_for(hour, cache)
            changes.append(await self._apply(records, hour, equipment_id, sample))
            await asyncio.sleep(0)
        logger.info("Attributed %d hour(s) to %s", len(changes), equipment_id)
        return changes

    async def remove(self, records: Records, hour: datetime) -> HourAttribution | None:
        """Delete the attribution for ``hour``.  Sessions are left untouched."""
        existing = await records.get_attribution(self.normalize(hour))
        if existing is None:
            logger.debug("No attribution to remove at %s", self.normalize(hour).isoformat())
            return None
        await records.delete_attributions([existing.attribution_id])
        logger.info("Removed attribution for %s", existing.hour_date.isoformat())
        return existing

    async def remove_batch(
        self, records: Records, hours: Iterable[datetime]
    ) -> list[HourAttribution]:
        removed: list[HourAttribution] = []
        for hour in self._normalize_unique(hours):
            existing = await records.get_attribution(hour)
            if existing is not None:
                await records.delete_attributions([existing.attribution_id])
                removed.append(existing)
            await asyncio.sleep(0)
        logger.info("Removed %d attribution(s)", len(removed))
        return removed
