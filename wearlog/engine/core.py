"""Wearlog engine facade.

``WearEngine`` is the in-process API the HTTP layer (or any other caller)
talks to.  It owns the two concurrency rules of the engine:

- every mutation runs behind one ``asyncio.Lock`` and inside exactly one
  store transaction, so check-then-act invariants (one open session, one
  owner per hour, one default) hold under concurrent callers
- every read runs inside ``store.snapshot()`` and never observes a
  half-applied write

The clock is injectable so tests can drive time explicitly.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, AsyncGenerator, Callable, Iterable
from uuid import UUID

from wearlog.engine.activity import ActivityLedger
from wearlog.engine.attributions import AttributionChange, AttributionStore
from wearlog.engine.auto_management import AutoManagementSweep, SweepReport
from wearlog.engine.base import (
    ActivityProvider,
    AttributedHour,
    Equipment,
    HourAttribution,
    WearSession,
    utc_now,
)
from wearlog.engine.config_loader import EnginePolicy, get_policy
from wearlog.engine.conflicts import ConflictResolver
from wearlog.engine.equipment import EquipmentRegistry
from wearlog.engine.integrity import IntegrityReport, validate_state
from wearlog.engine.reconciliation import ReconciliationEngine
from wearlog.engine.sessions import SessionLifecycleManager
from wearlog.engine.statistics import (
    CollectionStatistics,
    EquipmentStatistics,
    compute_collection_statistics,
    compute_equipment_statistics,
)

if TYPE_CHECKING:
    from wearlog.services.store import Records, Store

logger = logging.getLogger("wearlog.engine.core")


class WearEngine:
    """Session & attribution reconciliation engine.

    Usage::

        engine = WearEngine(store, StaticActivityProvider())
        shoes = await engine.create_equipment("Altra", "Lone Peak 8")
        await engine.start_session(shoes.equipment_id)
        hours = await engine.get_reconciled_hours(date.today())
    """

    def __init__(
        self,
        store: Store,
        provider: ActivityProvider,
        policy: EnginePolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._policy = policy or get_policy()
        self._clock = clock
        self._write_lock = asyncio.Lock()

        tz = self._policy.tz
        self._tz = tz
        self.ledger = ActivityLedger(provider, tz)
        self.resolver = ConflictResolver()
        self.sessions = SessionLifecycleManager(self.ledger, self.resolver, tz)
        self.attributions = AttributionStore(self.resolver, self.ledger, tz)
        self.reconciliation = ReconciliationEngine(self.ledger, tz)
        self.equipment = EquipmentRegistry(self.sessions, self._policy)
        self.auto_management = AutoManagementSweep(
            self.sessions,
            self.reconciliation,
            self.ledger,
            self._policy.auto_management,
            tz,
        )

    @property
    def policy(self) -> EnginePolicy:
        return self._policy

    @property
    def store(self) -> Store:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    @asynccontextmanager
    async def _mutation(self) -> AsyncGenerator[Records, None]:
        async with self._write_lock:
            async with self._store.transaction() as records:
                yield records

    async def aclose(self) -> None:
        await self.ledger.provider.aclose()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_session(self, equipment_id: UUID, auto_started: bool = False) -> WearSession:
        async with self._mutation() as records:
            return await self.sessions.start(records, equipment_id, self.now(), auto_started)

    async def stop_session(self, equipment_id: UUID, auto_closed: bool = False) -> WearSession:
        async with self._mutation() as records:
            return await self.sessions.stop(records, equipment_id, self.now(), auto_closed)

    async def toggle_session(self, equipment_id: UUID) -> WearSession:
        async with self._mutation() as records:
            return await self.sessions.toggle(records, equipment_id, self.now())

    async def active_session(self) -> WearSession | None:
        async with self._store.snapshot() as records:
            return await self.sessions.active_session(records)

    async def list_sessions(self, equipment_id: UUID | None = None) -> list[WearSession]:
        async with self._store.snapshot() as records:
            return await records.list_sessions(equipment_id)

    # ------------------------------------------------------------------
    # Attributions
    # ------------------------------------------------------------------

    async def attribute_hour(self, hour: datetime, equipment_id: UUID) -> AttributionChange:
        async with self._mutation() as records:
            return await self.attributions.set(records, hour, equipment_id)

    async def attribute_hours(
        self, hours: Iterable[datetime], equipment_id: UUID
    ) -> list[AttributionChange]:
        """Attribute many hours in one transaction; all or nothing."""
        async with self._mutation() as records:
            return await self.attributions.set_batch(records, hours, equipment_id)

    async def remove_attribution(self, hour: datetime) -> HourAttribution | None:
        async with self._mutation() as records:
            return await self.attributions.remove(records, hour)

    async def remove_attributions(self, hours: Iterable[datetime]) -> list[HourAttribution]:
        async with self._mutation() as records:
            return await self.attributions.remove_batch(records, hours)

    async def get_attribution(self, hour: datetime) -> HourAttribution | None:
        async with self._store.snapshot() as records:
            return await self.attributions.get(records, hour)

    async def get_attributions(self, start: datetime, end: datetime) -> list[HourAttribution]:
        async with self._store.snapshot() as records:
            return await self.attributions.get_range(records, start, end)

    # ------------------------------------------------------------------
    # Reconciliation & auto-management
    # ------------------------------------------------------------------

    async def get_reconciled_hours(self, day: date) -> list[AttributedHour]:
        """Per-hour ownership view of local ``day``."""
        samples = await self.reconciliation.fetch_samples(day)
        async with self._store.snapshot() as records:
            return await self.reconciliation.reconcile(records, day, samples)

    async def run_auto_management_sweep(self) -> SweepReport:
        async with self._mutation() as records:
            return await self.auto_management.run(records, self.now())

    # ------------------------------------------------------------------
    # Equipment
    # ------------------------------------------------------------------

    async def create_equipment(self, brand: str, model: str, **options: Any) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.create(records, brand, model, **options)

    async def update_equipment(self, equipment_id: UUID, **fields: Any) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.update(records, equipment_id, **fields)

    async def archive_equipment(self, equipment_id: UUID) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.archive(records, equipment_id, self.now())

    async def unarchive_equipment(self, equipment_id: UUID) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.unarchive(records, equipment_id)

    async def set_default_equipment(self, equipment_id: UUID, is_default: bool = True) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.set_default(records, equipment_id, is_default)

    async def delete_equipment(self, equipment_id: UUID) -> Equipment:
        async with self._mutation() as records:
            return await self.equipment.delete(records, equipment_id)

    async def get_equipment(self, equipment_id: UUID) -> Equipment:
        async with self._store.snapshot() as records:
            return await self.equipment.get(records, equipment_id)

    async def list_equipment(self, include_archived: bool = True) -> list[Equipment]:
        async with self._store.snapshot() as records:
            return await self.equipment.list(records, include_archived)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def equipment_statistics(self, equipment_id: UUID) -> EquipmentStatistics:
        async with self._store.snapshot() as records:
            equipment = await self.equipment.get(records, equipment_id)
            sessions = await records.list_sessions(equipment_id)
            attributions = await records.list_attributions(equipment_id)
        return compute_equipment_statistics(
            equipment, sessions, attributions, self.now(), self._tz
        )

    async def collection_statistics(self) -> CollectionStatistics:
        async with self._store.snapshot() as records:
            items = await records.list_equipment(include_archived=True)
        return compute_collection_statistics(items)

    async def validate_integrity(self) -> IntegrityReport:
        async with self._store.snapshot() as records:
            equipment = await records.list_equipment(include_archived=True)
            sessions = await records.list_sessions()
            attributions = await records.list_attributions()
        report = validate_state(equipment, sessions, attributions, self._tz, self.now())
        if report.is_valid:
            logger.info("Integrity check passed (%d sessions, %d attributions)",
                        report.session_count, report.attribution_count)
        return report
