"""Auto-management sweep.

Invoked by the caller once per query cycle; there is no background timer.
Idle sessions are closed before the default auto-start is evaluated, so a
stale session never blocks the default from starting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING
from uuid import UUID

from wearlog.engine.activity import ActivityLedger
from wearlog.engine.base import WearSession
from wearlog.engine.config_loader import AutoManagementPolicy
from wearlog.engine.intervals import ensure_aware, local_day
from wearlog.engine.reconciliation import ReconciliationEngine
from wearlog.engine.sessions import SessionLifecycleManager

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.auto_management")


@dataclass
class SweepReport:
    """What one sweep changed."""

    ran_at: datetime
    closed_sessions: list[WearSession] = field(default_factory=list)
    started_session: WearSession | None = None

    @property
    def changed(self) -> bool:
        return bool(self.closed_sessions) or self.started_session is not None


class AutoManagementSweep:
    """Idle-timeout close followed by default auto-start."""

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        reconciliation: ReconciliationEngine,
        ledger: ActivityLedger,
        policy: AutoManagementPolicy,
        tz: tzinfo,
    ) -> None:
        self._lifecycle = lifecycle
        self._reconciliation = reconciliation
        self._ledger = ledger
        self._policy = policy
        self._tz = tz

    async def has_unattributed_activity_today(self, records: Records, now: datetime) -> bool:
        """True if an hour of today, already started, has steps and no owner."""
        now = ensure_aware(now)
        hours = await self._reconciliation.reconcile(records, local_day(now, self._tz))
        return any(
            h.steps > 0 and h.owner is None and h.hour_start <= now
            for h in hours
        )

    async def run(self, records: Records, now: datetime) -> SweepReport:
        now = ensure_aware(now)
        report = SweepReport(ran_at=now)

        if self._policy.idle_close_enabled:

            async def probe(equipment_id: UUID, since: datetime) -> bool:
                return await self._ledger.has_activity(since, now)

            report.closed_sessions = await self._lifecycle.sweep_idle_timeouts(
                records, now, probe
            )

        if self._policy.default_auto_start_enabled:

            async def unattributed() -> bool:
                return await self.has_unattributed_activity_today(records, now)

            report.started_session = await self._lifecycle.sweep_default_auto_start(
                records, now, unattributed
            )

        logger.info(
            "Auto-management sweep: closed %d, started %s",
            len(report.closed_sessions),
            report.started_session.session_id if report.started_session else "none",
        )
        return report
