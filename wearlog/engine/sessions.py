"""Session lifecycle: start, stop, toggle and the two automatic transitions.

Each equipment item is either Idle (no open session) or Active (exactly one
session with ``end=None``).  System-wide at most one equipment is Active,
because a session means "what is on my feet right now": starting one item
closes whatever else is open first.

Every method takes the ``Records`` of the caller's transaction, so the
close-then-open pair of writes commits or rolls back together.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo
from typing import TYPE_CHECKING, Awaitable, Callable
from uuid import UUID

from wearlog.engine.activity import ActivityLedger
from wearlog.engine.base import Equipment, WearSession
from wearlog.engine.conflicts import ConflictResolver
from wearlog.engine.errors import (
    EquipmentArchived,
    EquipmentNotFound,
    InvalidInterval,
    NoActiveSession,
    SessionAlreadyActive,
)
from wearlog.engine.intervals import Interval, ceil_hour, ensure_aware

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.sessions")

#: ``probe(equipment_id, since)`` → True if activity was recorded after ``since``.
RecentActivityProbe = Callable[[UUID, datetime], Awaitable[bool]]
UnattributedActivityCheck = Callable[[], Awaitable[bool]]
DefaultEquipmentLookup = Callable[[], Awaitable[Equipment | None]]


class SessionLifecycleManager:
    """State machine over wear sessions."""

    def __init__(self, ledger: ActivityLedger, resolver: ConflictResolver, tz: tzinfo) -> None:
        self._ledger = ledger
        self._resolver = resolver
        self._tz = tz

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def active_session(self, records: Records) -> WearSession | None:
        open_sessions = await records.list_open_sessions()
        if len(open_sessions) > 1:
            logger.warning("Found %d open sessions; expected at most one", len(open_sessions))
        return open_sessions[0] if open_sessions else None

    async def _require_equipment(self, records: Records, equipment_id: UUID) -> Equipment:
        equipment = await records.get_equipment(equipment_id)
        if equipment is None:
            raise EquipmentNotFound(equipment_id)
        return equipment

    # ------------------------------------------------------------------
    # Explicit transitions
    # ------------------------------------------------------------------

    async def start(
        self,
        records: Records,
        equipment_id: UUID,
        now: datetime,
        auto_started: bool = False,
    ) -> WearSession:
        """Open a session for ``equipment_id`` at ``now``.

        Any session open for other equipment is closed at ``now`` first (or
        deleted when it started at ``now``, since it would be empty), then
        every record claiming an hour from ``ceil_hour(now)`` onwards is
        removed so the new open session is the only claimant of those hours.

        Raises:
            EquipmentNotFound:    Unknown equipment.
            EquipmentArchived:    Archived equipment cannot be worn.
            SessionAlreadyActive: This equipment already holds the open session.
        """
        now = ensure_aware(now)
        equipment = await self._require_equipment(records, equipment_id)
        if equipment.archived:
            raise EquipmentArchived(equipment_id)

        for session in await records.list_open_sessions():
            if session.equipment_id == equipment_id:
                raise SessionAlreadyActive(equipment_id)
            if now <= session.start:
                # closing it here would leave an empty interval
                await records.delete_sessions([session.session_id])
                logger.info("Superseded session %s started at %s", session.session_id, now.isoformat())
                continue
            await self._close(records, session, now, auto_closed=False)

        await self._resolver.resolve(records, Interval(ceil_hour(now, self._tz), None))

        session = WearSession(equipment_id=equipment_id, start=now, auto_started=auto_started)
        await records.insert_session(session)
        logger.info(
            "Started %ssession %s for %s at %s",
            "auto-" if auto_started else "",
            session.session_id,
            equipment.display_name,
            now.isoformat(),
        )
        return session

    async def stop(
        self,
        records: Records,
        equipment_id: UUID,
        now: datetime,
        auto_closed: bool = False,
    ) -> WearSession:
        """Close the open session of ``equipment_id`` at ``now``.

        Raises:
            EquipmentNotFound: Unknown equipment.
            NoActiveSession:   The equipment has no open session.
            InvalidInterval:   ``now`` is not after the session start.
        """
        await self._require_equipment(records, equipment_id)
        for session in await records.list_open_sessions():
            if session.equipment_id == equipment_id:
                return await self._close(records, session, ensure_aware(now), auto_closed)
        raise NoActiveSession(equipment_id)

    async def toggle(self, records: Records, equipment_id: UUID, now: datetime) -> WearSession:
        """Stop the equipment if it is Active, otherwise start it."""
        active = await self.active_session(records)
        if active is not None and active.equipment_id == equipment_id:
            return await self.stop(records, equipment_id, now)
        return await self.start(records, equipment_id, now)

    async def _close(
        self, records: Records, session: WearSession, now: datetime, auto_closed: bool
    ) -> WearSession:
        if now <= session.start:
            raise InvalidInterval(
                f"Cannot close session {session.session_id} at {now.isoformat()}: "
                f"it started at {session.start.isoformat()}"
            )
        session.end = now
        session.auto_closed = auto_closed
        totals = await self._ledger.totals(session.interval, now)
        session.steps = totals.steps
        session.distance_km = totals.distance_km
        await records.update_session(session)
        logger.info(
            "%s session %s (%d steps, %.2f km)",
            "Auto-closed" if auto_closed else "Closed",
            session.session_id,
            session.steps,
            session.distance_km,
        )
        return session

    # ------------------------------------------------------------------
    # Automatic transitions
    # ------------------------------------------------------------------

    async def sweep_idle_timeouts(
        self, records: Records, now: datetime, probe: RecentActivityProbe
    ) -> list[WearSession]:
        """Auto-close open sessions that outlived their equipment's timeout.

        A session is closed when ``now - start`` exceeds the timeout and
        ``probe(equipment_id, session.start)`` finds no activity since the
        session started.
        """
        now = ensure_aware(now)
        closed: list[WearSession] = []
        for session in await records.list_open_sessions():
            equipment = await records.get_equipment(session.equipment_id)
            if equipment is None:
                logger.warning("Open session %s has no equipment", session.session_id)
                continue
            timeout = timedelta(seconds=equipment.inactivity_timeout_seconds)
            if now - session.start <= timeout:
                continue
            if await probe(session.equipment_id, session.start):
                logger.debug(
                    "Session %s past timeout but still active; keeping open",
                    session.session_id,
                )
                continue
            closed.append(await self._close(records, session, now, auto_closed=True))
        return closed

    async def sweep_default_auto_start(
        self,
        records: Records,
        now: datetime,
        has_unattributed_activity_today: UnattributedActivityCheck,
        default_lookup: DefaultEquipmentLookup | None = None,
    ) -> WearSession | None:
        """Start the default equipment when activity nobody owns shows up today.

        No-op when a session is already open, no non-archived default is
        configured, or there is no unattributed activity.
        """
        if await self.active_session(records) is not None:
            logger.debug("Default auto-start skipped: a session is already active")
            return None

        lookup = default_lookup or records.get_default_equipment
        default = await lookup()
        if default is None or default.archived:
            logger.debug("Default auto-start skipped: no default equipment")
            return None

        if not await has_unattributed_activity_today():
            logger.debug("Default auto-start skipped: no unattributed activity today")
            return None

        return await self.start(records, default.equipment_id, now, auto_started=True)
