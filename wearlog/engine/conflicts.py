"""Conflict resolution: keep every hour owned by at most one record.

Before new ownership is asserted over a target interval, every session and
every hour attribution overlapping that interval is deleted outright.  Records
are never clipped, so an 08:00–11:00 session that collides with a new 09:00
attribution is removed as a whole.

Resolving the same target twice deletes nothing the second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from wearlog.engine.intervals import Interval, overlaps

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.conflicts")


@dataclass
class ConflictResolution:
    """What a resolution removed (or, for a preview, would remove).

    Attributes:
        removed_session_ids:     Sessions overlapping the target.
        removed_attribution_ids: Attributions overlapping the target.
        affected_equipment_ids:  Owners that lost ownership, in first-seen order.
    """

    removed_session_ids: list[UUID] = field(default_factory=list)
    removed_attribution_ids: list[UUID] = field(default_factory=list)
    affected_equipment_ids: list[UUID] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.removed_session_ids and not self.removed_attribution_ids

    def _note_owner(self, equipment_id: UUID) -> None:
        if equipment_id not in self.affected_equipment_ids:
            self.affected_equipment_ids.append(equipment_id)


class ConflictResolver:
    """Finds and deletes records overlapping a target interval."""

    async def find_conflicts(self, records: Records, target: Interval) -> ConflictResolution:
        """Side-effect-free preview of what ``resolve`` would delete."""
        conflicts = ConflictResolution()

        for session in await records.list_sessions_overlapping(target):
            if not overlaps(session.interval, target):
                continue
            conflicts.removed_session_ids.append(session.session_id)
            conflicts._note_owner(session.equipment_id)

        for attribution in await records.list_attributions_overlapping(target):
            if not overlaps(attribution.interval, target):
                continue
            conflicts.removed_attribution_ids.append(attribution.attribution_id)
            conflicts._note_owner(attribution.equipment_id)

        return conflicts

    async def resolve(self, records: Records, target: Interval) -> ConflictResolution:
        """Delete every session and attribution overlapping ``target``.

        Returns:
            The resolution; empty when nothing overlapped.
        """
        conflicts = await self.find_conflicts(records, target)
        if conflicts.is_empty:
            logger.debug("No conflicts for %s", target)
            return conflicts

        await records.delete_sessions(conflicts.removed_session_ids)
        await records.delete_attributions(conflicts.removed_attribution_ids)
        logger.info(
            "Resolved conflicts for [%s, %s): removed %d session(s), %d attribution(s)",
            target.start.isoformat(),
            target.end.isoformat() if target.end else "open",
            len(conflicts.removed_session_ids),
            len(conflicts.removed_attribution_ids),
        )
        return conflicts
