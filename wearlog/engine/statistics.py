"""Derived usage statistics.

Nothing here is stored.  Statistics are recomputed from sessions and
attributions on every read, so they are never stale after a mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Iterable
from uuid import UUID

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.intervals import ONE_HOUR, days_spanned, ensure_aware, local_day


@dataclass(frozen=True)
class EquipmentStatistics:
    equipment_id: UUID
    session_count: int
    total_wear_seconds: float
    average_session_seconds: float
    total_steps: int
    total_distance_km: float
    lifespan_progress: float
    usage_days: int
    last_used: datetime | None
    is_active: bool


@dataclass(frozen=True)
class CollectionStatistics:
    total: int
    active: int
    archived: int
    default_equipment_id: UUID | None


def compute_equipment_statistics(
    equipment: Equipment,
    sessions: Iterable[WearSession],
    attributions: Iterable[HourAttribution],
    now: datetime,
    tz: tzinfo,
) -> EquipmentStatistics:
    """Statistics for one equipment item.

    Open sessions count toward wear time up to ``now``; their steps and
    distance are only cached when they close.
    """
    now = ensure_aware(now)
    sessions = [s for s in sessions if s.equipment_id == equipment.equipment_id]
    attributions = [a for a in attributions if a.equipment_id == equipment.equipment_id]

    wear_seconds = sum(s.interval.duration(now).total_seconds() for s in sessions)
    steps = sum(s.steps for s in sessions) + sum(a.steps for a in attributions)
    distance = sum(s.distance_km for s in sessions) + sum(a.distance_km for a in attributions)

    days: set[date] = set()
    last_used: datetime | None = None
    for s in sessions:
        days.update(days_spanned(s.interval, tz, now))
        ended = s.end or now
        last_used = ended if last_used is None else max(last_used, ended)
    for a in attributions:
        days.add(local_day(a.hour_date, tz))
        ended = ensure_aware(a.hour_date) + ONE_HOUR
        last_used = ended if last_used is None else max(last_used, ended)

    return EquipmentStatistics(
        equipment_id=equipment.equipment_id,
        session_count=len(sessions),
        total_wear_seconds=wear_seconds,
        average_session_seconds=wear_seconds / len(sessions) if sessions else 0.0,
        total_steps=steps,
        total_distance_km=round(distance, 4),
        lifespan_progress=min(distance / equipment.estimated_lifespan_km, 1.0),
        usage_days=len(days),
        last_used=last_used,
        is_active=any(s.is_open for s in sessions),
    )


def compute_collection_statistics(equipment: Iterable[Equipment]) -> CollectionStatistics:
    items = list(equipment)
    archived = sum(1 for e in items if e.archived)
    default = next((e.equipment_id for e in items if e.is_default and not e.archived), None)
    return CollectionStatistics(
        total=len(items),
        active=len(items) - archived,
        archived=archived,
        default_equipment_id=default,
    )
