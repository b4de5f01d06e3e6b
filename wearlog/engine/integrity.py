"""Audit persisted state against the engine invariants.

The validator reads everything and reports; it never repairs.  Each issue
carries a stable ``code`` so callers can filter, plus the ids involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Iterable
from uuid import UUID

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.intervals import Interval, covers, ensure_aware, is_hour_aligned, overlaps

logger = logging.getLogger("wearlog.engine.integrity")

MULTIPLE_OPEN_SESSIONS = "multiple_open_sessions"
OVERLAPPING_SESSIONS = "overlapping_sessions"
NON_POSITIVE_INTERVAL = "non_positive_interval"
UNALIGNED_ATTRIBUTION = "unaligned_attribution"
DUPLICATE_ATTRIBUTION_HOUR = "duplicate_attribution_hour"
HOUR_DOUBLE_CLAIMED = "hour_double_claimed"
MULTIPLE_DEFAULTS = "multiple_defaults"
ORPHAN_SESSION = "orphan_session"
ORPHAN_ATTRIBUTION = "orphan_attribution"


@dataclass(frozen=True)
class IntegrityIssue:
    code: str
    message: str
    record_ids: tuple[UUID, ...] = ()


@dataclass
class IntegrityReport:
    checked_at: datetime
    equipment_count: int = 0
    session_count: int = 0
    attribution_count: int = 0
    issues: list[IntegrityIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def codes(self) -> set[str]:
        return {i.code for i in self.issues}


def validate_state(
    equipment: Iterable[Equipment],
    sessions: Iterable[WearSession],
    attributions: Iterable[HourAttribution],
    tz: tzinfo,
    now: datetime,
) -> IntegrityReport:
    """Check equipment, sessions and attributions for invariant violations."""
    equipment = list(equipment)
    sessions = list(sessions)
    attributions = list(attributions)
    report = IntegrityReport(
        checked_at=ensure_aware(now),
        equipment_count=len(equipment),
        session_count=len(sessions),
        attribution_count=len(attributions),
    )
    issues = report.issues
    known_ids = {e.equipment_id for e in equipment}

    # ── Equipment ──
    defaults = [e.equipment_id for e in equipment if e.is_default]
    if len(defaults) > 1:
        issues.append(IntegrityIssue(
            MULTIPLE_DEFAULTS, f"{len(defaults)} equipment items are marked default", tuple(defaults)
        ))

    # ── Sessions ──
    open_ids = [s.session_id for s in sessions if s.end is None]
    if len(open_ids) > 1:
        issues.append(IntegrityIssue(
            MULTIPLE_OPEN_SESSIONS, f"{len(open_ids)} sessions are open", tuple(open_ids)
        ))

    valid_sessions: list[tuple[WearSession, Interval]] = []
    for s in sessions:
        if s.equipment_id not in known_ids:
            issues.append(IntegrityIssue(
                ORPHAN_SESSION,
                f"Session {s.session_id} references unknown equipment {s.equipment_id}",
                (s.session_id,),
            ))
        if s.end is not None and ensure_aware(s.end) <= ensure_aware(s.start):
            issues.append(IntegrityIssue(
                NON_POSITIVE_INTERVAL,
                f"Session {s.session_id} ends at or before its start",
                (s.session_id,),
            ))
            continue
        valid_sessions.append((s, s.interval))

    valid_sessions.sort(key=lambda pair: pair[1].start)
    for i, (a, a_iv) in enumerate(valid_sessions):
        for b, b_iv in valid_sessions[i + 1:]:
            if a_iv.end is not None and b_iv.start >= a_iv.end:
                break
            if overlaps(a_iv, b_iv):
                issues.append(IntegrityIssue(
                    OVERLAPPING_SESSIONS,
                    f"Sessions {a.session_id} and {b.session_id} overlap",
                    (a.session_id, b.session_id),
                ))

    # ── Attributions ──
    by_hour: dict[datetime, list[HourAttribution]] = {}
    for attr in attributions:
        hour = ensure_aware(attr.hour_date)
        by_hour.setdefault(hour, []).append(attr)
        if attr.equipment_id not in known_ids:
            issues.append(IntegrityIssue(
                ORPHAN_ATTRIBUTION,
                f"Attribution {attr.attribution_id} references unknown equipment {attr.equipment_id}",
                (attr.attribution_id,),
            ))
        if not is_hour_aligned(hour, tz):
            issues.append(IntegrityIssue(
                UNALIGNED_ATTRIBUTION,
                f"Attribution {attr.attribution_id} at {hour.isoformat()} is not on an hour boundary",
                (attr.attribution_id,),
            ))
        for s, s_iv in valid_sessions:
            if covers(s_iv, hour):
                issues.append(IntegrityIssue(
                    HOUR_DOUBLE_CLAIMED,
                    f"Hour {hour.isoformat()} is claimed by attribution "
                    f"{attr.attribution_id} and session {s.session_id}",
                    (attr.attribution_id, s.session_id),
                ))

    for hour, claims in by_hour.items():
        if len(claims) > 1:
            issues.append(IntegrityIssue(
                DUPLICATE_ATTRIBUTION_HOUR,
                f"Hour {hour.isoformat()} has {len(claims)} attributions",
                tuple(a.attribution_id for a in claims),
            ))

    for issue in issues:
        logger.warning("Integrity: %s", issue.message)
    return report
