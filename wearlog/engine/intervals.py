"""Half-open time intervals and hour arithmetic.

Sessions and attributions are both represented as ``[start, end)`` intervals.
An interval with ``end=None`` is open (the equipment is still being worn) and
behaves as if it ended at +infinity.  ``covers`` and ``overlaps`` are the only
primitives the conflict resolver and the reconciliation engine build on.

Hour boundaries are evaluated in a caller-supplied timezone so that "hour 9
of 2026-02-23" means 09:00 local time, while every returned instant is a
timezone-aware UTC datetime.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from wearlog.engine.errors import InvalidInterval

ONE_HOUR = timedelta(hours=1)


def ensure_aware(instant: datetime) -> datetime:
    """Return ``instant`` as an aware UTC datetime.

    Naive datetimes are assumed to already be UTC.
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


@dataclass(frozen=True)
class Interval:
    """A half-open ``[start, end)`` interval; ``end=None`` means open-ended.

    Attributes:
        start: Inclusive lower bound (aware UTC).
        end:   Exclusive upper bound (aware UTC), or None for +infinity.
    """

    start: datetime
    end: datetime | None = None

    def __post_init__(self) -> None:
        start = ensure_aware(self.start)
        end = ensure_aware(self.end) if self.end is not None else None
        if end is not None and end <= start:
            raise InvalidInterval(
                f"Interval end {end.isoformat()} must be after start {start.isoformat()}"
            )
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration(self, now: datetime | None = None) -> timedelta:
        """Length of the interval; open intervals are measured up to ``now``."""
        end = self.end
        if end is None:
            if now is None:
                raise InvalidInterval("An open interval needs 'now' to measure its duration")
            end = ensure_aware(now)
        return max(end - self.start, timedelta(0))

    def covers(self, instant: datetime) -> bool:
        return covers(self, instant)

    def overlaps(self, other: Interval) -> bool:
        return overlaps(self, other)


def covers(interval: Interval, instant: datetime) -> bool:
    """True iff ``start <= instant < end`` (open end treated as +infinity)."""
    instant = ensure_aware(instant)
    if instant < interval.start:
        return False
    return interval.end is None or instant < interval.end


def overlaps(a: Interval, b: Interval) -> bool:
    """True iff the two half-open intervals share at least one instant."""
    a_starts_before_b_ends = b.end is None or a.start < b.end
    b_starts_before_a_ends = a.end is None or b.start < a.end
    return a_starts_before_b_ends and b_starts_before_a_ends


# ---------------------------------------------------------------------------
# Hour helpers
# ---------------------------------------------------------------------------


def floor_hour(instant: datetime, tz: tzinfo) -> datetime:
    """Normalise an instant to the start of its hour in ``tz`` (e.g. 14:23 → 14:00)."""
    local = ensure_aware(instant).astimezone(tz)
    return local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)


def ceil_hour(instant: datetime, tz: tzinfo) -> datetime:
    """First hour boundary at or after ``instant``."""
    floored = floor_hour(instant, tz)
    if floored == ensure_aware(instant):
        return floored
    return floored + ONE_HOUR


def is_hour_aligned(instant: datetime, tz: tzinfo) -> bool:
    return floor_hour(instant, tz) == ensure_aware(instant)


def hour_start(day: date, hour: int, tz: tzinfo) -> datetime:
    """UTC instant at which ``hour`` (0–23) of local ``day`` begins."""
    if not 0 <= hour <= 23:
        raise InvalidInterval(f"Hour must be between 0 and 23, got {hour}")
    return datetime.combine(day, time(hour), tzinfo=tz).astimezone(timezone.utc)


def hour_interval(start_of_hour: datetime) -> Interval:
    """The one-hour interval beginning at ``start_of_hour``."""
    start = ensure_aware(start_of_hour)
    return Interval(start, start + ONE_HOUR)


def day_interval(day: date, tz: tzinfo) -> Interval:
    """The local calendar ``day`` as a UTC interval (handles DST-length days)."""
    start = datetime.combine(day, time(0), tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz).astimezone(timezone.utc)
    return Interval(start, end)


def local_day(instant: datetime, tz: tzinfo) -> date:
    return ensure_aware(instant).astimezone(tz).date()


def local_hour(instant: datetime, tz: tzinfo) -> int:
    return ensure_aware(instant).astimezone(tz).hour


def days_spanned(interval: Interval, tz: tzinfo, now: datetime) -> list[date]:
    """Local calendar days touched by ``interval`` (open intervals end at ``now``)."""
    end = interval.end or ensure_aware(now)
    first = local_day(interval.start, tz)
    # end is exclusive, so step back a microsecond before taking its day
    last = local_day(max(end - timedelta(microseconds=1), interval.start), tz)
    days: list[date] = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days
