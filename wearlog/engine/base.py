"""Canonical data models and the activity provider interface for the wearlog engine.

These types are the single source of truth passed between the engine
components, the persistence backends and the API layer.  Equipment, sessions
and attributions are persisted; raw samples and attributed hours are not.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from wearlog.engine.intervals import ONE_HOUR, Interval

DEFAULT_INACTIVITY_TIMEOUT_SECONDS = 6 * 60 * 60
DEFAULT_LIFESPAN_KM = 800.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


@dataclass
class Equipment:
    """A piece of equipment (a pair of shoes) that can own activity.

    Attributes:
        equipment_id:               Stable identity.
        brand:                      Manufacturer, e.g. "Altra".
        model:                      Model name, e.g. "Lone Peak 8".
        notes:                      Free-form notes.
        archived:                   Soft-deleted; kept for historical data.
        is_default:                 Auto-started when unattributed activity appears.
        inactivity_timeout_seconds: Idle time after which an open session auto-closes.
        estimated_lifespan_km:      Expected distance before retirement.
        created_at:                 UTC creation timestamp.
    """

    brand: str
    model: str
    equipment_id: UUID = field(default_factory=uuid4)
    notes: str = ""
    archived: bool = False
    is_default: bool = False
    inactivity_timeout_seconds: int = DEFAULT_INACTIVITY_TIMEOUT_SECONDS
    estimated_lifespan_km: float = DEFAULT_LIFESPAN_KM
    created_at: datetime = field(default_factory=utc_now)

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model}".strip()


@dataclass
class WearSession:
    """A period during which one piece of equipment was worn.

    ``end`` is None while the session is open.  Steps and distance are cached
    when the session closes.
    """

    equipment_id: UUID
    start: datetime
    end: datetime | None = None
    session_id: UUID = field(default_factory=uuid4)
    auto_started: bool = False
    auto_closed: bool = False
    steps: int = 0
    distance_km: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass
class HourAttribution:
    """An explicit, manual assignment of one hour to one piece of equipment.

    ``hour_date`` is always an hour boundary.  Steps and distance are a
    snapshot of the raw sample at attribution time and are never recomputed.
    """

    equipment_id: UUID
    hour_date: datetime
    attribution_id: UUID = field(default_factory=uuid4)
    steps: int = 0
    distance_km: float = 0.0
    created_at: datetime = field(default_factory=utc_now)

    @property
    def interval(self) -> Interval:
        return Interval(self.hour_date, self.hour_date + ONE_HOUR)


# ---------------------------------------------------------------------------
# External and derived values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawSample:
    """One hour of activity as reported by the external provider."""

    day: date
    hour: int
    steps: int = 0
    distance_km: float = 0.0


class OwnershipSource(str, Enum):
    """Which reconciliation rule assigned an hour's owner."""

    ATTRIBUTION = "attribution"
    SESSION = "session"


@dataclass(frozen=True)
class AttributedHour:
    """Reconciliation output for one hour.  Computed fresh on every query."""

    day: date
    hour: int
    hour_start: datetime
    steps: int
    distance_km: float
    owner: UUID | None = None
    source: OwnershipSource | None = None

    @property
    def is_owned(self) -> bool:
        return self.owner is not None


# ---------------------------------------------------------------------------
# Abstract activity provider
# ---------------------------------------------------------------------------


class ActivityProvider(ABC):
    """Source of hourly step/distance samples.

    Authorization and availability are handled entirely by the provider.  An
    empty result means "no activity" and is never an error.
    """

    #: Unique slug for logging (e.g. 'static', 'http', 'apple_health').
    SOURCE_ID: str = "unknown"

    @abstractmethod
    async def fetch_hourly_samples(self, day: date) -> list[RawSample]:
        """Return the hourly samples recorded on local calendar ``day``.

        Args:
            day: Local calendar date to fetch.

        Returns:
            Zero or more RawSample values, at most one per hour.
        """

    async def aclose(self) -> None:
        """Release provider resources.  Default is a no-op."""
        return None
