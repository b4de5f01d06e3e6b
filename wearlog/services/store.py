"""Persistence interface for the wearlog engine.

A ``Store`` hands out units of work.  ``transaction()`` yields a ``Records``
object whose writes are committed together when the block exits normally and
rolled back if it raises (including cancellation).  ``snapshot()`` yields a
read-only ``Records`` that never observes a half-applied transaction.

Backends:
    SQLiteStore    embedded, stdlib sqlite3 (wearlog.services.sqlite_store)
    PostgresStore  asyncpg connection pool (wearlog.services.postgres_store)

Backend exceptions are re-raised as ``PersistenceFailure``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Iterable
from uuid import UUID

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.intervals import Interval


class Records(ABC):
    """Record-level access to equipment, sessions and attributions.

    All methods are bound to the unit of work that produced this object.
    """

    # ── Equipment ──

    @abstractmethod
    async def insert_equipment(self, equipment: Equipment) -> None: ...

    @abstractmethod
    async def update_equipment(self, equipment: Equipment) -> None: ...

    @abstractmethod
    async def delete_equipment(self, equipment_id: UUID) -> None:
        """Delete equipment and, by cascade, its sessions and attributions."""

    @abstractmethod
    async def get_equipment(self, equipment_id: UUID) -> Equipment | None: ...

    @abstractmethod
    async def list_equipment(self, include_archived: bool = True) -> list[Equipment]: ...

    @abstractmethod
    async def get_default_equipment(self) -> Equipment | None:
        """Return the non-archived default equipment, if any."""

    @abstractmethod
    async def clear_default_equipment(self) -> list[UUID]:
        """Unset ``is_default`` everywhere.  Returns the ids that were cleared."""

    # ── Sessions ──

    @abstractmethod
    async def insert_session(self, session: WearSession) -> None: ...

    @abstractmethod
    async def update_session(self, session: WearSession) -> None: ...

    @abstractmethod
    async def delete_sessions(self, session_ids: Iterable[UUID]) -> int: ...

    @abstractmethod
    async def list_open_sessions(self) -> list[WearSession]: ...

    @abstractmethod
    async def list_sessions_overlapping(self, window: Interval) -> list[WearSession]:
        """Sessions whose ``[start, end)`` overlaps ``window`` (open ends as +inf)."""

    @abstractmethod
    async def list_sessions(self, equipment_id: UUID | None = None) -> list[WearSession]: ...

    # ── Attributions ──

    @abstractmethod
    async def insert_attribution(self, attribution: HourAttribution) -> None: ...

    @abstractmethod
    async def delete_attributions(self, attribution_ids: Iterable[UUID]) -> int: ...

    @abstractmethod
    async def get_attribution(self, hour_date: datetime) -> HourAttribution | None: ...

    @abstractmethod
    async def list_attributions_overlapping(self, window: Interval) -> list[HourAttribution]:
        """Attributions whose hour overlaps ``window``, ordered by hour."""

    @abstractmethod
    async def list_attributions(self, equipment_id: UUID | None = None) -> list[HourAttribution]: ...


class Store(ABC):
    """A transactional record store."""

    @abstractmethod
    async def open(self) -> None:
        """Connect and make sure the schema exists."""

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[Records]:
        """Unit of work committed as a whole or not at all."""

    @abstractmethod
    def snapshot(self) -> AbstractAsyncContextManager[Records]:
        """Read-only, consistent view."""

    @abstractmethod
    async def ping(self) -> bool:
        """Lightweight connectivity check used by the health endpoint."""
