"""PostgreSQL backend for the wearlog engine.

Uses an ``asyncpg`` connection pool.  Each unit of work acquires one pooled
connection and runs inside ``conn.transaction()``; snapshots use a read-only
``REPEATABLE READ`` transaction so a reader sees a single consistent state.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Iterable
from uuid import UUID

import asyncpg

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.errors import PersistenceFailure
from wearlog.engine.intervals import ONE_HOUR, Interval, ensure_aware
from wearlog.services.store import Records, Store

logger = logging.getLogger("wearlog.db.postgres")

_BACKEND_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

SCHEMA = """
CREATE TABLE IF NOT EXISTS equipment (
    equipment_id UUID PRIMARY KEY,
    brand TEXT NOT NULL,
    model TEXT NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    archived BOOLEAN NOT NULL DEFAULT FALSE,
    is_default BOOLEAN NOT NULL DEFAULT FALSE,
    inactivity_timeout_seconds INTEGER NOT NULL,
    estimated_lifespan_km DOUBLE PRECISION NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_equipment_single_default
    ON equipment (is_default) WHERE is_default;

CREATE TABLE IF NOT EXISTS wear_sessions (
    session_id UUID PRIMARY KEY,
    equipment_id UUID NOT NULL REFERENCES equipment (equipment_id) ON DELETE CASCADE,
    start_at TIMESTAMPTZ NOT NULL,
    end_at TIMESTAMPTZ,
    auto_started BOOLEAN NOT NULL DEFAULT FALSE,
    auto_closed BOOLEAN NOT NULL DEFAULT FALSE,
    steps BIGINT NOT NULL DEFAULT 0,
    distance_km DOUBLE PRECISION NOT NULL DEFAULT 0,
    CHECK (end_at IS NULL OR end_at > start_at)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_wear_sessions_single_open
    ON wear_sessions ((end_at IS NULL)) WHERE end_at IS NULL;

CREATE INDEX IF NOT EXISTS idx_wear_sessions_start ON wear_sessions (start_at);

CREATE TABLE IF NOT EXISTS hour_attributions (
    attribution_id UUID PRIMARY KEY,
    equipment_id UUID NOT NULL REFERENCES equipment (equipment_id) ON DELETE CASCADE,
    hour_date TIMESTAMPTZ NOT NULL UNIQUE,
    steps BIGINT NOT NULL DEFAULT 0,
    distance_km DOUBLE PRECISION NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL
);
"""


def _uuid(value) -> UUID:
    # asyncpg hands back its own UUID type; normalise to the stdlib class
    return value if type(value) is UUID else UUID(str(value))


def _equipment_from_record(row: asyncpg.Record) -> Equipment:
    return Equipment(
        equipment_id=_uuid(row["equipment_id"]),
        brand=row["brand"],
        model=row["model"],
        notes=row["notes"],
        archived=row["archived"],
        is_default=row["is_default"],
        inactivity_timeout_seconds=row["inactivity_timeout_seconds"],
        estimated_lifespan_km=row["estimated_lifespan_km"],
        created_at=ensure_aware(row["created_at"]),
    )


def _session_from_record(row: asyncpg.Record) -> WearSession:
    return WearSession(
        session_id=_uuid(row["session_id"]),
        equipment_id=_uuid(row["equipment_id"]),
        start=ensure_aware(row["start_at"]),
        end=ensure_aware(row["end_at"]) if row["end_at"] is not None else None,
        auto_started=row["auto_started"],
        auto_closed=row["auto_closed"],
        steps=row["steps"],
        distance_km=row["distance_km"],
    )


def _attribution_from_record(row: asyncpg.Record) -> HourAttribution:
    return HourAttribution(
        attribution_id=_uuid(row["attribution_id"]),
        equipment_id=_uuid(row["equipment_id"]),
        hour_date=ensure_aware(row["hour_date"]),
        steps=row["steps"],
        distance_km=row["distance_km"],
        created_at=ensure_aware(row["created_at"]),
    )


def _affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status string like ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgresRecords(Records):
    """Records bound to one pooled connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    # ── Equipment ──

    async def insert_equipment(self, equipment: Equipment) -> None:
        await self._conn.execute(
            """
            INSERT INTO equipment (
                equipment_id, brand, model, notes, archived, is_default,
                inactivity_timeout_seconds, estimated_lifespan_km, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            equipment.equipment_id,
            equipment.brand,
            equipment.model,
            equipment.notes,
            equipment.archived,
            equipment.is_default,
            equipment.inactivity_timeout_seconds,
            equipment.estimated_lifespan_km,
            ensure_aware(equipment.created_at),
        )

    async def update_equipment(self, equipment: Equipment) -> None:
        await self._conn.execute(
            """
            UPDATE equipment SET
                brand = $2,
                model = $3,
                notes = $4,
                archived = $5,
                is_default = $6,
                inactivity_timeout_seconds = $7,
                estimated_lifespan_km = $8
            WHERE equipment_id = $1
            """,
            equipment.equipment_id,
            equipment.brand,
            equipment.model,
            equipment.notes,
            equipment.archived,
            equipment.is_default,
            equipment.inactivity_timeout_seconds,
            equipment.estimated_lifespan_km,
        )

    async def delete_equipment(self, equipment_id: UUID) -> None:
        await self._conn.execute(
            "DELETE FROM equipment WHERE equipment_id = $1", equipment_id
        )

    async def get_equipment(self, equipment_id: UUID) -> Equipment | None:
        row = await self._conn.fetchrow(
            "SELECT * FROM equipment WHERE equipment_id = $1", equipment_id
        )
        return _equipment_from_record(row) if row else None

    async def list_equipment(self, include_archived: bool = True) -> list[Equipment]:
        rows = await self._conn.fetch(
            "SELECT * FROM equipment WHERE $1 OR NOT archived ORDER BY created_at",
            include_archived,
        )
        return [_equipment_from_record(r) for r in rows]

    async def get_default_equipment(self) -> Equipment | None:
        row = await self._conn.fetchrow(
            "SELECT * FROM equipment WHERE is_default AND NOT archived"
        )
        return _equipment_from_record(row) if row else None

    async def clear_default_equipment(self) -> list[UUID]:
        rows = await self._conn.fetch(
            "UPDATE equipment SET is_default = FALSE WHERE is_default RETURNING equipment_id"
        )
        return [_uuid(r["equipment_id"]) for r in rows]

    # ── Sessions ──

    async def insert_session(self, session: WearSession) -> None:
        await self._conn.execute(
            """
            INSERT INTO wear_sessions (
                session_id, equipment_id, start_at, end_at,
                auto_started, auto_closed, steps, distance_km
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            session.session_id,
            session.equipment_id,
            ensure_aware(session.start),
            ensure_aware(session.end) if session.end is not None else None,
            session.auto_started,
            session.auto_closed,
            session.steps,
            session.distance_km,
        )

    async def update_session(self, session: WearSession) -> None:
        await self._conn.execute(
            """
            UPDATE wear_sessions SET
                end_at = $2,
                auto_closed = $3,
                steps = $4,
                distance_km = $5
            WHERE session_id = $1
            """,
            session.session_id,
            ensure_aware(session.end) if session.end is not None else None,
            session.auto_closed,
            session.steps,
            session.distance_km,
        )

    async def delete_sessions(self, session_ids: Iterable[UUID]) -> int:
        ids = list(session_ids)
        if not ids:
            return 0
        status = await self._conn.execute(
            "DELETE FROM wear_sessions WHERE session_id = ANY($1::uuid[])", ids
        )
        return _affected_rows(status)

    async def list_open_sessions(self) -> list[WearSession]:
        rows = await self._conn.fetch(
            "SELECT * FROM wear_sessions WHERE end_at IS NULL ORDER BY start_at"
        )
        return [_session_from_record(r) for r in rows]

    async def list_sessions_overlapping(self, window: Interval) -> list[WearSession]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM wear_sessions
            WHERE (end_at IS NULL OR end_at > $1)
              AND ($2::timestamptz IS NULL OR start_at < $2)
            ORDER BY start_at
            """,
            window.start,
            window.end,
        )
        return [_session_from_record(r) for r in rows]

    async def list_sessions(self, equipment_id: UUID | None = None) -> list[WearSession]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM wear_sessions
            WHERE $1::uuid IS NULL OR equipment_id = $1
            ORDER BY start_at
            """,
            equipment_id,
        )
        return [_session_from_record(r) for r in rows]

    # ── Attributions ──

    async def insert_attribution(self, attribution: HourAttribution) -> None:
        await self._conn.execute(
            """
            INSERT INTO hour_attributions (
                attribution_id, equipment_id, hour_date, steps, distance_km, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            """,
            attribution.attribution_id,
            attribution.equipment_id,
            ensure_aware(attribution.hour_date),
            attribution.steps,
            attribution.distance_km,
            ensure_aware(attribution.created_at),
        )

    async def delete_attributions(self, attribution_ids: Iterable[UUID]) -> int:
        ids = list(attribution_ids)
        if not ids:
            return 0
        status = await self._conn.execute(
            "DELETE FROM hour_attributions WHERE attribution_id = ANY($1::uuid[])", ids
        )
        return _affected_rows(status)

    async def get_attribution(self, hour_date: datetime) -> HourAttribution | None:
        row = await self._conn.fetchrow(
            "SELECT * FROM hour_attributions WHERE hour_date = $1", ensure_aware(hour_date)
        )
        return _attribution_from_record(row) if row else None

    async def list_attributions_overlapping(self, window: Interval) -> list[HourAttribution]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM hour_attributions
            WHERE hour_date > $1
              AND ($2::timestamptz IS NULL OR hour_date < $2)
            ORDER BY hour_date
            """,
            window.start - ONE_HOUR,
            window.end,
        )
        return [_attribution_from_record(r) for r in rows]

    async def list_attributions(self, equipment_id: UUID | None = None) -> list[HourAttribution]:
        rows = await self._conn.fetch(
            """
            SELECT * FROM hour_attributions
            WHERE $1::uuid IS NULL OR equipment_id = $1
            ORDER BY hour_date
            """,
            equipment_id,
        )
        return [_attribution_from_record(r) for r in rows]


class PostgresStore(Store):
    """asyncpg-backed store.  Call ``open()`` once at app startup."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 20) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def open(self) -> None:
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=30,
            )
            async with self._pool.acquire() as conn:
                await conn.execute(SCHEMA)
        except _BACKEND_ERRORS as exc:
            raise PersistenceFailure("Could not open PostgreSQL store", exc) from exc
        logger.info(
            "Database pool initialized (min=%d, max=%d)", self._min_size, self._max_size
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise PersistenceFailure("Database pool not initialized; call open() first")
        return self._pool

    @asynccontextmanager
    async def _unit_of_work(self, **tx_options) -> AsyncGenerator[Records, None]:
        pool = self._get_pool()
        # OSError raised by the caller (e.g. reading an export file) is not ours
        caller_error: OSError | None = None
        try:
            async with pool.acquire() as conn:
                async with conn.transaction(**tx_options):
                    try:
                        yield PostgresRecords(conn)
                    except OSError as exc:
                        caller_error = exc
                        raise
        except _BACKEND_ERRORS as exc:
            if exc is caller_error:
                raise
            raise PersistenceFailure(f"PostgreSQL operation failed: {exc}", exc) from exc

    def transaction(self) -> AbstractAsyncContextManager[Records]:
        return self._unit_of_work()

    def snapshot(self) -> AbstractAsyncContextManager[Records]:
        return self._unit_of_work(isolation="repeatable_read", readonly=True)

    async def ping(self) -> bool:
        try:
            async with self._get_pool().acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except _BACKEND_ERRORS as exc:
            raise PersistenceFailure("PostgreSQL ping failed", exc) from exc
