"""Embedded SQLite backend for the wearlog engine.

Uses the stdlib ``sqlite3`` driver in autocommit mode with explicit
``BEGIN IMMEDIATE`` / ``COMMIT`` / ``ROLLBACK`` so that one engine operation is
exactly one transaction.  A single connection is shared; an ``asyncio.Lock``
serialises units of work on it so a reader never sees a writer's
uncommitted rows.

Timestamps are stored as fixed-width UTC text (``YYYY-MM-DD HH:MM:SS.ffffff``)
so that string comparison in SQL matches chronological order.
"""

from __future__ import annotations

import asyncio
import logging
import pathlib
import sqlite3
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Iterable
from uuid import UUID

from wearlog.engine.base import Equipment, HourAttribution, WearSession
from wearlog.engine.errors import PersistenceFailure
from wearlog.engine.intervals import ONE_HOUR, Interval, ensure_aware
from wearlog.services.store import Records, Store

logger = logging.getLogger("wearlog.db.sqlite")

_TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

SCHEMA = """
CREATE TABLE IF NOT EXISTS equipment (
    equipment_id TEXT PRIMARY KEY,
    brand TEXT NOT NULL,
    model TEXT NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    archived INTEGER NOT NULL DEFAULT 0,
    is_default INTEGER NOT NULL DEFAULT 0,
    inactivity_timeout_seconds INTEGER NOT NULL,
    estimated_lifespan_km REAL NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_equipment_single_default
    ON equipment (is_default) WHERE is_default = 1;

CREATE TABLE IF NOT EXISTS wear_sessions (
    session_id TEXT PRIMARY KEY,
    equipment_id TEXT NOT NULL REFERENCES equipment (equipment_id) ON DELETE CASCADE,
    start_at TEXT NOT NULL,
    end_at TEXT,
    auto_started INTEGER NOT NULL DEFAULT 0,
    auto_closed INTEGER NOT NULL DEFAULT 0,
    steps INTEGER NOT NULL DEFAULT 0,
    distance_km REAL NOT NULL DEFAULT 0,
    CHECK (end_at IS NULL OR end_at > start_at)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_wear_sessions_single_open
    ON wear_sessions ((end_at IS NULL)) WHERE end_at IS NULL;

CREATE INDEX IF NOT EXISTS idx_wear_sessions_start ON wear_sessions (start_at);

CREATE TABLE IF NOT EXISTS hour_attributions (
    attribution_id TEXT PRIMARY KEY,
    equipment_id TEXT NOT NULL REFERENCES equipment (equipment_id) ON DELETE CASCADE,
    hour_date TEXT NOT NULL UNIQUE,
    steps INTEGER NOT NULL DEFAULT 0,
    distance_km REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
"""


def _ts(value: datetime) -> str:
    return ensure_aware(value).strftime(_TS_FORMAT)


def _from_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _equipment_from_row(row: sqlite3.Row) -> Equipment:
    return Equipment(
        equipment_id=UUID(row["equipment_id"]),
        brand=row["brand"],
        model=row["model"],
        notes=row["notes"],
        archived=bool(row["archived"]),
        is_default=bool(row["is_default"]),
        inactivity_timeout_seconds=int(row["inactivity_timeout_seconds"]),
        estimated_lifespan_km=float(row["estimated_lifespan_km"]),
        created_at=_from_ts(row["created_at"]),
    )


def _session_from_row(row: sqlite3.Row) -> WearSession:
    return WearSession(
        session_id=UUID(row["session_id"]),
        equipment_id=UUID(row["equipment_id"]),
        start=_from_ts(row["start_at"]),
        end=_from_ts(row["end_at"]),
        auto_started=bool(row["auto_started"]),
        auto_closed=bool(row["auto_closed"]),
        steps=int(row["steps"]),
        distance_km=float(row["distance_km"]),
    )


def _attribution_from_row(row: sqlite3.Row) -> HourAttribution:
    return HourAttribution(
        attribution_id=UUID(row["attribution_id"]),
        equipment_id=UUID(row["equipment_id"]),
        hour_date=_from_ts(row["hour_date"]),
        steps=int(row["steps"]),
        distance_km=float(row["distance_km"]),
        created_at=_from_ts(row["created_at"]),
    )


class SQLiteRecords(Records):
    """Records bound to one SQLite connection inside an open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ── Equipment ──

    async def insert_equipment(self, equipment: Equipment) -> None:
        self._conn.execute(
            """
            INSERT INTO equipment (
                equipment_id,
                brand,
                model,
                notes,
                archived,
                is_default,
                inactivity_timeout_seconds,
                estimated_lifespan_km,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(equipment.equipment_id),
                equipment.brand,
                equipment.model,
                equipment.notes,
                int(equipment.archived),
                int(equipment.is_default),
                equipment.inactivity_timeout_seconds,
                equipment.estimated_lifespan_km,
                _ts(equipment.created_at),
            ),
        )

    async def update_equipment(self, equipment: Equipment) -> None:
        self._conn.execute(
            """
            UPDATE equipment SET
                brand = ?,
                model = ?,
                notes = ?,
                archived = ?,
                is_default = ?,
                inactivity_timeout_seconds = ?,
                estimated_lifespan_km = ?
            WHERE equipment_id = ?
            """,
            (
                equipment.brand,
                equipment.model,
                equipment.notes,
                int(equipment.archived),
                int(equipment.is_default),
                equipment.inactivity_timeout_seconds,
                equipment.estimated_lifespan_km,
                str(equipment.equipment_id),
            ),
        )

    async def delete_equipment(self, equipment_id: UUID) -> None:
        self._conn.execute(
            "DELETE FROM equipment WHERE equipment_id = ?", (str(equipment_id),)
        )

    async def get_equipment(self, equipment_id: UUID) -> Equipment | None:
        row = self._conn.execute(
            "SELECT * FROM equipment WHERE equipment_id = ?", (str(equipment_id),)
        ).fetchone()
        return _equipment_from_row(row) if row else None

    async def list_equipment(self, include_archived: bool = True) -> list[Equipment]:
        query = "SELECT * FROM equipment"
        if not include_archived:
            query += " WHERE archived = 0"
        rows = self._conn.execute(query + " ORDER BY created_at").fetchall()
        return [_equipment_from_row(r) for r in rows]

    async def get_default_equipment(self) -> Equipment | None:
        row = self._conn.execute(
            "SELECT * FROM equipment WHERE is_default = 1 AND archived = 0"
        ).fetchone()
        return _equipment_from_row(row) if row else None

    async def clear_default_equipment(self) -> list[UUID]:
        rows = self._conn.execute(
            "SELECT equipment_id FROM equipment WHERE is_default = 1"
        ).fetchall()
        self._conn.execute("UPDATE equipment SET is_default = 0 WHERE is_default = 1")
        return [UUID(r["equipment_id"]) for r in rows]

    # ── Sessions ──

    async def insert_session(self, session: WearSession) -> None:
        self._conn.execute(
            """
            INSERT INTO wear_sessions (
                session_id,
                equipment_id,
                start_at,
                end_at,
                auto_started,
                auto_closed,
                steps,
                distance_km
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(session.session_id),
                str(session.equipment_id),
                _ts(session.start),
                _ts(session.end) if session.end is not None else None,
                int(session.auto_started),
                int(session.auto_closed),
                session.steps,
                session.distance_km,
            ),
        )

    async def update_session(self, session: WearSession) -> None:
        self._conn.execute(
            """
            UPDATE wear_sessions SET
                end_at = ?,
                auto_closed = ?,
                steps = ?,
                distance_km = ?
            WHERE session_id = ?
            """,
            (
                _ts(session.end) if session.end is not None else None,
                int(session.auto_closed),
                session.steps,
                session.distance_km,
                str(session.session_id),
            ),
        )

    async def delete_sessions(self, session_ids: Iterable[UUID]) -> int:
        ids = [(str(i),) for i in session_ids]
        if not ids:
            return 0
        self._conn.executemany("DELETE FROM wear_sessions WHERE session_id = ?", ids)
        return len(ids)

    async def list_open_sessions(self) -> list[WearSession]:
        rows = self._conn.execute(
            "SELECT * FROM wear_sessions WHERE end_at IS NULL ORDER BY start_at"
        ).fetchall()
        return [_session_from_row(r) for r in rows]

    async def list_sessions_overlapping(self, window: Interval) -> list[WearSession]:
        conditions = ["(end_at IS NULL OR end_at > ?)"]
        params: list[str] = [_ts(window.start)]
        if window.end is not None:
            conditions.append("start_at < ?")
            params.append(_ts(window.end))
        rows = self._conn.execute(
            f"SELECT * FROM wear_sessions WHERE {' AND '.join(conditions)} ORDER BY start_at",
            params,
        ).fetchall()
        return [_session_from_row(r) for r in rows]

    async def list_sessions(self, equipment_id: UUID | None = None) -> list[WearSession]:
        if equipment_id is None:
            rows = self._conn.execute(
                "SELECT * FROM wear_sessions ORDER BY start_at"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM wear_sessions WHERE equipment_id = ? ORDER BY start_at",
                (str(equipment_id),),
            ).fetchall()
        return [_session_from_row(r) for r in rows]

    # ── Attributions ──

    async def insert_attribution(self, attribution: HourAttribution) -> None:
        self._conn.execute(
            """
            INSERT INTO hour_attributions (
                attribution_id,
                equipment_id,
                hour_date,
                steps,
                distance_km,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(attribution.attribution_id),
                str(attribution.equipment_id),
                _ts(attribution.hour_date),
                attribution.steps,
                attribution.distance_km,
                _ts(attribution.created_at),
            ),
        )

    async def delete_attributions(self, attribution_ids: Iterable[UUID]) -> int:
        ids = [(str(i),) for i in attribution_ids]
        if not ids:
            return 0
        self._conn.executemany(
            "DELETE FROM hour_attributions WHERE attribution_id = ?", ids
        )
        return len(ids)

    async def get_attribution(self, hour_date: datetime) -> HourAttribution | None:
        row = self._conn.execute(
            "SELECT * FROM hour_attributions WHERE hour_date = ?", (_ts(hour_date),)
        ).fetchone()
        return _attribution_from_row(row) if row else None

    async def list_attributions_overlapping(self, window: Interval) -> list[HourAttribution]:
        # an attribution [h, h+1h) overlaps the window iff h > start - 1h and h < end
        conditions = ["hour_date > ?"]
        params: list[str] = [_ts(window.start - ONE_HOUR)]
        if window.end is not None:
            conditions.append("hour_date < ?")
            params.append(_ts(window.end))
        rows = self._conn.execute(
            f"SELECT * FROM hour_attributions WHERE {' AND '.join(conditions)} ORDER BY hour_date",
            params,
        ).fetchall()
        return [_attribution_from_row(r) for r in rows]

    async def list_attributions(self, equipment_id: UUID | None = None) -> list[HourAttribution]:
        if equipment_id is None:
            rows = self._conn.execute(
                "SELECT * FROM hour_attributions ORDER BY hour_date"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM hour_attributions WHERE equipment_id = ? ORDER BY hour_date",
                (str(equipment_id),),
            ).fetchall()
        return [_attribution_from_row(r) for r in rows]


class SQLiteStore(Store):
    """Single-connection SQLite store.

    Usage::

        store = SQLiteStore("wearlog.sqlite3")
        await store.open()
        async with store.transaction() as records:
            await records.insert_equipment(equipment)
    """

    def __init__(self, db_path: str | pathlib.Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            parent = pathlib.Path(self._db_path).parent
            parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self._db_path, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not open SQLite store at {self._db_path}", exc) from exc
        self._conn = conn
        logger.info("SQLite store opened at %s", self._db_path)

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("SQLite store closed")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceFailure("SQLite store is not open; call open() first")
        return self._conn

    @asynccontextmanager
    async def _unit_of_work(self, begin: str) -> AsyncGenerator[Records, None]:
        async with self._lock:
            conn = self._connection()
            try:
                conn.execute(begin)
            except sqlite3.Error as exc:
                raise PersistenceFailure("Could not begin SQLite transaction", exc) from exc
            try:
                yield SQLiteRecords(conn)
            except sqlite3.Error as exc:
                conn.execute("ROLLBACK")
                raise PersistenceFailure(f"SQLite operation failed: {exc}", exc) from exc
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                conn.execute("ROLLBACK")
                raise PersistenceFailure(f"SQLite commit failed: {exc}", exc) from exc

    def transaction(self) -> AbstractAsyncContextManager[Records]:
        return self._unit_of_work("BEGIN IMMEDIATE")

    def snapshot(self) -> AbstractAsyncContextManager[Records]:
        return self._unit_of_work("BEGIN")

    async def ping(self) -> bool:
        async with self._lock:
            return self._connection().execute("SELECT 1").fetchone()[0] == 1
