"""SQLite registry store adapter.

Implements OccupancyStorePort and HaulerStorePort using SQLite with
aiosqlite for async access. Each unit of work opens its transaction
with BEGIN IMMEDIATE, which takes the database write lock up front, so
guarded check-then-write sequences never interleave.
"""

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from harbormaster.core.models import Dock, Hauler, Ship, StoreError
from harbormaster.core.ports import HaulerStorePort, OccupancySession, OccupancyStorePort

logger = logging.getLogger(__name__)

_DRIVER_ERRORS = (sqlite3.Error, OSError, OverflowError)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS docks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        location TEXT NOT NULL,
        capacity INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS haulers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        capacity INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ships (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        dock_id INTEGER NULL REFERENCES docks(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_ships_dock_id ON ships(dock_id)",
)


def _row_to_dock(row: tuple[Any, ...]) -> Dock:
    dock_id, location, capacity = row
    return Dock(id=dock_id, location=location, capacity=capacity)


def _row_to_ship(row: tuple[Any, ...]) -> Ship:
    ship_id, name, ship_type, dock_id = row
    return Ship(id=ship_id, name=name, type=ship_type, dock_id=dock_id)


def _row_to_hauler(row: tuple[Any, ...]) -> Hauler:
    hauler_id, name, capacity = row
    return Hauler(id=hauler_id, name=name, capacity=capacity)


class SQLiteOccupancySession(OccupancySession):
    """Session bound to one connection holding the database write lock.

    ``for_update`` is accepted for interface parity; BEGIN IMMEDIATE
    already locks every dock for the duration of the unit of work.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def _fetchone(self, sql: str, params: tuple[Any, ...]) -> Any:
        cursor = await self._conn.execute(sql, params)
        return await cursor.fetchone()

    async def get_dock(self, dock_id: int, for_update: bool = False) -> Dock | None:
        row = await self._fetchone(
            "SELECT id, location, capacity FROM docks WHERE id = ?", (dock_id,)
        )
        return _row_to_dock(row) if row is not None else None

    async def get_dock_capacity(
        self, dock_id: int, for_update: bool = False
    ) -> int | None:
        row = await self._fetchone(
            "SELECT capacity FROM docks WHERE id = ?", (dock_id,)
        )
        return row[0] if row is not None else None

    async def count_ships_at_dock(
        self, dock_id: int, exclude_ship_id: int | None = None
    ) -> int:
        if exclude_ship_id is None:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM ships WHERE dock_id = ?", (dock_id,)
            )
        else:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM ships WHERE dock_id = ? AND id != ?",
                (dock_id, exclude_ship_id),
            )
        return row[0] if row is not None else 0

    async def list_docks(self) -> list[Dock]:
        cursor = await self._conn.execute(
            "SELECT id, location, capacity FROM docks ORDER BY id"
        )
        return [_row_to_dock(row) for row in await cursor.fetchall()]

    async def insert_dock(self, location: str, capacity: int) -> Dock:
        cursor = await self._conn.execute(
            "INSERT INTO docks (location, capacity) VALUES (?, ?)",
            (location, capacity),
        )
        return Dock(id=cursor.lastrowid, location=location, capacity=capacity)

    async def update_dock(self, dock: Dock) -> Dock | None:
        cursor = await self._conn.execute(
            """
            UPDATE docks
            SET location = ?,
                capacity = ?
            WHERE id = ?
            """,
            (dock.location, dock.capacity, dock.id),
        )
        if cursor.rowcount == 0:
            return None
        return await self.get_dock(dock.id)

    async def delete_dock(self, dock_id: int) -> bool:
        cursor = await self._conn.execute("DELETE FROM docks WHERE id = ?", (dock_id,))
        return cursor.rowcount > 0

    async def get_ship(self, ship_id: int) -> Ship | None:
        row = await self._fetchone(
            "SELECT id, name, type, dock_id FROM ships WHERE id = ?", (ship_id,)
        )
        return _row_to_ship(row) if row is not None else None

    async def list_ships(self) -> list[Ship]:
        cursor = await self._conn.execute(
            "SELECT id, name, type, dock_id FROM ships ORDER BY id"
        )
        return [_row_to_ship(row) for row in await cursor.fetchall()]

    async def insert_ship(
        self, name: str, ship_type: str, dock_id: int | None
    ) -> Ship:
        cursor = await self._conn.execute(
            "INSERT INTO ships (name, type, dock_id) VALUES (?, ?, ?)",
            (name, ship_type, dock_id),
        )
        return Ship(id=cursor.lastrowid, name=name, type=ship_type, dock_id=dock_id)

    async def update_ship(self, ship: Ship) -> Ship | None:
        cursor = await self._conn.execute(
            """
            UPDATE ships
            SET name = ?,
                type = ?,
                dock_id = ?
            WHERE id = ?
            """,
            (ship.name, ship.type, ship.dock_id, ship.id),
        )
        if cursor.rowcount == 0:
            return None
        return await self.get_ship(ship.id)

    async def delete_ship(self, ship_id: int) -> bool:
        cursor = await self._conn.execute("DELETE FROM ships WHERE id = ?", (ship_id,))
        return cursor.rowcount > 0


class SQLiteRegistryStore(OccupancyStorePort, HaulerStorePort):
    """SQLite-backed registry store with connection pooling and async access."""

    def __init__(self, db_path: str, pool_size: int = 5, busy_timeout: float = 5.0):
        """Initialize SQLite store with connection pooling.

        Args:
            db_path: Path to SQLite database file.
            pool_size: Number of connections to maintain in the pool.
            busy_timeout: Seconds a writer waits for the database lock.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout = busy_timeout
        self._pool: list[aiosqlite.Connection] = []
        self._pool_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()
        self._pool_size = pool_size
        self._schema_initialized = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._pool:
                return self._pool.pop()

        # Autocommit mode: transactions are opened explicitly with BEGIN
        conn = await aiosqlite.connect(
            str(self.db_path), timeout=self.busy_timeout, isolation_level=None
        )
        await conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def _return_connection(self, conn: aiosqlite.Connection) -> None:
        """Return a connection to the pool."""
        async with self._pool_lock:
            if len(self._pool) < self._pool_size:
                self._pool.append(conn)
                return
        await conn.close()

    async def _discard_connection(self, conn: aiosqlite.Connection) -> None:
        """Close a connection left in an unknown transaction state."""
        try:
            await conn.close()
        except _DRIVER_ERRORS as e:
            logger.warning(f"Failed to close discarded SQLite connection: {e}")

    async def close(self) -> None:
        """Close all pooled connections."""
        async with self._pool_lock:
            for conn in self._pool:
                await conn.close()
            self._pool.clear()

    async def initialize(self) -> None:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        """
        if self._schema_initialized:
            return

        async with self._schema_lock:
            if self._schema_initialized:
                return

            try:
                conn = await self._get_connection()
                try:
                    for statement in SCHEMA_STATEMENTS:
                        await conn.execute(statement)
                finally:
                    await self._return_connection(conn)
            except _DRIVER_ERRORS as e:
                raise StoreError(f"Failed to initialize SQLite store: {e}") from e

            self._schema_initialized = True
            logger.info(f"SQLite store ready: {self.db_path}")

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[OccupancySession]:
        """Hold the database write lock for the duration of the body.

        Commits when the body completes and rolls back when it raises.
        """
        await self.initialize()

        try:
            conn = await self._get_connection()
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e

        # Only a connection whose transaction ended cleanly goes back to the pool
        settled = False
        try:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield SQLiteOccupancySession(conn)
            except BaseException:
                await conn.rollback()
                settled = True
                raise
            await conn.commit()
            settled = True
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e
        finally:
            if settled:
                await self._return_connection(conn)
            else:
                await self._discard_connection(conn)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a pooled connection for autocommitted statements."""
        await self.initialize()

        try:
            conn = await self._get_connection()
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e

        try:
            yield conn
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e
        finally:
            await self._return_connection(conn)

    async def list_haulers(self) -> list[Hauler]:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT id, name, capacity FROM haulers ORDER BY id"
            )
            return [_row_to_hauler(row) for row in await cursor.fetchall()]

    async def get_hauler(self, hauler_id: int) -> Hauler | None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT id, name, capacity FROM haulers WHERE id = ?", (hauler_id,)
            )
            row = await cursor.fetchone()
            return _row_to_hauler(row) if row is not None else None

    async def insert_hauler(self, name: str, capacity: int) -> Hauler:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "INSERT INTO haulers (name, capacity) VALUES (?, ?)",
                (name, capacity),
            )
            return Hauler(id=cursor.lastrowid, name=name, capacity=capacity)

    async def update_hauler(self, hauler: Hauler) -> Hauler | None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                UPDATE haulers
                SET name = ?,
                    capacity = ?
                WHERE id = ?
                """,
                (hauler.name, hauler.capacity, hauler.id),
            )
            if cursor.rowcount == 0:
                return None
            return hauler

    async def delete_hauler(self, hauler_id: int) -> bool:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "DELETE FROM haulers WHERE id = ?", (hauler_id,)
            )
            return cursor.rowcount > 0
