"""PostgreSQL registry store adapter.

Implements OccupancyStorePort and HaulerStorePort using PostgreSQL with
asyncpg for async access. Guarded operations run in one transaction per
unit of work, and dock rows are locked with SELECT ... FOR UPDATE so
concurrent admissions to the same dock serialize.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from harbormaster.core.models import Dock, Hauler, Ship, StoreError
from harbormaster.core.ports import HaulerStorePort, OccupancySession, OccupancyStorePort

logger = logging.getLogger(__name__)

# Driver and transport failures that surface as StoreError
_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS docks (
        id SERIAL PRIMARY KEY,
        location TEXT NOT NULL,
        capacity INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS haulers (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        capacity INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ships (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        dock_id INTEGER NULL REFERENCES docks(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_ships_dock_id ON ships(dock_id)",
)


def _is_valid_identifier(identifier: str) -> bool:
    """Validate a database name before it is interpolated into DDL.

    Args:
        identifier: The identifier to validate.

    Returns:
        True if identifier is safe for CREATE DATABASE.
    """
    if not isinstance(identifier, str):
        return False
    return bool(identifier) and all(c.isalnum() or c == "_" for c in identifier)


def _row_to_dock(row: asyncpg.Record) -> Dock:
    return Dock(id=row["id"], location=row["location"], capacity=row["capacity"])


def _row_to_ship(row: asyncpg.Record) -> Ship:
    return Ship(
        id=row["id"], name=row["name"], type=row["type"], dock_id=row["dock_id"]
    )


def _row_to_hauler(row: asyncpg.Record) -> Hauler:
    return Hauler(id=row["id"], name=row["name"], capacity=row["capacity"])


class PostgreSQLOccupancySession(OccupancySession):
    """Session bound to one pooled connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def get_dock(self, dock_id: int, for_update: bool = False) -> Dock | None:
        sql = "SELECT id, location, capacity FROM docks WHERE id = $1"
        if for_update:
            sql += " FOR UPDATE"
        row = await self._conn.fetchrow(sql, dock_id)
        return _row_to_dock(row) if row is not None else None

    async def get_dock_capacity(
        self, dock_id: int, for_update: bool = False
    ) -> int | None:
        sql = "SELECT capacity FROM docks WHERE id = $1"
        if for_update:
            sql += " FOR UPDATE"
        return await self._conn.fetchval(sql, dock_id)

    async def count_ships_at_dock(
        self, dock_id: int, exclude_ship_id: int | None = None
    ) -> int:
        if exclude_ship_id is None:
            count = await self._conn.fetchval(
                "SELECT COUNT(*) FROM ships WHERE dock_id = $1", dock_id
            )
        else:
            count = await self._conn.fetchval(
                "SELECT COUNT(*) FROM ships WHERE dock_id = $1 AND id <> $2",
                dock_id,
                exclude_ship_id,
            )
        return int(count or 0)

    async def exists_dock(self, dock_id: int) -> bool:
        return bool(
            await self._conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM docks WHERE id = $1)", dock_id
            )
        )

    async def list_docks(self) -> list[Dock]:
        rows = await self._conn.fetch(
            "SELECT id, location, capacity FROM docks ORDER BY id"
        )
        return [_row_to_dock(row) for row in rows]

    async def insert_dock(self, location: str, capacity: int) -> Dock:
        row = await self._conn.fetchrow(
            """
            INSERT INTO docks (location, capacity)
            VALUES ($1, $2)
            RETURNING id, location, capacity
            """,
            location,
            capacity,
        )
        return _row_to_dock(row)

    async def update_dock(self, dock: Dock) -> Dock | None:
        row = await self._conn.fetchrow(
            """
            UPDATE docks
            SET location = $2,
                capacity = $3
            WHERE id = $1
            RETURNING id, location, capacity
            """,
            dock.id,
            dock.location,
            dock.capacity,
        )
        return _row_to_dock(row) if row is not None else None

    async def delete_dock(self, dock_id: int) -> bool:
        row = await self._conn.fetchrow(
            "DELETE FROM docks WHERE id = $1 RETURNING id", dock_id
        )
        return row is not None

    async def get_ship(self, ship_id: int) -> Ship | None:
        row = await self._conn.fetchrow(
            "SELECT id, name, type, dock_id FROM ships WHERE id = $1", ship_id
        )
        return _row_to_ship(row) if row is not None else None

    async def list_ships(self) -> list[Ship]:
        rows = await self._conn.fetch(
            "SELECT id, name, type, dock_id FROM ships ORDER BY id"
        )
        return [_row_to_ship(row) for row in rows]

    async def insert_ship(
        self, name: str, ship_type: str, dock_id: int | None
    ) -> Ship:
        row = await self._conn.fetchrow(
            """
            INSERT INTO ships (name, type, dock_id)
            VALUES ($1, $2, $3)
            RETURNING id, name, type, dock_id
            """,
            name,
            ship_type,
            dock_id,
        )
        return _row_to_ship(row)

    async def update_ship(self, ship: Ship) -> Ship | None:
        row = await self._conn.fetchrow(
            """
            UPDATE ships
            SET name = $2,
                type = $3,
                dock_id = $4
            WHERE id = $1
            RETURNING id, name, type, dock_id
            """,
            ship.id,
            ship.name,
            ship.type,
            ship.dock_id,
        )
        return _row_to_ship(row) if row is not None else None

    async def delete_ship(self, ship_id: int) -> bool:
        row = await self._conn.fetchrow(
            "DELETE FROM ships WHERE id = $1 RETURNING id", ship_id
        )
        return row is not None


class PostgreSQLRegistryStore(OccupancyStorePort, HaulerStorePort):
    """PostgreSQL-backed registry store with connection pooling and async access."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "harbormaster",
        user: str = "harbormaster",
        password: str = "",
        pool_size: int = 10,
        create_database: bool = False,
    ):
        """Initialize PostgreSQL store with connection pooling.

        Args:
            host: PostgreSQL server hostname.
            port: PostgreSQL server port.
            database: Database name.
            user: Database user.
            password: Database password.
            pool_size: Number of connections to maintain in the pool.
            create_database: Create ``database`` on first use if it does not
                exist, by connecting to the ``postgres`` maintenance database.
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.create_database = create_database
        self._pool: asyncpg.Pool | None = None
        self._pool_size = pool_size
        self._schema_lock = asyncio.Lock()
        self._schema_initialized = False

    async def _ensure_database(self) -> None:
        """Create the target database when it is missing."""
        if not _is_valid_identifier(self.database):
            raise StoreError(f"Invalid database name: {self.database!r}")

        conn = await asyncpg.connect(
            host=self.host,
            port=self.port,
            database="postgres",
            user=self.user,
            password=self.password,
        )
        try:
            exists = await conn.fetchval(
                "SELECT 1 FROM pg_database WHERE datname = $1", self.database
            )
            if exists is None:
                await conn.execute(f'CREATE DATABASE "{self.database}"')
                logger.info(f"Created database {self.database}")
        finally:
            await conn.close()

    async def _init_pool(self) -> None:
        """Initialize the connection pool on first use."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=1,
            max_size=self._pool_size,
        )

    async def initialize(self) -> None:
        """Create the pool and the schema.

        Only runs once per instance. Subsequent calls are no-ops.
        Uses dedicated _schema_lock to avoid contention with pool operations.

        Raises:
            StoreError: If the server is unreachable or DDL fails.
        """
        # Check first without lock to avoid unnecessary locking
        if self._schema_initialized:
            return

        async with self._schema_lock:
            if self._schema_initialized:
                return

            try:
                if self.create_database:
                    await self._ensure_database()
                await self._init_pool()
                assert self._pool is not None

                async with self._pool.acquire() as conn:
                    for statement in SCHEMA_STATEMENTS:
                        await conn.execute(statement)
            except _DRIVER_ERRORS as e:
                raise StoreError(f"Failed to initialize PostgreSQL store: {e}") from e

            self._schema_initialized = True
            logger.info(
                f"PostgreSQL store ready: {self.host}:{self.port}/{self.database}"
            )

    async def close(self) -> None:
        """Close all pooled connections."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._schema_initialized = False

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[OccupancySession]:
        """Acquire a connection and open a transaction around the body.

        The transaction commits when the body completes and rolls back
        when it raises.
        """
        await self.initialize()
        assert self._pool is not None

        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    yield PostgreSQLOccupancySession(conn)
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection for a single autocommitted statement."""
        await self.initialize()
        assert self._pool is not None

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except _DRIVER_ERRORS as e:
            raise StoreError(str(e)) from e

    async def list_haulers(self) -> list[Hauler]:
        async with self._connection() as conn:
            rows = await conn.fetch("SELECT id, name, capacity FROM haulers ORDER BY id")
            return [_row_to_hauler(row) for row in rows]

    async def get_hauler(self, hauler_id: int) -> Hauler | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, capacity FROM haulers WHERE id = $1", hauler_id
            )
            return _row_to_hauler(row) if row is not None else None

    async def insert_hauler(self, name: str, capacity: int) -> Hauler:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO haulers (name, capacity)
                VALUES ($1, $2)
                RETURNING id, name, capacity
                """,
                name,
                capacity,
            )
            return _row_to_hauler(row)

    async def update_hauler(self, hauler: Hauler) -> Hauler | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE haulers
                SET name = $2,
                    capacity = $3
                WHERE id = $1
                RETURNING id, name, capacity
                """,
                hauler.id,
                hauler.name,
                hauler.capacity,
            )
            return _row_to_hauler(row) if row is not None else None

    async def delete_hauler(self, hauler_id: int) -> bool:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "DELETE FROM haulers WHERE id = $1 RETURNING id", hauler_id
            )
            return row is not None
