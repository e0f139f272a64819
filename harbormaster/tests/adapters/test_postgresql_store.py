"""Tests for the PostgreSQL registry store adapter.

NOTE: The integration tests require a PostgreSQL instance. They run only
when HARBORMASTER_TEST_DATABASE_URL points at a disposable database, and
are skipped otherwise.
"""

import asyncio
import os
import urllib.parse
from unittest.mock import AsyncMock, patch

import pytest

from harbormaster.adapters.store.postgresql import (
    PostgreSQLRegistryStore,
    _is_valid_identifier,
)
from harbormaster.core.models import RejectionKind, StoreError
from harbormaster.core.registry_service import RegistryService

TEST_DATABASE_URL = os.environ.get("HARBORMASTER_TEST_DATABASE_URL", "")

requires_postgres = pytest.mark.skipif(
    not TEST_DATABASE_URL,
    reason="HARBORMASTER_TEST_DATABASE_URL not set",
)


@pytest.fixture
def postgres_config():
    """PostgreSQL connection configuration."""
    return {
        "host": "localhost",
        "port": 5432,
        "database": "harbormaster_test",
        "user": "harbormaster_test",
        "password": "harbormaster_test",
        "pool_size": 5,
    }


class TestPostgreSQLStoreInitialization:
    """Tests for PostgreSQL store initialization."""

    def test_store_initialization(self, postgres_config):
        store = PostgreSQLRegistryStore(**postgres_config)

        assert store.host == postgres_config["host"]
        assert store.port == postgres_config["port"]
        assert store.database == postgres_config["database"]
        assert store.user == postgres_config["user"]
        assert store.password == postgres_config["password"]
        assert store.create_database is False

    @pytest.mark.parametrize(
        "identifier,expected",
        [
            ("harbormaster", True),
            ("harbor_master_2", True),
            ("", False),
            ('harbor"; DROP DATABASE x; --', False),
            ("harbor-master", False),
        ],
    )
    def test_identifier_validation(self, identifier: str, expected: bool) -> None:
        assert _is_valid_identifier(identifier) is expected

    @pytest.mark.asyncio
    async def test_invalid_database_name_rejected_before_connecting(self):
        store = PostgreSQLRegistryStore(database="bad-name", create_database=True)

        with patch("asyncpg.connect", new=AsyncMock()) as connect:
            with pytest.raises(StoreError, match="Invalid database name"):
                await store.initialize()

        connect.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_server_raises_store_error(self):
        store = PostgreSQLRegistryStore()

        with patch(
            "asyncpg.create_pool",
            new=AsyncMock(side_effect=OSError("Connection refused")),
        ):
            with pytest.raises(StoreError, match="Connection refused"):
                await store.initialize()

    @pytest.mark.asyncio
    async def test_close_without_pool(self):
        store = PostgreSQLRegistryStore()
        await store.close()


@pytest.fixture
async def live_store():
    """Store against the configured test database, with empty tables."""
    parsed = urllib.parse.urlparse(TEST_DATABASE_URL)
    store = PostgreSQLRegistryStore(
        host=parsed.hostname or "localhost",
        port=parsed.port or 5432,
        database=parsed.path.lstrip("/") or "harbormaster_test",
        user=parsed.username or "harbormaster_test",
        password=parsed.password or "",
        pool_size=10,
    )
    await store.initialize()
    async with store._connection() as conn:
        await conn.execute("TRUNCATE ships, docks, haulers RESTART IDENTITY")
    yield store
    await store.close()


@requires_postgres
@pytest.mark.asyncio
class TestPostgreSQLIntegration:
    async def test_dock_and_ship_round_trip(self, live_store):
        async with live_store.unit_of_work() as session:
            dock = await session.insert_dock("North Harbor", 5)
            ship = await session.insert_ship("Serenity", "Firefly-class", dock.id)

        async with live_store.unit_of_work() as session:
            assert await session.get_dock(dock.id) == dock
            assert await session.get_ship(ship.id) == ship
            assert await session.count_ships_at_dock(dock.id) == 1
            assert await session.exists_dock(dock.id) is True

    async def test_rollback_on_exception(self, live_store):
        with pytest.raises(RuntimeError):
            async with live_store.unit_of_work() as session:
                await session.insert_dock("Doomed Harbor", 1)
                raise RuntimeError("abort")

        async with live_store.unit_of_work() as session:
            assert await session.list_docks() == []

    async def test_concurrent_creates_admit_one(self, live_store):
        service = RegistryService(store=live_store)
        dock = (await service.create_dock("Tiny Cove", 1)).value

        outcomes = await asyncio.gather(
            *(service.create_ship(f"Ship {i}", "Skiff", dock.id) for i in range(8))
        )

        assert sum(1 for outcome in outcomes if outcome.ok) == 1
        assert all(
            outcome.rejection.kind == RejectionKind.CAPACITY_VIOLATION
            for outcome in outcomes
            if not outcome.ok
        )

    async def test_hauler_crud(self, live_store):
        hauler = await live_store.insert_hauler("Sea Logistics", 8)

        assert await live_store.get_hauler(hauler.id) == hauler
        assert await live_store.delete_hauler(hauler.id) is True
        assert await live_store.get_hauler(hauler.id) is None
