"""Integration tests for the SQLite registry store."""

import asyncio
import sqlite3
from pathlib import Path

import aiosqlite
import pytest

from harbormaster.adapters.store.sqlite import SQLiteRegistryStore
from harbormaster.core.models import Dock, Hauler, RejectionKind, Ship, StoreError
from harbormaster.core.registry_service import RegistryService


@pytest.fixture
async def store(tmp_path: Path):
    """Create a SQLite store backed by a temporary file."""
    store = SQLiteRegistryStore(str(tmp_path / "registry.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.mark.asyncio
class TestSchema:
    async def test_initialize_is_idempotent(self, store: SQLiteRegistryStore) -> None:
        await store.initialize()
        await store.initialize()

        async with store.unit_of_work() as session:
            assert await session.list_docks() == []

    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        store = SQLiteRegistryStore(str(tmp_path / "nested" / "dir" / "registry.db"))
        try:
            await store.initialize()
            assert (tmp_path / "nested" / "dir" / "registry.db").exists()
        finally:
            await store.close()


@pytest.mark.asyncio
class TestOccupancySession:
    async def test_dock_round_trip(self, store: SQLiteRegistryStore) -> None:
        async with store.unit_of_work() as session:
            dock = await session.insert_dock("North Harbor", 5)

        async with store.unit_of_work() as session:
            assert await session.get_dock(dock.id) == dock
            assert await session.get_dock_capacity(dock.id) == 5
            assert await session.exists_dock(dock.id) is True
            assert await session.exists_dock(dock.id + 1) is False

    async def test_update_and_delete_missing_rows(
        self, store: SQLiteRegistryStore
    ) -> None:
        async with store.unit_of_work() as session:
            assert await session.update_dock(Dock(id=9, location="X", capacity=1)) is None
            assert await session.delete_dock(9) is False
            assert await session.update_ship(Ship(id=9, name="X", type="Y")) is None
            assert await session.delete_ship(9) is False

    async def test_count_ships_excluding_one(self, store: SQLiteRegistryStore) -> None:
        async with store.unit_of_work() as session:
            dock = await session.insert_dock("South Harbor", 3)
            first = await session.insert_ship("Rocinante", "Frigate", dock.id)
            await session.insert_ship("Nautilus", "Submarine", dock.id)
            await session.insert_ship("Argo", "Galley", None)

            assert await session.count_ships_at_dock(dock.id) == 2
            assert (
                await session.count_ships_at_dock(dock.id, exclude_ship_id=first.id)
                == 1
            )

    async def test_update_ship_moves_berth(self, store: SQLiteRegistryStore) -> None:
        async with store.unit_of_work() as session:
            north = await session.insert_dock("North Harbor", 2)
            south = await session.insert_dock("South Harbor", 2)
            ship = await session.insert_ship("Bebop", "Trawler", north.id)

            moved = await session.update_ship(
                Ship(id=ship.id, name="Bebop", type="Trawler", dock_id=south.id)
            )

            assert moved == Ship(id=ship.id, name="Bebop", type="Trawler", dock_id=south.id)
            assert await session.count_ships_at_dock(north.id) == 0

    async def test_rollback_on_exception(self, store: SQLiteRegistryStore) -> None:
        with pytest.raises(RuntimeError):
            async with store.unit_of_work() as session:
                await session.insert_dock("Doomed Harbor", 1)
                raise RuntimeError("abort")

        async with store.unit_of_work() as session:
            assert await session.list_docks() == []

    async def test_foreign_key_violation_wrapped(
        self, store: SQLiteRegistryStore
    ) -> None:
        with pytest.raises(StoreError):
            async with store.unit_of_work() as session:
                await session.insert_ship("Ghost", "Ghost ship", 404)

    async def test_unbindable_integer_wrapped(self, store: SQLiteRegistryStore) -> None:
        with pytest.raises(StoreError):
            async with store.unit_of_work() as session:
                await session.get_dock(10**20)

        async with store.unit_of_work() as session:
            assert await session.list_docks() == []

    async def test_failed_commit_discards_connection(
        self, store: SQLiteRegistryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original_commit = aiosqlite.Connection.commit
        failed: list[aiosqlite.Connection] = []

        async def commit_failing_once(conn: aiosqlite.Connection) -> None:
            if not failed:
                failed.append(conn)
                raise sqlite3.OperationalError("disk I/O error")
            await original_commit(conn)

        monkeypatch.setattr(aiosqlite.Connection, "commit", commit_failing_once)

        with pytest.raises(StoreError, match="disk I/O error"):
            async with store.unit_of_work() as session:
                await session.insert_dock("Doomed Harbor", 1)

        assert failed[0] not in store._pool
        async with store.unit_of_work() as session:
            assert await session.list_docks() == []
            await session.insert_dock("North Harbor", 5)
        async with store.unit_of_work() as session:
            assert [dock.location for dock in await session.list_docks()] == [
                "North Harbor"
            ]

    async def test_failed_rollback_discards_connection(
        self, store: SQLiteRegistryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        failed: list[aiosqlite.Connection] = []

        async def failing_rollback(conn: aiosqlite.Connection) -> None:
            failed.append(conn)
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(aiosqlite.Connection, "rollback", failing_rollback)

        with pytest.raises(StoreError, match="disk I/O error"):
            async with store.unit_of_work() as session:
                await session.insert_dock("Doomed Harbor", 1)
                raise RuntimeError("abort")

        assert failed and failed[0] not in store._pool
        monkeypatch.undo()
        async with store.unit_of_work() as session:
            assert await session.list_docks() == []


@pytest.mark.asyncio
class TestHaulers:
    async def test_hauler_crud(self, store: SQLiteRegistryStore) -> None:
        hauler = await store.insert_hauler("Sea Logistics", 8)

        assert await store.get_hauler(hauler.id) == hauler
        assert await store.list_haulers() == [hauler]

        updated = await store.update_hauler(
            Hauler(id=hauler.id, name="Sea Logistics Ltd", capacity=9)
        )
        assert updated == Hauler(id=hauler.id, name="Sea Logistics Ltd", capacity=9)

        assert await store.delete_hauler(hauler.id) is True
        assert await store.get_hauler(hauler.id) is None

    async def test_missing_hauler(self, store: SQLiteRegistryStore) -> None:
        assert await store.update_hauler(Hauler(id=5, name="X", capacity=1)) is None
        assert await store.delete_hauler(5) is False


@pytest.mark.asyncio
class TestGuardedOperations:
    """RegistryService running against real SQLite transactions."""

    async def test_concurrent_creates_admit_one(self, store: SQLiteRegistryStore) -> None:
        service = RegistryService(store=store)
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
        async with store.unit_of_work() as session:
            assert await session.count_ships_at_dock(dock.id) == 1

    async def test_occupied_dock_survives_delete(
        self, store: SQLiteRegistryStore
    ) -> None:
        service = RegistryService(store=store)
        dock = (await service.create_dock("North Harbor", 2)).value
        await service.create_ship("Serenity", "Firefly-class", dock.id)

        outcome = await service.delete_dock(dock.id)

        assert outcome.rejection is not None
        assert outcome.rejection.kind == RejectionKind.OCCUPIED
        assert (await service.get_dock(dock.id)).ok
