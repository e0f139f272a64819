"""Port interfaces for the HarborMaster registry.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - OccupancyStorePort: Transactional dock/ship persistence and
     occupancy queries
   - HaulerStorePort: Plain hauler persistence

2. **Driving Ports** (adapters/external systems call into core)
   - RegistryPort: Guarded dock and ship operations
   - HaulerPort: Hauler CRUD
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from .models import Dock, Hauler, Outcome, Ship


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class OccupancySession(ABC):
    """Dock and ship operations bound to a single unit of work.

    A session owns one connection and one open transaction. Everything
    read through it is consistent with what is written through it, and
    a dock locked with ``for_update=True`` stays locked until the
    unit of work ends.

    All methods raise StoreError if the backing database fails.
    """

    @abstractmethod
    async def get_dock(self, dock_id: int, for_update: bool = False) -> Dock | None:
        """Retrieve a dock by ID.

        Args:
            dock_id: Dock identifier.
            for_update: Lock the dock row until the unit of work ends, so
                concurrent guarded operations on the same dock serialize.

        Returns:
            The dock, or None if it does not exist.
        """

    @abstractmethod
    async def get_dock_capacity(
        self, dock_id: int, for_update: bool = False
    ) -> int | None:
        """Return the dock's declared capacity, or None if it does not exist.

        Args:
            dock_id: Dock identifier.
            for_update: Lock the dock row (see get_dock).
        """

    @abstractmethod
    async def count_ships_at_dock(
        self, dock_id: int, exclude_ship_id: int | None = None
    ) -> int:
        """Count ships currently referencing the dock.

        Args:
            dock_id: Dock identifier.
            exclude_ship_id: Leave this ship out of the count (used when
                a ship is re-saved against a dock).

        Returns:
            Number of ships; zero when the dock has none or does not exist.
        """

    async def exists_dock(self, dock_id: int) -> bool:
        """Does a dock with this ID exist?"""
        return await self.get_dock_capacity(dock_id) is not None

    @abstractmethod
    async def list_docks(self) -> list[Dock]:
        """Return all docks ordered by ID."""

    @abstractmethod
    async def insert_dock(self, location: str, capacity: int) -> Dock:
        """Persist a new dock and return it with its assigned ID."""

    @abstractmethod
    async def update_dock(self, dock: Dock) -> Dock | None:
        """Overwrite a dock's location and capacity.

        Returns:
            The stored dock after the update, or None if it does not exist.
        """

    @abstractmethod
    async def delete_dock(self, dock_id: int) -> bool:
        """Delete a dock.

        Returns:
            True if a row was removed, False if the dock did not exist.
        """

    @abstractmethod
    async def get_ship(self, ship_id: int) -> Ship | None:
        """Retrieve a ship by ID, or None if it does not exist."""

    @abstractmethod
    async def list_ships(self) -> list[Ship]:
        """Return all ships ordered by ID."""

    @abstractmethod
    async def insert_ship(
        self, name: str, ship_type: str, dock_id: int | None
    ) -> Ship:
        """Persist a new ship and return it with its assigned ID."""

    @abstractmethod
    async def update_ship(self, ship: Ship) -> Ship | None:
        """Overwrite a ship's name, type and dock reference.

        Returns:
            The stored ship after the update, or None if it does not exist.
        """

    @abstractmethod
    async def delete_ship(self, ship_id: int) -> bool:
        """Delete a ship.

        Returns:
            True if a row was removed, False if the ship did not exist.
        """


class OccupancyStorePort(ABC):
    """Port for the persistence-backed source of truth on dock occupancy.

    Adapters implementing this port must hand out sessions whose check
    (count) and write happen inside the same transaction, and must make
    ``for_update`` locks effective so that two concurrent admissions to
    the same dock cannot both observe spare capacity.

    Implementations must handle:
    - Connection acquisition per unit of work (no shared connections)
    - Commit on clean exit, rollback when the body raises
    - Wrapping driver failures in StoreError
    """

    @abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager[OccupancySession]:
        """Open a transactional session.

        Usage::

            async with store.unit_of_work() as session:
                capacity = await session.get_dock_capacity(1, for_update=True)
                ...

        Raises:
            StoreError: If a connection cannot be acquired or the
                transaction fails to commit.
        """


class HaulerStorePort(ABC):
    """Port for hauler persistence.

    Haulers have no cross-entity constraints, so each call acquires its
    own connection and commits immediately.

    All methods raise StoreError if the backing database fails.
    """

    @abstractmethod
    async def list_haulers(self) -> list[Hauler]:
        """Return all haulers ordered by ID."""

    @abstractmethod
    async def get_hauler(self, hauler_id: int) -> Hauler | None:
        """Retrieve a hauler by ID, or None if it does not exist."""

    @abstractmethod
    async def insert_hauler(self, name: str, capacity: int) -> Hauler:
        """Persist a new hauler and return it with its assigned ID."""

    @abstractmethod
    async def update_hauler(self, hauler: Hauler) -> Hauler | None:
        """Overwrite a hauler; None if it does not exist."""

    @abstractmethod
    async def delete_hauler(self, hauler_id: int) -> bool:
        """Delete a hauler; False if it did not exist."""


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class RegistryPort(ABC):
    """Port for dock and ship operations.

    Driving port: the HTTP adapter and the seeding bootstrap call these
    methods. Implementations live in the core (registry_service.py).

    Every method returns an Outcome rather than raising for expected
    failures. Arguments carry decoded request values and are validated
    by the implementation before any store access.
    """

    @abstractmethod
    async def list_docks(self) -> Outcome[list[Dock]]:
        """Return all docks."""

    @abstractmethod
    async def get_dock(self, dock_id: int) -> Outcome[Dock]:
        """Return one dock, or a NOT_FOUND rejection."""

    @abstractmethod
    async def create_dock(self, location: Any, capacity: Any) -> Outcome[Dock]:
        """Create a dock after field validation."""

    @abstractmethod
    async def update_dock(
        self, dock_id: int, location: Any, capacity: Any
    ) -> Outcome[Dock]:
        """Update a dock, refusing capacity below current occupancy."""

    @abstractmethod
    async def delete_dock(self, dock_id: int) -> Outcome[None]:
        """Delete a dock, refusing while ships are berthed there."""

    @abstractmethod
    async def list_ships(self) -> Outcome[list[Ship]]:
        """Return all ships."""

    @abstractmethod
    async def get_ship(self, ship_id: int) -> Outcome[Ship]:
        """Return one ship, or a NOT_FOUND rejection."""

    @abstractmethod
    async def create_ship(
        self, name: Any, ship_type: Any, dock_id: Any = None
    ) -> Outcome[Ship]:
        """Create a ship, refusing a missing or full target dock."""

    @abstractmethod
    async def update_ship(
        self, ship_id: int, name: Any, ship_type: Any, dock_id: Any = None
    ) -> Outcome[Ship]:
        """Update a ship, re-checking capacity only when its dock changes."""

    @abstractmethod
    async def delete_ship(self, ship_id: int) -> Outcome[None]:
        """Delete a ship. Never violates capacity."""


class HaulerPort(ABC):
    """Port for hauler CRUD. No invariants beyond field validation."""

    @abstractmethod
    async def list_haulers(self) -> Outcome[list[Hauler]]:
        """Return all haulers."""

    @abstractmethod
    async def get_hauler(self, hauler_id: int) -> Outcome[Hauler]:
        """Return one hauler, or a NOT_FOUND rejection."""

    @abstractmethod
    async def create_hauler(self, name: Any, capacity: Any) -> Outcome[Hauler]:
        """Create a hauler after field validation."""

    @abstractmethod
    async def update_hauler(
        self, hauler_id: int, name: Any, capacity: Any
    ) -> Outcome[Hauler]:
        """Update a hauler after field validation."""

    @abstractmethod
    async def delete_hauler(self, hauler_id: int) -> Outcome[None]:
        """Delete a hauler."""
