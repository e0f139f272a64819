"""Registry service: implements RegistryPort for dock and ship operations.

Every guarded operation follows the same three phases:

1. Validate shape: required fields present, capacity positive. No
   store access.
2. Query occupancy: read dock existence, capacity and ship count
   inside a unit of work, locking the dock row being admitted to.
3. Decide and commit: ask the InvariantGuard; write only on admit.

Because phases 2 and 3 share one unit of work, the count a decision is
based on cannot change before the write commits.
"""

import logging
from typing import Any

from .guard import InvariantGuard
from .models import Dock, Outcome, RejectionKind, Ship, StoreError
from .ports import OccupancyStorePort, RegistryPort
from .validation import is_storable_id, validate_dock, validate_ship

logger = logging.getLogger(__name__)


def _dock_not_found(dock_id: int) -> Outcome[Any]:
    return Outcome.reject(RejectionKind.NOT_FOUND, f"Dock with ID {dock_id} not found")


def _ship_not_found(ship_id: int) -> Outcome[Any]:
    return Outcome.reject(RejectionKind.NOT_FOUND, f"Ship with ID {ship_id} not found")


def _dock_full(dock_id: int) -> Outcome[Any]:
    return Outcome.reject(
        RejectionKind.CAPACITY_VIOLATION, f"Dock with ID {dock_id} is at capacity"
    )


def _store_failure(operation: str, error: StoreError) -> Outcome[Any]:
    logger.error(
        f"Store failure during {operation}: {error}",
        exc_info=True,
        extra={"operation": operation},
    )
    return Outcome.reject(RejectionKind.STORE_ERROR, str(error))


class RegistryService(RegistryPort):
    """Core implementation of RegistryPort.

    Coordinates the occupancy store and the invariant guard. Holds no
    mutable state between calls.
    """

    def __init__(
        self,
        store: OccupancyStorePort,
        guard: InvariantGuard | None = None,
    ):
        """Initialize the registry service.

        Args:
            store: OccupancyStorePort implementation for persistence.
            guard: Decision logic for capacity rules.
        """
        self.store = store
        self.guard = guard or InvariantGuard()

    # ------------------------------------------------------------------
    # Docks
    # ------------------------------------------------------------------

    async def list_docks(self) -> Outcome[list[Dock]]:
        try:
            async with self.store.unit_of_work() as session:
                docks = await session.list_docks()
        except StoreError as e:
            return _store_failure("list_docks", e)
        return Outcome.admit(docks)

    async def get_dock(self, dock_id: int) -> Outcome[Dock]:
        if not is_storable_id(dock_id):
            return _dock_not_found(dock_id)
        try:
            async with self.store.unit_of_work() as session:
                dock = await session.get_dock(dock_id)
        except StoreError as e:
            return _store_failure("get_dock", e)
        if dock is None:
            return _dock_not_found(dock_id)
        return Outcome.admit(dock)

    async def create_dock(self, location: Any, capacity: Any) -> Outcome[Dock]:
        """Create a dock. Only field validation applies: a new dock is empty."""
        rejection = validate_dock(location, capacity)
        if rejection is not None:
            return Outcome(rejection=rejection)

        try:
            async with self.store.unit_of_work() as session:
                dock = await session.insert_dock(location, capacity)
        except StoreError as e:
            return _store_failure("create_dock", e)

        logger.info(
            f"Dock {dock.id} created",
            extra={"dock_id": dock.id, "capacity": dock.capacity},
        )
        return Outcome.admit(dock)

    async def update_dock(
        self, dock_id: int, location: Any, capacity: Any
    ) -> Outcome[Dock]:
        """Update a dock's location and capacity.

        Occupancy is only consulted when capacity shrinks; growth is
        always safe.
        """
        rejection = validate_dock(location, capacity)
        if rejection is not None:
            return Outcome(rejection=rejection)
        if not is_storable_id(dock_id):
            return _dock_not_found(dock_id)

        try:
            async with self.store.unit_of_work() as session:
                existing = await session.get_dock(dock_id, for_update=True)
                if existing is None:
                    return _dock_not_found(dock_id)

                if capacity < existing.capacity:
                    occupancy = await session.count_ships_at_dock(dock_id)
                    if not self.guard.can_shrink_capacity(capacity, occupancy):
                        logger.info(
                            f"Refused shrinking dock {dock_id} below occupancy",
                            extra={
                                "dock_id": dock_id,
                                "requested_capacity": capacity,
                                "occupancy": occupancy,
                            },
                        )
                        return Outcome.reject(
                            RejectionKind.CAPACITY_VIOLATION,
                            "Cannot reduce capacity below the number of ships "
                            "currently at this dock",
                        )

                updated = await session.update_dock(
                    Dock(id=dock_id, location=location, capacity=capacity)
                )
        except StoreError as e:
            return _store_failure("update_dock", e)

        if updated is None:
            return _dock_not_found(dock_id)

        logger.info(
            f"Dock {dock_id} updated",
            extra={
                "dock_id": dock_id,
                "old_capacity": existing.capacity,
                "new_capacity": updated.capacity,
            },
        )
        return Outcome.admit(updated)

    async def delete_dock(self, dock_id: int) -> Outcome[None]:
        """Delete a dock, refusing while any ship references it."""
        if not is_storable_id(dock_id):
            return _dock_not_found(dock_id)
        try:
            async with self.store.unit_of_work() as session:
                if await session.get_dock(dock_id, for_update=True) is None:
                    return _dock_not_found(dock_id)

                occupancy = await session.count_ships_at_dock(dock_id)
                if not self.guard.can_delete_dock(occupancy):
                    logger.info(
                        f"Refused deleting occupied dock {dock_id}",
                        extra={"dock_id": dock_id, "occupancy": occupancy},
                    )
                    return Outcome.reject(
                        RejectionKind.OCCUPIED,
                        "The specified dock is currently occupied",
                    )

                deleted = await session.delete_dock(dock_id)
        except StoreError as e:
            return _store_failure("delete_dock", e)

        if not deleted:
            return _dock_not_found(dock_id)

        logger.info(f"Dock {dock_id} deleted", extra={"dock_id": dock_id})
        return Outcome.admit()

    # ------------------------------------------------------------------
    # Ships
    # ------------------------------------------------------------------

    async def list_ships(self) -> Outcome[list[Ship]]:
        try:
            async with self.store.unit_of_work() as session:
                ships = await session.list_ships()
        except StoreError as e:
            return _store_failure("list_ships", e)
        return Outcome.admit(ships)

    async def get_ship(self, ship_id: int) -> Outcome[Ship]:
        if not is_storable_id(ship_id):
            return _ship_not_found(ship_id)
        try:
            async with self.store.unit_of_work() as session:
                ship = await session.get_ship(ship_id)
        except StoreError as e:
            return _store_failure("get_ship", e)
        if ship is None:
            return _ship_not_found(ship_id)
        return Outcome.admit(ship)

    async def create_ship(
        self, name: Any, ship_type: Any, dock_id: Any = None
    ) -> Outcome[Ship]:
        """Create a ship, berthed at ``dock_id`` when one is given.

        A missing dock is reported as NOT_FOUND, a full one as
        CAPACITY_VIOLATION.
        """
        rejection = validate_ship(name, ship_type, dock_id)
        if rejection is not None:
            return Outcome(rejection=rejection)
        if dock_id is not None and not is_storable_id(dock_id):
            return _dock_not_found(dock_id)

        try:
            async with self.store.unit_of_work() as session:
                if dock_id is not None:
                    if not await session.exists_dock(dock_id):
                        return _dock_not_found(dock_id)

                    capacity = await session.get_dock_capacity(dock_id, for_update=True)
                    if capacity is None:
                        # Deleted between the existence check and the lock
                        return _dock_not_found(dock_id)

                    occupancy = await session.count_ships_at_dock(dock_id)
                    if not self.guard.can_admit_new_ship(dock_id, occupancy, capacity):
                        logger.info(
                            f"Refused new ship at full dock {dock_id}",
                            extra={
                                "dock_id": dock_id,
                                "occupancy": occupancy,
                                "capacity": capacity,
                            },
                        )
                        return _dock_full(dock_id)

                ship = await session.insert_ship(name, ship_type, dock_id)
        except StoreError as e:
            return _store_failure("create_ship", e)

        logger.info(
            f"Ship {ship.id} created",
            extra={"ship_id": ship.id, "dock_id": ship.dock_id},
        )
        return Outcome.admit(ship)

    async def update_ship(
        self, ship_id: int, name: Any, ship_type: Any, dock_id: Any = None
    ) -> Outcome[Ship]:
        """Update a ship.

        When the dock reference is unchanged no occupancy check runs: the
        association was admitted when it was formed. A move to a different
        dock is checked against that dock with the ship itself excluded
        from the count. Moving to no dock is always admitted.
        """
        rejection = validate_ship(name, ship_type, dock_id)
        if rejection is not None:
            return Outcome(rejection=rejection)
        if not is_storable_id(ship_id):
            return _ship_not_found(ship_id)
        if dock_id is not None and not is_storable_id(dock_id):
            return _dock_not_found(dock_id)

        try:
            async with self.store.unit_of_work() as session:
                existing = await session.get_ship(ship_id)
                if existing is None:
                    return _ship_not_found(ship_id)

                if dock_id is not None and dock_id != existing.dock_id:
                    if not await session.exists_dock(dock_id):
                        return _dock_not_found(dock_id)

                    capacity = await session.get_dock_capacity(dock_id, for_update=True)
                    if capacity is None:
                        return _dock_not_found(dock_id)

                    occupancy = await session.count_ships_at_dock(
                        dock_id, exclude_ship_id=ship_id
                    )
                    if not self.guard.can_reassign_ship(dock_id, occupancy, capacity):
                        logger.info(
                            f"Refused moving ship {ship_id} to full dock {dock_id}",
                            extra={
                                "ship_id": ship_id,
                                "from_dock_id": existing.dock_id,
                                "dock_id": dock_id,
                                "occupancy": occupancy,
                                "capacity": capacity,
                            },
                        )
                        return _dock_full(dock_id)

                updated = await session.update_ship(
                    Ship(id=ship_id, name=name, type=ship_type, dock_id=dock_id)
                )
        except StoreError as e:
            return _store_failure("update_ship", e)

        if updated is None:
            return _ship_not_found(ship_id)

        logger.info(
            f"Ship {ship_id} updated",
            extra={
                "ship_id": ship_id,
                "from_dock_id": existing.dock_id,
                "dock_id": updated.dock_id,
            },
        )
        return Outcome.admit(updated)

    async def delete_ship(self, ship_id: int) -> Outcome[None]:
        """Delete a ship. Occupancy is derived, so the berth frees itself."""
        if not is_storable_id(ship_id):
            return _ship_not_found(ship_id)
        try:
            async with self.store.unit_of_work() as session:
                deleted = await session.delete_ship(ship_id)
        except StoreError as e:
            return _store_failure("delete_ship", e)

        if not deleted:
            return _ship_not_found(ship_id)

        logger.info(f"Ship {ship_id} deleted", extra={"ship_id": ship_id})
        return Outcome.admit()
