"""Capacity rules for docks and the ships berthed at them.

This module implements the decisions that keep
``count(ships at dock) <= dock.capacity`` true. It never queries
storage: callers supply the occupancy counts they read inside the
same unit of work that will perform the write.
"""


class InvariantGuard:
    """Decides whether a dock or ship mutation is admissible.

    Pure decision logic with no side effects.
    """

    def can_admit_new_ship(
        self,
        target_dock_id: int | None,
        current_occupancy: int,
        dock_capacity: int,
    ) -> bool:
        """Can a newly created ship be berthed at the target dock?

        An unberthed ship (no target dock) is always admitted.
        """
        if target_dock_id is None:
            return True
        return current_occupancy < dock_capacity

    def can_reassign_ship(
        self,
        target_dock_id: int | None,
        occupancy_excluding_ship: int,
        dock_capacity: int,
    ) -> bool:
        """Can an existing ship move to the target dock?

        The occupancy passed in must not count the moving ship itself,
        otherwise a ship already berthed at a full dock could never be
        re-saved against it.
        """
        if target_dock_id is None:
            return True
        return occupancy_excluding_ship < dock_capacity

    def can_shrink_capacity(self, new_capacity: int, current_occupancy: int) -> bool:
        """Does the new capacity still hold every ship currently berthed?

        Growth is trivially admitted.
        """
        return new_capacity >= current_occupancy

    def can_delete_dock(self, current_occupancy: int) -> bool:
        """Only an empty dock may be deleted."""
        return current_occupancy == 0
