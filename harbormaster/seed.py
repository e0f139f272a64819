"""Sample data for an empty registry.

Seeding goes through the registry and hauler ports, so seed ships obey
the same capacity rules as API requests. A ship whose dock is already
full is stored without a dock instead.
"""

import logging
from typing import Any, TypeVar

from harbormaster.core.models import Outcome, RejectionKind
from harbormaster.core.ports import HaulerPort, RegistryPort

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEED_DOCKS = (
    ("North Harbor", 5),
    ("South Harbor", 3),
    ("East Harbor", 7),
)

SEED_HAULERS = (
    ("Oceanic Haulers", 10),
    ("Maritime Transport", 15),
    ("Sea Logistics", 8),
)

# (name, type, index into SEED_DOCKS)
SEED_SHIPS = (
    ("Serenity", "Firefly-class transport ship", 0),
    ("Rocinante", "Corvette-class frigate", 1),
    ("Millennium Falcon", "YT-1300 light freighter", 2),
    ("Black Pearl", "Pirate galleon", 0),
    ("Nautilus", "Submarine vessel", 1),
    ("Flying Dutchman", "Ghost ship", 2),
    ("Enterprise", "Constitution-class starship", 0),
    ("Voyager", "Intrepid-class starship", 1),
    ("Defiant", "Escort-class warship", 2),
    ("Galactica", "Battlestar", 0),
    ("Bebop", "Fishing trawler", 1),
    ("Normandy", "Stealth frigate", 2),
    ("Pillar of Autumn", "Halcyon-class cruiser", 0),
    ("Nostromo", "Commercial towing vessel", 1),
    ("Sulaco", "Military transport", 2),
    ("Highwind", "Airship", 0),
    ("Argo", "Ancient Greek galley", 1),
    ("Nebuchadnezzar", "Hovership", 2),
)


class SeedError(Exception):
    """Raised when sample data cannot be written."""


def _require(outcome: Outcome[T], what: str) -> T:
    if not outcome.ok:
        assert outcome.rejection is not None
        raise SeedError(f"Failed to seed {what}: {outcome.rejection.message}")
    return outcome.value  # type: ignore[return-value]


async def seed_registry(registry: RegistryPort, haulers: HaulerPort) -> bool:
    """Insert sample docks, haulers and ships when no docks exist.

    Args:
        registry: Port used for docks and ships.
        haulers: Port used for haulers.

    Returns:
        True if sample data was inserted, False if the registry already
        held docks.

    Raises:
        SeedError: If any sample record is rejected for a reason other
            than a full dock.
    """
    existing = _require(await registry.list_docks(), "docks")
    if existing:
        logger.debug("Registry already populated; skipping seed")
        return False

    dock_ids = []
    for location, capacity in SEED_DOCKS:
        dock = _require(await registry.create_dock(location, capacity), location)
        dock_ids.append(dock.id)

    for name, capacity in SEED_HAULERS:
        _require(await haulers.create_hauler(name, capacity), name)

    unberthed = 0
    for name, ship_type, dock_index in SEED_SHIPS:
        dock_id: Any = dock_ids[dock_index]
        outcome = await registry.create_ship(name, ship_type, dock_id)
        if (
            outcome.rejection is not None
            and outcome.rejection.kind == RejectionKind.CAPACITY_VIOLATION
        ):
            outcome = await registry.create_ship(name, ship_type, None)
            unberthed += 1
        _require(outcome, name)

    logger.info(
        f"Seeded {len(SEED_DOCKS)} docks, {len(SEED_HAULERS)} haulers "
        f"and {len(SEED_SHIPS)} ships ({unberthed} unberthed)",
        extra={"unberthed": unberthed},
    )
    return True
