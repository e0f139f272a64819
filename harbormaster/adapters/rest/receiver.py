"""REST receiver for registry requests.

Translates decoded HTTP requests into RegistryPort and HaulerPort calls
and turns the resulting Outcome into a status code, a JSON body and an
optional Location header. Knows nothing about sockets; the HTTP server
adapter handles transport.
"""

import logging
from dataclasses import dataclass
from typing import Any

from harbormaster.core.models import (
    Dock,
    Hauler,
    Outcome,
    Rejection,
    RejectionKind,
    Ship,
)
from harbormaster.core.ports import HaulerPort, RegistryPort

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    RejectionKind.VALIDATION: 400,
    RejectionKind.NOT_FOUND: 404,
    RejectionKind.CAPACITY_VIOLATION: 400,
    RejectionKind.OCCUPIED: 400,
    RejectionKind.STORE_ERROR: 500,
}


@dataclass(frozen=True)
class ApiResponse:
    """Transport-neutral HTTP response."""

    status: int
    body: Any = None
    location: str | None = None


def dock_to_dict(dock: Dock) -> dict[str, Any]:
    return {"id": dock.id, "location": dock.location, "capacity": dock.capacity}


def ship_to_dict(ship: Ship) -> dict[str, Any]:
    return {"id": ship.id, "name": ship.name, "type": ship.type, "dockId": ship.dock_id}


def hauler_to_dict(hauler: Hauler) -> dict[str, Any]:
    return {"id": hauler.id, "name": hauler.name, "capacity": hauler.capacity}


def error_response(
    rejection: Rejection, status_overrides: dict[RejectionKind, int] | None = None
) -> ApiResponse:
    """Build the error response for a rejection.

    Args:
        rejection: The rejection returned by the core.
        status_overrides: Per-endpoint status codes that replace the
            default mapping for specific kinds.
    """
    status = _STATUS_BY_KIND[rejection.kind]
    if status_overrides and rejection.kind in status_overrides:
        status = status_overrides[rejection.kind]
    logger.debug(
        f"Request rejected with {status}: {rejection.message}",
        extra={"kind": rejection.kind.value},
    )
    return ApiResponse(
        status=status,
        body={"error": rejection.kind.value, "message": rejection.message},
    )


def _not_an_object() -> ApiResponse:
    return ApiResponse(
        status=400,
        body={
            "error": RejectionKind.VALIDATION.value,
            "message": "Request body must be a JSON object",
        },
    )


class RestReceiver:
    """Maps REST resources onto the registry and hauler ports.

    Each handler returns an ApiResponse; expected failures never raise.
    """

    def __init__(self, registry: RegistryPort, haulers: HaulerPort):
        """Initialize the receiver.

        Args:
            registry: RegistryPort implementation for docks and ships.
            haulers: HaulerPort implementation for haulers.
        """
        self.registry = registry
        self.haulers = haulers

    @staticmethod
    def _ok(outcome: Outcome[Any], serialize: Any) -> ApiResponse:
        if not outcome.ok:
            assert outcome.rejection is not None
            return error_response(outcome.rejection)
        value = outcome.value
        if isinstance(value, list):
            return ApiResponse(status=200, body=[serialize(item) for item in value])
        return ApiResponse(status=200, body=serialize(value))

    @staticmethod
    def _created(
        outcome: Outcome[Any],
        serialize: Any,
        collection: str,
        status_overrides: dict[RejectionKind, int] | None = None,
    ) -> ApiResponse:
        if not outcome.ok:
            assert outcome.rejection is not None
            return error_response(outcome.rejection, status_overrides)
        return ApiResponse(
            status=201,
            body=serialize(outcome.value),
            location=f"/{collection}/{outcome.value.id}",
        )

    @staticmethod
    def _no_content(outcome: Outcome[None]) -> ApiResponse:
        if not outcome.ok:
            assert outcome.rejection is not None
            return error_response(outcome.rejection)
        return ApiResponse(status=204)

    # ------------------------------------------------------------------
    # Docks
    # ------------------------------------------------------------------

    async def handle_list_docks(self) -> ApiResponse:
        return self._ok(await self.registry.list_docks(), dock_to_dict)

    async def handle_get_dock(self, dock_id: int) -> ApiResponse:
        return self._ok(await self.registry.get_dock(dock_id), dock_to_dict)

    async def handle_create_dock(self, data: Any) -> ApiResponse:
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.registry.create_dock(
            data.get("location"), data.get("capacity")
        )
        return self._created(outcome, dock_to_dict, "docks")

    async def handle_update_dock(self, dock_id: int, data: Any) -> ApiResponse:
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.registry.update_dock(
            dock_id, data.get("location"), data.get("capacity")
        )
        return self._ok(outcome, dock_to_dict)

    async def handle_delete_dock(self, dock_id: int) -> ApiResponse:
        return self._no_content(await self.registry.delete_dock(dock_id))

    # ------------------------------------------------------------------
    # Ships
    # ------------------------------------------------------------------

    @staticmethod
    def _dock_reference(data: dict[str, Any]) -> Any:
        if "dockId" in data:
            return data["dockId"]
        return data.get("dock_id")

    async def handle_list_ships(self) -> ApiResponse:
        return self._ok(await self.registry.list_ships(), ship_to_dict)

    async def handle_get_ship(self, ship_id: int) -> ApiResponse:
        return self._ok(await self.registry.get_ship(ship_id), ship_to_dict)

    async def handle_create_ship(self, data: Any) -> ApiResponse:
        """Create a ship.

        A missing target dock is reported as 400 here: the resource being
        created exists in the request, only its reference is bad.
        """
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.registry.create_ship(
            data.get("name"), data.get("type"), self._dock_reference(data)
        )
        return self._created(
            outcome,
            ship_to_dict,
            "ships",
            status_overrides={RejectionKind.NOT_FOUND: 400},
        )

    async def handle_update_ship(self, ship_id: int, data: Any) -> ApiResponse:
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.registry.update_ship(
            ship_id, data.get("name"), data.get("type"), self._dock_reference(data)
        )
        return self._ok(outcome, ship_to_dict)

    async def handle_delete_ship(self, ship_id: int) -> ApiResponse:
        return self._no_content(await self.registry.delete_ship(ship_id))

    # ------------------------------------------------------------------
    # Haulers
    # ------------------------------------------------------------------

    async def handle_list_haulers(self) -> ApiResponse:
        return self._ok(await self.haulers.list_haulers(), hauler_to_dict)

    async def handle_get_hauler(self, hauler_id: int) -> ApiResponse:
        return self._ok(await self.haulers.get_hauler(hauler_id), hauler_to_dict)

    async def handle_create_hauler(self, data: Any) -> ApiResponse:
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.haulers.create_hauler(
            data.get("name"), data.get("capacity")
        )
        return self._created(outcome, hauler_to_dict, "haulers")

    async def handle_update_hauler(self, hauler_id: int, data: Any) -> ApiResponse:
        if not isinstance(data, dict):
            return _not_an_object()
        outcome = await self.haulers.update_hauler(
            hauler_id, data.get("name"), data.get("capacity")
        )
        return self._ok(outcome, hauler_to_dict)

    async def handle_delete_hauler(self, hauler_id: int) -> ApiResponse:
        return self._no_content(await self.haulers.delete_hauler(hauler_id))
