"""Hauler service: implements HaulerPort.

Haulers are leaf records. Nothing references them, so there is no
occupancy to consult and no guard to ask: only field validation.
"""

import logging
from typing import Any

from .models import Hauler, Outcome, RejectionKind, StoreError
from .ports import HaulerPort, HaulerStorePort
from .validation import is_storable_id, validate_hauler

logger = logging.getLogger(__name__)


class HaulerService(HaulerPort):
    """Core implementation of HaulerPort."""

    def __init__(self, store: HaulerStorePort):
        self.store = store

    @staticmethod
    def _not_found(hauler_id: int) -> Outcome[Any]:
        return Outcome.reject(
            RejectionKind.NOT_FOUND, f"Hauler with ID {hauler_id} not found"
        )

    @staticmethod
    def _store_failure(operation: str, error: StoreError) -> Outcome[Any]:
        logger.error(f"Store failure during {operation}: {error}", exc_info=True)
        return Outcome.reject(RejectionKind.STORE_ERROR, str(error))

    async def list_haulers(self) -> Outcome[list[Hauler]]:
        try:
            return Outcome.admit(await self.store.list_haulers())
        except StoreError as e:
            return self._store_failure("list_haulers", e)

    async def get_hauler(self, hauler_id: int) -> Outcome[Hauler]:
        if not is_storable_id(hauler_id):
            return self._not_found(hauler_id)
        try:
            hauler = await self.store.get_hauler(hauler_id)
        except StoreError as e:
            return self._store_failure("get_hauler", e)
        if hauler is None:
            return self._not_found(hauler_id)
        return Outcome.admit(hauler)

    async def create_hauler(self, name: Any, capacity: Any) -> Outcome[Hauler]:
        rejection = validate_hauler(name, capacity)
        if rejection is not None:
            return Outcome(rejection=rejection)
        try:
            hauler = await self.store.insert_hauler(name, capacity)
        except StoreError as e:
            return self._store_failure("create_hauler", e)
        logger.info(f"Hauler {hauler.id} created", extra={"hauler_id": hauler.id})
        return Outcome.admit(hauler)

    async def update_hauler(
        self, hauler_id: int, name: Any, capacity: Any
    ) -> Outcome[Hauler]:
        rejection = validate_hauler(name, capacity)
        if rejection is not None:
            return Outcome(rejection=rejection)
        if not is_storable_id(hauler_id):
            return self._not_found(hauler_id)
        try:
            updated = await self.store.update_hauler(
                Hauler(id=hauler_id, name=name, capacity=capacity)
            )
        except StoreError as e:
            return self._store_failure("update_hauler", e)
        if updated is None:
            return self._not_found(hauler_id)
        logger.info(f"Hauler {hauler_id} updated", extra={"hauler_id": hauler_id})
        return Outcome.admit(updated)

    async def delete_hauler(self, hauler_id: int) -> Outcome[None]:
        if not is_storable_id(hauler_id):
            return self._not_found(hauler_id)
        try:
            deleted = await self.store.delete_hauler(hauler_id)
        except StoreError as e:
            return self._store_failure("delete_hauler", e)
        if not deleted:
            return self._not_found(hauler_id)
        logger.info(f"Hauler {hauler_id} deleted", extra={"hauler_id": hauler_id})
        return Outcome.admit()
