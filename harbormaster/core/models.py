"""Domain models for the HarborMaster registry.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Dock:
    """A berth with a maximum ship occupancy.

    Occupancy is never stored here. It is always derived by counting
    ships that reference the dock.
    """

    id: int
    location: str
    capacity: int


@dataclass(frozen=True)
class Ship:
    """A vessel, optionally berthed at one dock."""

    id: int
    name: str
    type: str
    dock_id: int | None = None


@dataclass(frozen=True)
class Hauler:
    """An independent transport unit with no relation to docks or ships."""

    id: int
    name: str
    capacity: int


class RejectionKind(Enum):
    """Categories of refused operations.

    Callers branch on the kind, never on message text:
    - VALIDATION: malformed or missing fields, non-positive capacity
    - NOT_FOUND: a referenced dock, ship or hauler does not exist
    - CAPACITY_VIOLATION: dock full, or capacity would drop below occupancy
    - OCCUPIED: dock deletion while ships are still assigned
    - STORE_ERROR: persistence failure
    """

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CAPACITY_VIOLATION = "capacity_violation"
    OCCUPIED = "occupied"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class Rejection:
    """Why an operation was refused."""

    kind: RejectionKind
    message: str

    def __post_init__(self) -> None:
        """Validate rejection invariants on creation."""
        if not self.message or not self.message.strip():
            raise ValueError("message must be a non-empty string")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a registry operation.

    Exactly one of ``value`` or ``rejection`` is meaningful: ``ok`` is True
    when no rejection is present. Operations that succeed without a payload
    (deletes) carry ``value=None``.
    """

    value: T | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def admit(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def reject(cls, kind: RejectionKind, message: str) -> "Outcome[T]":
        return cls(rejection=Rejection(kind=kind, message=message))


class StoreError(Exception):
    """Raised by store adapters when the backing database fails.

    Wraps driver-specific exceptions (connection loss, unclassified
    constraint violations) so the core never imports a database driver.
    """
