"""Field-level validation for registry payloads.

Runs before any store access. Values arrive as decoded JSON, so every
check also guards the type: a capacity of ``"5"`` or ``True`` is as
invalid as a capacity of ``0``.
"""

from typing import Any

from .models import Rejection, RejectionKind


# Largest value the INTEGER columns hold on every backend (PostgreSQL int4)
MAX_STORED_INT = 2**31 - 1


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _is_int(value: Any) -> bool:
    # bool is an int subclass; JSON true must not pass as 1
    return isinstance(value, int) and not isinstance(value, bool)


def is_storable_id(value: Any) -> bool:
    """Could a row with this ID exist? Out-of-range IDs are simply absent."""
    return _is_int(value) and 0 < value <= MAX_STORED_INT


def _invalid(message: str) -> Rejection:
    return Rejection(kind=RejectionKind.VALIDATION, message=message)


def check_capacity(capacity: Any) -> Rejection | None:
    if not _is_int(capacity) or capacity <= 0:
        return _invalid("Capacity must be greater than zero")
    if capacity > MAX_STORED_INT:
        return _invalid(f"Capacity must not exceed {MAX_STORED_INT}")
    return None


def validate_dock(location: Any, capacity: Any) -> Rejection | None:
    """Validate dock fields.

    Returns:
        The first rejection found, or None if the fields are valid.
    """
    if _is_blank(location):
        return _invalid("Location is required")
    return check_capacity(capacity)


def validate_ship(name: Any, ship_type: Any, dock_id: Any) -> Rejection | None:
    """Validate ship fields.

    ``dock_id`` may be None (unberthed ship) or an integer.
    """
    if _is_blank(name):
        return _invalid("Name is required")
    if _is_blank(ship_type):
        return _invalid("Type is required")
    if dock_id is not None and not _is_int(dock_id):
        return _invalid("Dock ID must be an integer or null")
    return None


def validate_hauler(name: Any, capacity: Any) -> Rejection | None:
    """Validate hauler fields."""
    if _is_blank(name):
        return _invalid("Name is required")
    return check_capacity(capacity)
