"""Core domain logic for the HarborMaster registry.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .guard import InvariantGuard
from .models import (
    Dock,
    Hauler,
    Outcome,
    Rejection,
    RejectionKind,
    Ship,
    StoreError,
)

__all__ = [
    "Dock",
    "Hauler",
    "InvariantGuard",
    "Outcome",
    "Rejection",
    "RejectionKind",
    "Ship",
    "StoreError",
]
