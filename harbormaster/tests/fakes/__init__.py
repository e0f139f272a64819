"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeRegistryStore: In-memory dock, ship and hauler persistence with
  unit-of-work rollback and injectable failures
"""

from .store import FakeRegistryStore

__all__ = ["FakeRegistryStore"]
