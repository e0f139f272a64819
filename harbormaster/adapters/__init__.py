"""External adapters for the HarborMaster registry.

This package contains all external dependencies (PostgreSQL, SQLite,
HTTP servers, etc.) and provides implementations of the core port interfaces.

Adapter Organization:

- store/: Adapters for dock, ship and hauler persistence (PostgreSQL, SQLite)
- rest/: JSON-over-HTTP surface for the registry
"""
