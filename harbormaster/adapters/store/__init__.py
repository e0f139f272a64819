"""Registry store adapters for persistence and occupancy queries.

Implementations support multiple backends:
- PostgreSQL (production, row-level dock locks)
- SQLite (zero-config, single-file)
"""
