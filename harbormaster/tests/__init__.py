"""Test suite for the HarborMaster registry.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Tests for adapter implementations
   - SQLite against a temporary file, PostgreSQL when a server is configured
   - REST surface driven end to end over HTTP

3. fakes/: Port implementations for testing
   - In-memory implementation of OccupancyStorePort and HaulerStorePort
"""
