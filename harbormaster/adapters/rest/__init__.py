"""REST adapters.

Provides the HTTP endpoints for docks, ships and haulers:
- Receiver translating requests into registry and hauler port calls
- Threaded HTTP server bridging requests onto the asyncio event loop
"""
