"""
dayplan-sync Test Suite.

This package contains:
- unit/: Unit tests (no I/O)
- integration/: Integration tests (engine with the in-memory store and
  change feed, REST adapter over httpx.MockTransport)
"""
