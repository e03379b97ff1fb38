"""
Services Package for Butcher Bot
================================

This package contains service modules that encapsulate business logic and
infrastructure concerns.

Available Services:
-------------------
- **session**: Session cache with database persistence, per-session locks
  and compare-and-swap saves
- **conversation**: One chat turn end to end (inventory, interpreter,
  reconciliation engine, order commit)
- **order**: Order commit (total recomputation, order number retry,
  best-effort normalized line rows)
- **fulfillment**: Staff status transitions, pickup code redemption, stock
  toggling

Design Philosophy:
------------------
1. **Single Responsibility**: Each service handles one concern.

2. **Dependency Injection**: Services receive their database session and
   collaborators rather than creating them internally.

3. **Testability**: Services can be exercised without the HTTP layer.
"""
