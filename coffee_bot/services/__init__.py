"""
Services Package for Coffee Bot
===============================

Infrastructure components shared by the order flow and the ledger.

Available Services:
-------------------
- **state_store**: Keyed get/set/delete store, in-memory or database-backed

Usage:
------
    from coffee_bot.services.state_store import InMemoryStateStore, SqlStateStore
"""

from . import state_store

__all__ = ["state_store"]
