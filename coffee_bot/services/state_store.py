"""
Keyed State Store for Coffee Bot
================================

Conversation state that has to survive between webhook invocations (armed
quantity prompts, chosen quantities, undo pointers) is kept behind a small
get/set/delete interface so the order flow never touches a concrete mapping.

Implementations:
----------------
1. **InMemoryStateStore** (default): a bounded dict with LRU eviction. State
   is process-wide and lives as long as the worker. Nothing is shared with
   other instances.

2. **SqlStateStore**: write-through store backed by the ``bot_state`` table.
   Reads check the in-memory layer first and fall back to the database, so a
   restarted worker can still undo an order placed before the restart.

Values must be JSON-serializable dicts.

Thread Safety:
--------------
FastAPI runs the sync webhook in a thread pool. Every in-memory operation
holds a threading.Lock for its duration; no lock is held across a database
call.

Usage:
------
    store = InMemoryStateStore(max_entries=5000)
    store.set("undo:42:7", {"row": 12, "summary": "1x Latte"})
    store.get("undo:42:7")
    store.delete("undo:42:7")
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..models import BotStateEntry


logger = logging.getLogger(__name__)


class StateStoreError(RuntimeError):
    """A state entry could not be read, written or removed."""


class StateStore(Protocol):
    """
    Minimal keyed store used by the order flow and the ledger.

    Implementations raise StateStoreError when the backing storage fails.
    """

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...


# =============================================================================
# In-Memory Store
# =============================================================================

class InMemoryStateStore:
    """
    Bounded in-memory store.

    Both get() and set() refresh an entry's recency. When the store would
    exceed max_entries, the least recently used entries are evicted.
    """

    def __init__(self, max_entries: int = 5000):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._data: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
            return value

    def set(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            evicted = 0
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)
                evicted += 1
        if evicted:
            logger.debug("Evicted %d state entries", evicted)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# =============================================================================
# Database-backed Store
# =============================================================================

class SqlStateStore:
    """
    Write-through store persisting entries to the bot_state table.

    The database is written before the in-memory layer, so a failed write
    leaves both layers unchanged. Database failures raise StateStoreError.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session
        cache: In-memory layer consulted before the database
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache: Optional[InMemoryStateStore] = None,
    ):
        self._session_factory = session_factory
        self._cache = cache or InMemoryStateStore()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._cache.get(key)
        if value is not None:
            return value

        db = self._session_factory()
        try:
            entry = db.query(BotStateEntry).filter(BotStateEntry.key == key).first()
            if entry is None:
                return None
            value = dict(entry.value or {})
        except SQLAlchemyError as e:
            raise StateStoreError(f"State read failed for {key!r}: {e}") from e
        finally:
            db.close()

        self._cache.set(key, value)
        return value

    def set(self, key: str, value: Dict[str, Any]) -> None:
        db = self._session_factory()
        try:
            entry = db.query(BotStateEntry).filter(BotStateEntry.key == key).first()
            if entry:
                entry.value = value
                # JSON columns don't track in-place changes
                flag_modified(entry, "value")
            else:
                db.add(BotStateEntry(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StateStoreError(f"State write failed for {key!r}: {e}") from e
        finally:
            db.close()

        self._cache.set(key, value)

    def delete(self, key: str) -> bool:
        db = self._session_factory()
        try:
            removed = db.query(BotStateEntry).filter(BotStateEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StateStoreError(f"State delete failed for {key!r}: {e}") from e
        finally:
            db.close()

        cached = self._cache.delete(key)
        return cached or bool(removed)
