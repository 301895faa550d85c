"""
Idempotency helpers: a bounded recency-ordered set, an update deduplicator
and a resettable once-gate.

All three are process-local. Instances are ephemeral and per-worker, which is
acceptable for Telegram webhook retries and one-shot UI transitions but gives
no guarantee across concurrently running instances.

Usage:
    seen_updates = Deduplicator(1000)
    if not seen_updates.admit(update.update_id):
        return  # retried delivery

    milk_prompt = OnceGate(1000)
    key = key_from_parts(chat_id, message_id, idx)
    if milk_prompt.fire_once(key):
        ...  # first tap: show the milk buttons
    milk_prompt.reset(key)  # on cancel
"""

import threading
from collections import OrderedDict
from typing import Hashable, Optional, Union


class LRUSet:
    """
    A bounded set that remembers insertion/refresh order.

    - add() marks the key as most recently used, inserting it if new
    - when the size would exceed capacity, the least recently used key is evicted
    """

    def __init__(self, max_size: int = 1000):
        if not isinstance(max_size, int) or max_size <= 0:
            raise ValueError("LRUSet: max_size must be a positive integer")
        self.max_size = max_size
        self._items: "OrderedDict[Hashable, None]" = OrderedDict()
        self._lock = threading.Lock()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, key: Hashable) -> None:
        with self._lock:
            self._add_locked(key)

    def add_if_absent(self, key: Hashable) -> bool:
        """
        Insert key if it is not present. Returns True if it was inserted.

        An existing key only gets its recency refreshed. The check and the
        insert happen under one lock acquisition.
        """
        with self._lock:
            present = key in self._items
            self._add_locked(key)
            return not present

    def discard(self, key: Hashable) -> bool:
        with self._lock:
            if key in self._items:
                del self._items[key]
                return True
            return False

    def _add_locked(self, key: Hashable) -> None:
        if key in self._items:
            self._items.move_to_end(key)
            return
        self._items[key] = None
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)


class Deduplicator:
    """Rejects re-delivery of an already processed inbound event."""

    def __init__(self, capacity: int = 1000):
        self._seen = LRUSet(capacity)

    def admit(self, event_id: Hashable) -> bool:
        """Return True the first time event_id is seen, False for repeats."""
        return self._seen.add_if_absent(event_id)

    def __len__(self) -> int:
        return len(self._seen)


class OnceGate:
    """Single-fire latch per key, re-armed by reset()."""

    def __init__(self, capacity: int = 1000):
        self._fired = LRUSet(capacity)

    def fire_once(self, key: Hashable) -> bool:
        return self._fired.add_if_absent(key)

    def reset(self, key: Hashable) -> bool:
        return self._fired.discard(key)


def key_from_parts(*parts: Optional[Union[str, int, bool]]) -> str:
    """
    Build a stable string key from heterogeneous parts.

    None parts are dropped, booleans become "1"/"0", and the rest are joined
    with ':'.
    """
    out = []
    for p in parts:
        if p is None:
            continue
        if isinstance(p, bool):
            out.append("1" if p else "0")
        else:
            out.append(str(p))
    return ":".join(out)
