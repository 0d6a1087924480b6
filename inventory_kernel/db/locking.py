"""
Module: inventory_kernel.db.locking
Responsibility: In-process keyed mutexes that stand in for row-level locks on
    backends without SELECT ... FOR UPDATE (SQLite).  One lock per
    (organization_id, sku_id) key, held until the owning transaction commits
    or rolls back.
Architecture position: Kernel > DB.  Used only by the ledger store.

Invariants enforced:
    - Mutual exclusion per key: at most one transaction holds a key.
    - Bounded waiting: acquire() gives up after the timeout instead of
      blocking forever, so a stuck holder surfaces as a retryable conflict.
    - No unbounded growth: entries are dropped when no holder or waiter
      references them.

Failure modes:
    - acquire() returns False on timeout; the caller translates that into
      TransactionConflictError.
    - release() of a key that is not held raises RuntimeError.
"""

import threading
from collections.abc import Hashable


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLockRegistry:
    """
    Registry of per-key mutexes.

    Locks are not reentrant; callers track which keys they already hold
    (the ledger store does this per transaction).
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def acquire(self, key: Hashable, timeout: float) -> bool:
        """Block up to ``timeout`` seconds for ``key``. Returns True if acquired."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.refs += 1

        acquired = entry.lock.acquire(timeout=timeout)
        if not acquired:
            self._unref(key, entry)
        return acquired

    def release(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries.get(key)
        if entry is None or not entry.lock.locked():
            raise RuntimeError(f"Lock for {key!r} is not held")
        entry.lock.release()
        self._unref(key, entry)

    def _unref(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_locked(self, key: Hashable) -> bool:
        with self._guard:
            entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
