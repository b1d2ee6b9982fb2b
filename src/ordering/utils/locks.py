"""Keyed in-process locks.

Stock for a product and the lifecycle of an order are each guarded by a lock
keyed on the aggregate id. Acquiring several keys always happens in sorted
order so that two operations touching overlapping products cannot deadlock.
A key's lock only lives while some thread holds or waits for it.
"""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from weakref import WeakKeyDictionary


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """A registry of re-entrant locks, created on first use per key and dropped after last use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry.lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        """Acquire the locks for all `keys` (deduplicated, sorted) for the block's duration."""
        ordered = sorted({str(key) for key in keys})
        locks = [self._checkout(key) for key in ordered]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)


_STORAGE_LOCKS: "WeakKeyDictionary[object, dict[str, KeyedLocks]]" = WeakKeyDictionary()
_STORAGE_LOCKS_GUARD = threading.Lock()


def storage_locks(provider, name: str) -> KeyedLocks:
    """The `name` lock registry of a persistence provider, shared by everything writing through it."""
    with _STORAGE_LOCKS_GUARD:
        registries = _STORAGE_LOCKS.setdefault(provider, {})
        if name not in registries:
            registries[name] = KeyedLocks()
        return registries[name]
