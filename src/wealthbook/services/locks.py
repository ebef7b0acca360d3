"""In-process per-key locks serialising writes to one aggregate row."""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock


class KeyedLocks:
    """Registry handing out one ``threading.Lock`` per key.

    The database row lock covers multi-process deployments; this covers
    concurrent requests inside one process, where SQLite ignores FOR UPDATE.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[Hashable, Lock] = {}

    def _lock_for(self, key: Hashable) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


holding_locks = KeyedLocks()
sip_locks = KeyedLocks()
