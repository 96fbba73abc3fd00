"""In-process mutual exclusion keyed by an arbitrary string."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """
    One lock per key, created on first use.

    Two overlapping poll cycles in the same process take the same source's
    lock, so they cannot both read a stale cursor and republish its postings.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield

    def is_held(self, key: str) -> bool:
        return self._lock_for(key).locked()
