"""
In-process per-resource locks.

Rooms and channel mappings each get their own lock, keyed by id:

- room locks serialize the check-availability-then-write sequence of
  reservation writes on one room
- mapping locks serialize overlapping imports of the same channel mapping

Different keys never block each other. Locks are created lazily and kept for
the life of the process; the key space is bounded by the number of rooms and
mappings.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

import structlog

logger = structlog.get_logger(__name__)


class LockRegistry:
    """
    Lazily created ``threading.Lock`` per key.

    Example:
        >>> room_locks = LockRegistry("room")
        >>> with room_locks.hold("room-101"):
        ...     pass
    """

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Block until the lock for ``key`` is free, then hold it for the block."""
        lock = self._lock_for(key)
        if lock.locked():
            logger.debug("lock_wait", registry=self.name, key=key)
        with lock:
            yield

    @contextmanager
    def hold_many(self, keys: Iterable[str]) -> Iterator[None]:
        """
        Hold several locks at once.

        Keys are acquired in sorted order so that two callers locking
        overlapping sets cannot deadlock.
        """
        ordered = sorted(set(keys))
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def size(self) -> int:
        with self._guard:
            return len(self._locks)


# Global registries
room_locks = LockRegistry("room")
mapping_locks = LockRegistry("mapping")
