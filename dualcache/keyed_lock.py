"""
Keyed lock: per-key exclusive locks plus a whole-store lock, dood!

Key-scoped operations hold a shared reader/writer lock for reading and then
their own key lock; whole-store operations hold the same reader/writer lock for
writing. A whole-store operation therefore waits for every in-flight key
operation and keeps new ones out until it is done, without two independent
lock objects that could be taken in opposite orders.
"""

import logging
import threading
import zlib
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ReadWriteLock:
    """
    Writer-preferring reader/writer lock.

    Any number of readers may hold the lock together. A waiting writer blocks new
    readers so that a stream of key operations can't starve a wipe. Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writersWaiting = 0

    def acquireRead(self) -> None:
        with self._cond:
            while self._writer or self._writersWaiting:
                self._cond.wait()
            self._readers += 1

    def releaseRead(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquireWrite(self) -> None:
        with self._cond:
            self._writersWaiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writersWaiting -= 1
            self._writer = True

    def releaseWrite(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def readLocked(self) -> Iterator[None]:
        self.acquireRead()
        try:
            yield
        finally:
            self.releaseRead()

    @contextmanager
    def writeLocked(self) -> Iterator[None]:
        self.acquireWrite()
        try:
            yield
        finally:
            self.releaseWrite()


class KeyedLock:
    """
    Exclusive access per key, and to the whole store.

    By default every key gets its own lock, created on first use and kept for the
    lifetime of the object. Caches with very many distinct keys should pass
    ``stripes``: keys are then hashed onto a fixed set of locks, bounding memory at
    the price of unrelated keys occasionally sharing a lock.

    Example:
        >>> locks = KeyedLock()
        >>> locks.withKeyLock("user:1", lambda: store.get("user:1"))
        >>> locks.withWholeStoreLock(store.wipeAndReopen)
    """

    def __init__(self, stripes: Optional[int] = None):
        """
        Initialize keyed lock.

        Args:
            stripes: Number of lock stripes, or None for one lock per key
        """
        if stripes is not None and stripes <= 0:
            raise ValueError(f"stripes must be positive, got {stripes}")

        self._storeLock = ReadWriteLock()
        self._tableLock = threading.Lock()
        self._keyLocks: Dict[str, threading.Lock] = {}
        self._stripes: Optional[List[threading.Lock]] = None
        if stripes is not None:
            self._stripes = [threading.Lock() for _ in range(stripes)]

    def _lockFor(self, key: str) -> threading.Lock:
        if self._stripes is not None:
            # crc32 is stable across processes, unlike hash() on str
            return self._stripes[zlib.crc32(key.encode("utf-8")) % len(self._stripes)]

        with self._tableLock:
            lock = self._keyLocks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._keyLocks[key] = lock
            return lock

    @contextmanager
    def keyLock(self, key: str) -> Iterator[None]:
        """Hold exclusive access to ``key`` for the duration of the block"""
        with self._storeLock.readLocked():
            with self._lockFor(key):
                yield

    @contextmanager
    def wholeStoreLock(self) -> Iterator[None]:
        """Hold exclusive access to the whole store for the duration of the block"""
        with self._storeLock.writeLocked():
            yield

    def withKeyLock(self, key: str, fn: Callable[[], R]) -> R:
        """Run ``fn`` while holding the lock for ``key``"""
        with self.keyLock(key):
            return fn()

    def withWholeStoreLock(self, fn: Callable[[], R]) -> R:
        """Run ``fn`` while holding the whole-store lock"""
        with self.wholeStoreLock():
            return fn()

    def lockCount(self) -> int:
        """Get number of distinct key locks currently allocated"""
        if self._stripes is not None:
            return len(self._stripes)
        with self._tableLock:
            return len(self._keyLocks)
