"""
Bounded map: thread-safe LRU map with capacity measured in bytes
"""

import logging
from collections import OrderedDict
from threading import RLock
from typing import Any, Callable, Dict, FrozenSet, Generic, Optional, TypeVar

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

V = TypeVar("V")


class BoundedMap(Generic[V]):
    """
    LRU map keyed by string whose capacity is a byte budget, not an entry count.

    Every stored value is measured once with ``sizeOf`` when it is put. Whenever the
    running total would exceed ``maxSizeBytes``, least-recently-used entries are
    evicted synchronously inside ``put``. Eviction is silent: it never blocks on
    anything but the map's own lock and never raises.
    """

    def __init__(self, maxSizeBytes: int, sizeOf: Callable[[V], int]):
        """
        Initialize bounded map.

        Args:
            maxSizeBytes: Byte budget shared by all entries
            sizeOf: Function measuring one value in bytes
        """
        if maxSizeBytes <= 0:
            raise ConfigurationError(f"maxSizeBytes must be positive, got {maxSizeBytes}")

        self.maxSizeBytes = maxSizeBytes
        self._sizeOf = sizeOf
        self._entries: OrderedDict[str, V] = OrderedDict()
        self._sizes: Dict[str, int] = {}
        self._totalSize = 0
        self._evictions = 0
        self._lock = RLock()

    def _measure(self, key: str, value: V) -> int:
        size = self._sizeOf(value)
        if size < 0:
            raise ConfigurationError(f"Negative size {size} for key '{key}'")
        return size

    def _drop(self, key: str) -> None:
        """Remove key from all bookkeeping (lock must be held)"""
        del self._entries[key]
        self._totalSize -= self._sizes.pop(key)

    def get(self, key: str) -> Optional[V]:
        """Get value, moving it to end (most recently used)"""
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def put(self, key: str, value: V) -> None:
        """Put value, evicting least recently used entries if over capacity"""
        size = self._measure(key, value)
        with self._lock:
            if key in self._entries:
                self._drop(key)

            if size > self.maxSizeBytes:
                logger.debug(f"Entry '{key}' ({size} bytes) exceeds capacity {self.maxSizeBytes}, not cached")
                return

            self._entries[key] = value
            self._sizes[key] = size
            self._totalSize += size

            while self._totalSize > self.maxSizeBytes:
                oldestKey = next(iter(self._entries))
                self._drop(oldestKey)
                self._evictions += 1
                logger.debug(f"LRU evicted key: {oldestKey}")

    def remove(self, key: str) -> Optional[V]:
        """Remove key, returning its value if it was present"""
        with self._lock:
            if key not in self._entries:
                return None
            value = self._entries[key]
            self._drop(key)
            return value

    def removeAll(self) -> None:
        """Remove every entry"""
        with self._lock:
            self._entries.clear()
            self._sizes.clear()
            self._totalSize = 0

    def snapshotKeys(self) -> FrozenSet[str]:
        """Get keys present right now"""
        with self._lock:
            return frozenset(self._entries)

    def totalSizeBytes(self) -> int:
        """Get sum of sizes of all stored entries"""
        with self._lock:
            return self._totalSize

    def __contains__(self, key: object) -> bool:
        # Presence check, does not touch recency
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def getStats(self) -> Dict[str, Any]:
        """Get map statistics"""
        with self._lock:
            return {
                "entries": len(self._entries),
                "sizeBytes": self._totalSize,
                "maxSizeBytes": self.maxSizeBytes,
                "evictions": self._evictions,
            }
