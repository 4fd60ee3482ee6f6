"""
Disk tier: durable store access guarded by the keyed lock
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .durable_store import DurableStore
from .errors import TransientIOError
from .keyed_lock import KeyedLock
from .types import Transport

logger = logging.getLogger(__name__)


class DiskTier:
    """
    Pass-through from the orchestrator to the DurableStore.

    Holds no values of its own: every call takes the key lock (or the whole-store
    lock for ``wipe``), touches the store and returns. Store failures are raised as
    TransientIOError so the orchestrator can log them and fail open.
    """

    def __init__(self, directory: Path, appVersion: int, maxSizeBytes: int, lockStripes: Optional[int] = None):
        """
        Initialize disk tier and open its store.

        An unopenable store is logged, not raised: the tier then reports every key
        as absent and every write as failed until ``wipe`` manages to reopen it.

        Args:
            directory: Directory owned by the store
            appVersion: Data version of the store
            maxSizeBytes: Size limit of the store
            lockStripes: Lock striping, see KeyedLock
        """
        self.locks = KeyedLock(stripes=lockStripes)
        self.store = DurableStore(directory, appVersion, maxSizeBytes, openNow=False)
        try:
            self.store.open()
        except TransientIOError as e:
            logger.error(f"Disk tier unavailable, continuing without it: {e}")

    def read(self, key: str) -> Optional[Transport]:
        with self.locks.keyLock(key):
            return self.store.get(key)

    def write(self, key: str, value: Transport) -> None:
        with self.locks.keyLock(key):
            with self.store.edit(key) as editor:
                editor.set(value)

    def remove(self, key: str) -> bool:
        with self.locks.keyLock(key):
            return self.store.remove(key)

    def contains(self, key: str) -> bool:
        with self.locks.keyLock(key):
            return self.store.contains(key)

    def wipe(self) -> None:
        """Wipe and reopen the store, excluding every key operation meanwhile"""
        with self.locks.wholeStoreLock():
            self.store.wipeAndReopen()

    def usedBytes(self) -> int:
        return self.store.sizeBytes()

    def close(self) -> None:
        with self.locks.wholeStoreLock():
            self.store.close()

    @property
    def directory(self) -> Path:
        return self.store.directory

    def getStats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "directory": str(self.store.directory),
            "maxSizeBytes": self.store.maxSizeBytes,
            "open": self.store.isOpen,
        }
        if self.store.isOpen:
            try:
                stats["entries"] = self.store.entryCount()
                stats["sizeBytes"] = self.store.sizeBytes()
            except TransientIOError as e:
                logger.warning(f"Unable to collect disk stats: {e}")
        return stats
