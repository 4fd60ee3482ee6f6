"""
Durable store: versioned, size-bounded persistent key/value store on top of diskcache.

One store owns one directory. Next to the diskcache files it keeps a ``VERSION``
marker holding the application version the data was written with; opening the
directory with a different version wipes it first, so bumping the version
invalidates everything written before. A non-empty directory holding neither the
marker nor a diskcache index is never opened or wiped.
"""

import logging
import shutil
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Iterator, Optional, Type

import diskcache

from .errors import TransientIOError
from .types import Transport

logger = logging.getLogger(__name__)

VERSION_FILE = "VERSION"
# Index file diskcache creates in every cache directory
DISKCACHE_DB = diskcache.core.DBNAME

# Failures diskcache and the filesystem can throw at us
STORE_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


@contextmanager
def translateErrors(action: str, key: Optional[str] = None) -> Iterator[None]:
    """Re-raise store failures as TransientIOError"""
    try:
        yield
    except STORE_ERRORS as e:
        target = f" for key '{key}'" if key is not None else ""
        raise TransientIOError(f"Failed to {action}{target}: {e}") from e


class StoreEditor:
    """
    Pending write of one entry: set the value, then commit.

    Used as a context manager the write is committed on normal exit and dropped
    if the block raises.
    """

    def __init__(self, store: "DurableStore", key: str):
        self._store = store
        self._key = key
        self._value: Optional[Transport] = None
        self._done = False

    def set(self, value: Transport) -> None:
        if self._done:
            raise RuntimeError(f"Editor for '{self._key}' is already closed")
        self._value = value

    def commit(self) -> None:
        if self._done:
            raise RuntimeError(f"Editor for '{self._key}' is already closed")
        self._done = True
        if self._value is None:
            raise ValueError(f"Nothing to commit for key '{self._key}'")
        self._store._write(self._key, self._value)

    def abort(self) -> None:
        self._done = True
        self._value = None

    def __enter__(self) -> "StoreEditor":
        return self

    def __exit__(
        self,
        excType: Optional[Type[BaseException]],
        excValue: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        if self._done:
            return
        if excType is None and self._value is not None:
            self.commit()
        else:
            self.abort()


class DurableStore:
    """
    Persistent, capacity-bounded store keeping one transport value per key.

    Eviction is delegated to diskcache (least-recently-used, by on-disk volume).
    Every failure is raised as TransientIOError; deciding whether to fail open is
    up to the caller. The store is safe to share between threads but only one
    handle per directory should be open at a time.
    """

    def __init__(self, directory: Path, appVersion: int, maxSizeBytes: int, openNow: bool = True):
        """
        Initialize durable store.

        Args:
            directory: Directory owned by this store
            appVersion: Data version; a different version on disk is wiped
            maxSizeBytes: Size limit passed to diskcache
            openNow: Open the store immediately (raises TransientIOError on failure)
        """
        self.directory = Path(directory)
        self.appVersion = appVersion
        self.maxSizeBytes = maxSizeBytes
        self._cache: Optional[diskcache.Cache] = None
        if openNow:
            self.open()

    @property
    def isOpen(self) -> bool:
        return self._cache is not None

    def open(self) -> None:
        """Open (or create) the store, wiping data written by another version"""
        if self._cache is not None:
            return

        with translateErrors(f"open store at {self.directory}"):
            self.directory.mkdir(parents=True, exist_ok=True)
            self._checkVersion()
            self._cache = diskcache.Cache(
                str(self.directory),
                size_limit=self.maxSizeBytes,
                eviction_policy="least-recently-used",
            )
        logger.info(f"Opened durable store at {self.directory} (version {self.appVersion}), dood!")

    def _isOwnDirectory(self) -> bool:
        """Directory is missing, empty, or holds a store (versioned or bare diskcache)"""
        if not self.directory.exists():
            return True
        if (self.directory / VERSION_FILE).exists() or (self.directory / DISKCACHE_DB).exists():
            return True
        return not any(self.directory.iterdir())

    def _checkVersion(self) -> None:
        if not self._isOwnDirectory():
            raise TransientIOError(f"Refusing to use non-empty directory {self.directory} not created by dualcache")

        marker = self.directory / VERSION_FILE
        if marker.exists():
            storedVersion = marker.read_text(encoding="utf-8").strip()
            if storedVersion == str(self.appVersion):
                return
            logger.info(f"Store version changed {storedVersion} -> {self.appVersion}, wiping {self.directory}")
            self._removeDirectory()
        elif (self.directory / DISKCACHE_DB).exists():
            logger.warning(f"Unversioned store found in {self.directory}, wiping")
            self._removeDirectory()

        self.directory.mkdir(parents=True, exist_ok=True)
        marker.write_text(str(self.appVersion), encoding="utf-8")

    def _removeDirectory(self) -> None:
        shutil.rmtree(self.directory)

    def _requireCache(self) -> diskcache.Cache:
        if self._cache is None:
            raise TransientIOError(f"Durable store at {self.directory} is not open")
        return self._cache

    def get(self, key: str) -> Optional[Transport]:
        """Get stored transport value, or None if absent"""
        cache = self._requireCache()
        with translateErrors("read entry", key):
            return cache.get(key, default=None, retry=True)

    def edit(self, key: str) -> StoreEditor:
        """Start writing the entry for ``key``"""
        self._requireCache()
        return StoreEditor(self, key)

    def _write(self, key: str, value: Transport) -> None:
        cache = self._requireCache()
        with translateErrors("write entry", key):
            cache.set(key, value, retry=True)

    def remove(self, key: str) -> bool:
        """Remove entry, returning True if it existed"""
        cache = self._requireCache()
        with translateErrors("remove entry", key):
            return cache.delete(key, retry=True)

    def contains(self, key: str) -> bool:
        cache = self._requireCache()
        with translateErrors("probe entry", key):
            return key in cache

    def sizeBytes(self) -> int:
        """Get on-disk volume of the store in bytes"""
        cache = self._requireCache()
        with translateErrors("measure store"):
            return cache.volume()

    def entryCount(self) -> int:
        cache = self._requireCache()
        with translateErrors("count entries"):
            return len(cache)

    def close(self) -> None:
        """Close the store handle, keeping data on disk"""
        if self._cache is None:
            return
        cache, self._cache = self._cache, None
        with translateErrors("close store"):
            cache.close()

    def wipeAndReopen(self) -> None:
        """Delete every file of the store and open a fresh one at the same path"""
        self.close()
        with translateErrors(f"wipe store at {self.directory}"):
            if not self._isOwnDirectory():
                raise TransientIOError(f"Refusing to wipe directory {self.directory} not created by dualcache")
            if self.directory.exists():
                self._removeDirectory()
        self.open()
        logger.info(f"Wiped durable store at {self.directory}, dood!")
