"""
DualCache: two-tier (RAM + disk) object cache with optional TTL, dood!

The orchestrator owns one RamTier and one DiskTier (either may be disabled) and
presents them as a single key/value cache:

- ``put`` writes every enabled tier, encoding once when both tiers share a codec
- ``get`` looks in RAM first, then on disk, promoting disk hits into RAM
- expired entries are removed lazily, the first time ``get`` sees them
- disk failures are logged and treated as misses, they never reach the caller
"""

import logging
import threading
from types import TracebackType
from typing import Any, Callable, Dict, Generic, Optional, Type

from . import utils
from .configuration import CacheConfiguration
from .disk_tier import DiskTier
from .errors import CodecDecodeError, ConfigurationError, TransientIOError
from .expiring import ExpiringCodec, ExpiringEntry, ExpiringSizeOf
from .ram_tier import RamTier
from .types import Codec, DiskMode, RamMode, Transport, V

logger = logging.getLogger(__name__)


class DualCache(Generic[V]):
    """
    Two-tier object cache, dood!

    Example:
        >>> codec = JsonCodec()
        >>> config = CacheConfiguration(
        ...     cacheName="users",
        ...     ramPolicy=RamSerialized(codec),
        ...     ramCapacityBytes=1024 * 1024,
        ...     diskPolicy=DiskSerialized(codec),
        ...     diskCapacityBytes=64 * 1024 * 1024,
        ... )
        >>> with DualCache(config) as cache:
        ...     cache.put("user:1", {"name": "Alice"})
        ...     cache.get("user:1")
        {'name': 'Alice'}

    Thread-safe: any number of threads may share one instance. Operations on the
    same key are serialized on disk; RAM writes are last-writer-wins and there is
    no atomicity across the two tiers.
    """

    def __init__(self, configuration: CacheConfiguration, clock: Optional[Callable[[], int]] = None):
        """
        Initialize cache and open its disk store.

        Args:
            configuration: Validated cache configuration
            clock: Function returning current time as epoch milliseconds
                (defaults to the wall clock)
        """
        self._config = configuration
        self._clock = clock if clock is not None else utils.nowMillis
        self._ttlMillis = configuration.ttlMillis

        ramCodec = configuration.ramCodec
        diskCodec = configuration.diskCodec
        # Same codec instance in both tiers: encode once, reuse the transport
        self._sharedCodec = ramCodec is not None and ramCodec is diskCodec
        if self._ttlMillis is not None:
            if ramCodec is not None:
                ramCodec = ExpiringCodec(ramCodec)
            if diskCodec is not None:
                diskCodec = ramCodec if self._sharedCodec else ExpiringCodec(diskCodec)
        self._ramCodec: Optional[Codec[Any]] = ramCodec
        self._diskCodec: Optional[Codec[Any]] = diskCodec

        self._ram: Optional[RamTier] = None
        match configuration.ramMode:
            case RamMode.REFERENCE:
                sizeOf = configuration.sizeOf
                if self._ttlMillis is not None:
                    sizeOf = ExpiringSizeOf(sizeOf)
                self._ram = RamTier(RamMode.REFERENCE, configuration.ramCapacityBytes, sizeOf)
            case RamMode.SERIALIZER:
                self._ram = RamTier(RamMode.SERIALIZER, configuration.ramCapacityBytes)
            case RamMode.DISABLE:
                pass

        self._disk: Optional[DiskTier] = None
        if configuration.diskMode == DiskMode.SERIALIZER:
            self._disk = DiskTier(
                configuration.diskPath,
                configuration.appVersion,
                configuration.diskCapacityBytes,
                lockStripes=configuration.lockStripes,
            )

        self._statsLock = threading.Lock()
        self._stats: Dict[str, int] = {
            "ramHits": 0,
            "diskHits": 0,
            "misses": 0,
            "expired": 0,
            "diskErrors": 0,
        }

        logger.info(
            f"DualCache '{configuration.cacheName}' created: ram={configuration.ramMode}, "
            f"disk={configuration.diskMode}, ttl={configuration.ttl}, dood!"
        )

    @property
    def configuration(self) -> CacheConfiguration:
        return self._config

    def _trace(self, message: str) -> None:
        if self._config.loggingEnabled:
            logger.debug(f"[{self._config.cacheName}] {message}")

    def _count(self, counter: str) -> None:
        with self._statsLock:
            self._stats[counter] += 1

    def _diskFailed(self, error: TransientIOError) -> None:
        logger.warning(f"[{self._config.cacheName}] Disk operation failed, continuing without disk: {error}")
        self._count("diskErrors")

    def _checkKey(self, key: str) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Cache key must be a string, got {type(key).__name__}")
        if not key:
            raise ValueError("Cache key must not be empty")

    def _isExpired(self, stored: Any) -> bool:
        return self._ttlMillis is not None and stored.isExpired(self._clock())

    def _unwrap(self, stored: Any) -> V:
        if self._ttlMillis is not None:
            return stored.value
        return stored

    def put(self, key: str, value: V) -> None:
        """
        Store value in every enabled tier, dood!

        Args:
            key: Non-empty cache key
            value: Value to store, anything except None

        Raises:
            ValueError: If value is None or key is empty
            CodecEncodeError: If a codec can't encode the value
        """
        self._checkKey(key)
        if value is None:
            raise ValueError("Can't cache None, use delete() to drop a key")

        stored: Any = value
        if self._ttlMillis is not None:
            stored = ExpiringEntry(expiresAtEpochMillis=self._clock() + self._ttlMillis, value=value)

        # Encode everything before touching any tier so an encode error leaves both tiers untouched
        ramTransport: Optional[Transport] = None
        if self._ram is not None and self._ram.mode == RamMode.SERIALIZER:
            ramTransport = self._ramCodec.encode(stored)

        diskTransport: Optional[Transport] = None
        if self._disk is not None:
            if self._sharedCodec and ramTransport is not None:
                diskTransport = ramTransport
            else:
                diskTransport = self._diskCodec.encode(stored)

        if self._ram is not None:
            self._ram.put(key, ramTransport if ramTransport is not None else stored)

        if self._disk is not None:
            try:
                self._disk.write(key, diskTransport)
            except TransientIOError as e:
                self._diskFailed(e)

    def get(self, key: str) -> Optional[V]:
        """
        Get value from RAM, falling back to disk, dood!

        Args:
            key: Cache key

        Returns:
            Optional[V]: Cached value, or None if absent or expired

        Raises:
            ConfigurationError: If a value this cache put into RAM can't be decoded
        """
        self._checkKey(key)

        if self._ram is not None:
            raw = self._ram.get(key)
            if raw is not None:
                stored = self._decodeRam(key, raw)
                if self._isExpired(stored):
                    self._trace(f"'{key}' in RAM but expired")
                    self._count("expired")
                    self.delete(key)
                    return None
                self._trace(f"'{key}' in RAM")
                self._count("ramHits")
                return self._unwrap(stored)
            self._trace(f"'{key}' not in RAM")

        if self._disk is None:
            self._count("misses")
            return None

        try:
            transport = self._disk.read(key)
        except TransientIOError as e:
            self._diskFailed(e)
            self._count("misses")
            return None

        if transport is None:
            self._trace(f"'{key}' not on disk")
            self._count("misses")
            return None

        try:
            stored = self._diskCodec.decode(transport)
        except CodecDecodeError as e:
            logger.warning(f"[{self._config.cacheName}] Corrupt disk entry '{key}', removing it: {e}")
            self._removeFromDisk(key)
            self._count("misses")
            return None

        if self._isExpired(stored):
            self._trace(f"'{key}' on disk but expired")
            self._count("expired")
            self.delete(key)
            return None

        self._trace(f"'{key}' on disk")
        self._count("diskHits")

        if self._ram is not None:
            if self._ram.mode == RamMode.SERIALIZER:
                self._ram.put(key, transport if self._sharedCodec else self._ramCodec.encode(stored))
            else:
                self._ram.put(key, stored)

        return self._unwrap(stored)

    def _decodeRam(self, key: str, raw: Any) -> Any:
        if self._ram.mode != RamMode.SERIALIZER:
            return raw
        try:
            return self._ramCodec.decode(raw)
        except CodecDecodeError as e:
            raise ConfigurationError(f"RAM codec can't decode its own output for key '{key}': {e}") from e

    def _removeFromDisk(self, key: str) -> None:
        try:
            self._disk.remove(key)
        except TransientIOError as e:
            self._diskFailed(e)

    def delete(self, key: str) -> None:
        """Remove key from every enabled tier, absent keys are ignored"""
        self._checkKey(key)
        if self._ram is not None:
            self._ram.remove(key)
        if self._disk is not None:
            self._removeFromDisk(key)

    def invalidate(self) -> None:
        """Drop everything: disk first, then RAM (RAM is cleared even if the wipe fails)"""
        try:
            self.invalidateDisk()
        finally:
            self.invalidateRAM()

    def invalidateRAM(self) -> None:
        if self._ram is not None:
            self._ram.clear()
            self._trace("RAM invalidated")

    def invalidateDisk(self) -> None:
        """Wipe the disk store and reopen an empty one at the same path"""
        if self._disk is None:
            return
        try:
            self._disk.wipe()
            self._trace("disk invalidated")
        except TransientIOError as e:
            logger.error(f"[{self._config.cacheName}] Failed to invalidate disk: {e}")
            self._count("diskErrors")

    def contains(self, key: str) -> bool:
        """
        Check whether key is present in any tier.

        Doesn't promote recency in RAM and doesn't check expiry: an expired entry
        nobody has tried to ``get`` yet is still reported as present.
        """
        self._checkKey(key)
        if self._ram is not None and self._ram.contains(key):
            return True
        if self._disk is None:
            return False
        try:
            return self._disk.contains(key)
        except TransientIOError as e:
            self._diskFailed(e)
            return False

    def ramUsedBytes(self) -> int:
        """Get bytes used by RAM tier, or -1 if RAM is disabled"""
        if self._ram is None:
            return -1
        return self._ram.usedBytes()

    def diskUsedBytes(self) -> int:
        """Get bytes used by disk tier, or -1 if disk is disabled (0 if it can't be measured)"""
        if self._disk is None:
            return -1
        try:
            return self._disk.usedBytes()
        except TransientIOError as e:
            self._diskFailed(e)
            return 0

    def getRamMode(self) -> RamMode:
        return self._config.ramMode

    def getDiskMode(self) -> DiskMode:
        return self._config.diskMode

    def getStats(self) -> Dict[str, Any]:
        """
        Get cache statistics, dood!

        Returns:
            Dict with cache name, tier modes, per-tier stats (None for disabled
            tiers) and hit/miss/expired/diskErrors counters
        """
        with self._statsLock:
            counters = dict(self._stats)
        return {
            "name": self._config.cacheName,
            "ramMode": str(self._config.ramMode),
            "diskMode": str(self._config.diskMode),
            "ram": self._ram.getStats() if self._ram is not None else None,
            "disk": self._disk.getStats() if self._disk is not None else None,
            **counters,
        }

    def close(self) -> None:
        """Close the disk store; RAM contents are kept until the cache is dropped"""
        if self._disk is None:
            return
        try:
            self._disk.close()
        except TransientIOError as e:
            logger.error(f"[{self._config.cacheName}] Failed to close disk store: {e}")

    def __enter__(self) -> "DualCache[V]":
        return self

    def __exit__(
        self,
        excType: Optional[Type[BaseException]],
        excValue: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()


CacheOrchestrator = DualCache
