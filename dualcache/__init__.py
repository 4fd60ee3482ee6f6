"""
dualcache - Two-tier (RAM + disk) object cache, dood!

A bounded in-memory tier and a bounded persistent tier behind one key/value
contract, with optional per-entry expiration and pluggable serialization.

Core Components:
- DualCache: The cache itself (also exported as CacheOrchestrator)
- CacheConfiguration: Immutable, validated cache configuration
- Codec: Protocol for converting values to their stored form and back
- KeyedLock: Per-key and whole-store locking used by the disk tier

Example Usage:
    >>> from dualcache import CacheConfiguration, DiskSerialized, DualCache, JsonCodec, RamSerialized
    >>>
    >>> codec = JsonCodec()
    >>> config = CacheConfiguration(
    ...     cacheName="users",
    ...     ramPolicy=RamSerialized(codec),
    ...     ramCapacityBytes=1024 * 1024,
    ...     diskPolicy=DiskSerialized(codec),
    ...     diskCapacityBytes=64 * 1024 * 1024,
    ... )
    >>> with DualCache(config) as cache:
    ...     cache.put("user:123", {"name": "Prinny", "level": 99})
    ...     userData = cache.get("user:123")
"""

from .bounded_map import BoundedMap
from .codecs import JsonCodec, PickleCodec, StringCodec, codecByName
from .configuration import (
    CacheConfiguration,
    DiskDisabled,
    DiskPolicy,
    DiskSerialized,
    RamDisabled,
    RamPolicy,
    RamReference,
    RamSerialized,
)
from .durable_store import DurableStore
from .errors import (
    CodecDecodeError,
    CodecEncodeError,
    CodecError,
    ConfigurationError,
    DualCacheError,
    TransientIOError,
)
from .expiring import ExpiringCodec, ExpiringEntry, ExpiringSizeOf
from .keyed_lock import KeyedLock
from .orchestrator import CacheOrchestrator, DualCache
from .types import Codec, DiskMode, RamMode, SizeOf, Transport, V

__version__ = "0.1.0"

__all__ = [
    # Core types
    "Codec",
    "SizeOf",
    "Transport",
    "V",
    "RamMode",
    "DiskMode",
    # Configuration
    "CacheConfiguration",
    "RamPolicy",
    "RamDisabled",
    "RamReference",
    "RamSerialized",
    "DiskPolicy",
    "DiskDisabled",
    "DiskSerialized",
    # Cache
    "DualCache",
    "CacheOrchestrator",
    # Building blocks
    "BoundedMap",
    "DurableStore",
    "KeyedLock",
    # Codecs
    "StringCodec",
    "JsonCodec",
    "PickleCodec",
    "codecByName",
    "ExpiringEntry",
    "ExpiringCodec",
    "ExpiringSizeOf",
    # Errors
    "DualCacheError",
    "ConfigurationError",
    "TransientIOError",
    "CodecError",
    "CodecEncodeError",
    "CodecDecodeError",
]
