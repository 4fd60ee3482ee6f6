"""
Cache configuration: immutable, validated description of a DualCache, dood!

Tier policies are closed tagged variants instead of nullable fields, so a
configuration that type-checks can only be invalid in ways ``__post_init__``
catches (missing size function, codec without encode/decode, bad capacities):

    RamPolicy  = RamDisabled | RamReference(sizeOf) | RamSerialized(codec)
    DiskPolicy = DiskDisabled | DiskSerialized(codec)

Example:
    >>> codec = JsonCodec()
    >>> config = CacheConfiguration(
    ...     cacheName="users",
    ...     appVersion=3,
    ...     ramPolicy=RamSerialized(codec),
    ...     ramCapacityBytes=1024 * 1024,
    ...     diskPolicy=DiskSerialized(codec),
    ...     diskCapacityBytes=64 * 1024 * 1024,
    ...     ttl=datetime.timedelta(minutes=30),
    ... )
"""

import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, TypeAlias

from . import utils
from .codecs import codecByName
from .errors import ConfigurationError
from .types import Codec, DiskMode, RamMode, SizeOf

logger = logging.getLogger(__name__)

DEFAULT_DISK_DIRECTORY = Path.home() / ".cache" / "dualcache"


@dataclass(frozen=True)
class RamDisabled:
    """No RAM tier"""


@dataclass(frozen=True)
class RamReference:
    """RAM tier keeping live objects, measured by ``sizeOf``"""

    sizeOf: SizeOf[Any]


@dataclass(frozen=True)
class RamSerialized:
    """RAM tier keeping the transport form produced by ``codec``"""

    codec: Codec[Any]


@dataclass(frozen=True)
class DiskDisabled:
    """No disk tier, no filesystem access at all"""


@dataclass(frozen=True)
class DiskSerialized:
    """Disk tier keeping the transport form produced by ``codec``"""

    codec: Codec[Any]


RamPolicy: TypeAlias = RamDisabled | RamReference | RamSerialized
DiskPolicy: TypeAlias = DiskDisabled | DiskSerialized


def _isCodec(obj: Any) -> bool:
    return callable(getattr(obj, "encode", None)) and callable(getattr(obj, "decode", None))


@dataclass(frozen=True)
class CacheConfiguration:
    """
    Immutable configuration of one DualCache.

    Attributes:
        cacheName: Namespace of the cache, also the name of its disk directory
        appVersion: Data version; bumping it invalidates everything on disk
        ramPolicy: How (and whether) values are kept in RAM
        ramCapacityBytes: RAM budget in bytes, required when RAM is enabled
        diskPolicy: Whether values are kept on disk, and with which codec
        diskCapacityBytes: Disk budget in bytes, required when disk is enabled
        diskDirectory: Parent directory of the cache directory
        ttl: Lifetime of every entry, None for entries that never expire
        loggingEnabled: Log per-key tier lookups
        lockStripes: Fixed number of disk lock stripes, None for one lock per key
    """

    cacheName: str
    appVersion: int = 0
    ramPolicy: RamPolicy = field(default_factory=RamDisabled)
    ramCapacityBytes: int = 0
    diskPolicy: DiskPolicy = field(default_factory=DiskDisabled)
    diskCapacityBytes: int = 0
    diskDirectory: Optional[Path] = None
    ttl: Optional[datetime.timedelta] = None
    loggingEnabled: bool = False
    lockStripes: Optional[int] = None

    def __post_init__(self):
        """Validate configuration values"""
        if not isinstance(self.cacheName, str) or not self.cacheName.strip():
            raise ConfigurationError("cacheName must be a non-empty string")
        if "/" in self.cacheName or "\\" in self.cacheName or self.cacheName in (".", ".."):
            raise ConfigurationError(f"cacheName '{self.cacheName}' must be a single path component")
        if self.appVersion < 0:
            raise ConfigurationError("appVersion must be non-negative")

        match self.ramPolicy:
            case RamDisabled():
                pass
            case RamReference(sizeOf=sizeOf):
                if not callable(sizeOf):
                    raise ConfigurationError("Reference RAM mode requires a callable sizeOf")
                if self.ramCapacityBytes <= 0:
                    raise ConfigurationError("ramCapacityBytes must be positive when RAM is enabled")
            case RamSerialized(codec=codec):
                if not _isCodec(codec):
                    raise ConfigurationError("Serialized RAM mode requires a codec with encode/decode")
                if self.ramCapacityBytes <= 0:
                    raise ConfigurationError("ramCapacityBytes must be positive when RAM is enabled")
            case _:
                raise ConfigurationError(f"Unknown RAM policy {self.ramPolicy!r}")

        match self.diskPolicy:
            case DiskDisabled():
                pass
            case DiskSerialized(codec=codec):
                if not _isCodec(codec):
                    raise ConfigurationError("Serialized disk mode requires a codec with encode/decode")
                if self.diskCapacityBytes <= 0:
                    raise ConfigurationError("diskCapacityBytes must be positive when disk is enabled")
            case _:
                raise ConfigurationError(f"Unknown disk policy {self.diskPolicy!r}")

        if self.ttl is not None and self.ttl < datetime.timedelta(milliseconds=1):
            raise ConfigurationError("ttl must be at least one millisecond")
        if self.lockStripes is not None and self.lockStripes <= 0:
            raise ConfigurationError("lockStripes must be positive")

    @property
    def ramMode(self) -> RamMode:
        match self.ramPolicy:
            case RamReference():
                return RamMode.REFERENCE
            case RamSerialized():
                return RamMode.SERIALIZER
            case _:
                return RamMode.DISABLE

    @property
    def diskMode(self) -> DiskMode:
        match self.diskPolicy:
            case DiskSerialized():
                return DiskMode.SERIALIZER
            case _:
                return DiskMode.DISABLE

    @property
    def ramCodec(self) -> Optional[Codec[Any]]:
        match self.ramPolicy:
            case RamSerialized(codec=codec):
                return codec
            case _:
                return None

    @property
    def diskCodec(self) -> Optional[Codec[Any]]:
        match self.diskPolicy:
            case DiskSerialized(codec=codec):
                return codec
            case _:
                return None

    @property
    def sizeOf(self) -> Optional[SizeOf[Any]]:
        match self.ramPolicy:
            case RamReference(sizeOf=sizeOf):
                return sizeOf
            case _:
                return None

    @property
    def ttlMillis(self) -> Optional[int]:
        if self.ttl is None:
            return None
        return self.ttl // datetime.timedelta(milliseconds=1)

    @property
    def diskPath(self) -> Path:
        """Directory owned by the disk tier"""
        return Path(self.diskDirectory or DEFAULT_DISK_DIRECTORY) / self.cacheName

    @classmethod
    def fromDict(
        cls,
        config: Dict[str, Any],
        ramCodec: Optional[Codec[Any]] = None,
        diskCodec: Optional[Codec[Any]] = None,
        sizeOf: Optional[SizeOf[Any]] = None,
    ) -> "CacheConfiguration":
        """
        Build configuration from a ``[cache]`` config table, dood!

        Codecs and size functions can't live in a TOML file, so they are passed
        in; ``ram-codec`` / ``disk-codec`` may instead name a built-in codec
        ("string", "json", "pickle"), and ``disk-codec = "shared"`` reuses the RAM
        codec instance.

        Args:
            config: Dictionary with keys name, app-version, ram-mode, ram-capacity,
                ram-codec, disk-mode, disk-capacity, disk-codec, disk-directory,
                ttl, logging, lock-stripes
            ramCodec: Codec for serialized RAM (overrides ram-codec)
            diskCodec: Codec for disk (overrides disk-codec)
            sizeOf: Size function for reference RAM

        Returns:
            CacheConfiguration: Validated configuration

        Raises:
            ConfigurationError: If any value is missing or invalid
        """
        try:
            ramMode = RamMode(str(config.get("ram-mode", RamMode.DISABLE)).lower())
            diskMode = DiskMode(str(config.get("disk-mode", DiskMode.DISABLE)).lower())

            ramPolicy: RamPolicy = RamDisabled()
            match ramMode:
                case RamMode.REFERENCE:
                    if sizeOf is None:
                        raise ConfigurationError("ram-mode 'reference' requires a sizeOf function")
                    ramPolicy = RamReference(sizeOf)
                case RamMode.SERIALIZER:
                    if ramCodec is None:
                        ramCodec = codecByName(str(config.get("ram-codec", "string")))
                    ramPolicy = RamSerialized(ramCodec)

            diskPolicy: DiskPolicy = DiskDisabled()
            if diskMode == DiskMode.SERIALIZER:
                if diskCodec is None:
                    diskCodecName = str(config.get("disk-codec", "string"))
                    if diskCodecName == "shared":
                        if ramCodec is None:
                            raise ConfigurationError("disk-codec 'shared' requires a serialized RAM tier")
                        diskCodec = ramCodec
                    else:
                        diskCodec = codecByName(diskCodecName)
                diskPolicy = DiskSerialized(diskCodec)

            ttl: Optional[datetime.timedelta] = None
            rawTtl = config.get("ttl", None)
            if isinstance(rawTtl, str):
                ttl = datetime.timedelta(seconds=utils.parseDelay(rawTtl))
            elif rawTtl is not None:
                ttl = datetime.timedelta(seconds=float(rawTtl))

            diskDirectory = config.get("disk-directory", None)
            lockStripes = config.get("lock-stripes", None)

            return cls(
                cacheName=config["name"],
                appVersion=int(config.get("app-version", 0)),
                ramPolicy=ramPolicy,
                ramCapacityBytes=int(config.get("ram-capacity", 0)),
                diskPolicy=diskPolicy,
                diskCapacityBytes=int(config.get("disk-capacity", 0)),
                diskDirectory=Path(diskDirectory).expanduser() if diskDirectory else None,
                ttl=ttl,
                loggingEnabled=bool(config.get("logging", False)),
                lockStripes=int(lockStripes) if lockStripes is not None else None,
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing required cache option {e}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid cache configuration: {e}") from e
