"""
RAM tier: bounded in-memory layer of the dual cache
"""

import logging
from typing import Any, Callable, Dict, Optional

from .bounded_map import BoundedMap
from .types import RamMode, Transport

logger = logging.getLogger(__name__)


def transportSize(value: Transport) -> int:
    """Size of a serialized entry is the length of its transport form"""
    return len(value)


class RamTier:
    """
    In-memory tier in either reference or serialized mode.

    Reference mode stores whatever object the orchestrator hands over (the value,
    or its ExpiringEntry wrapper) and measures it with the caller's size function.
    Serialized mode stores the transport form and measures it by its length.
    Both modes share the same LRU eviction policy and ``get`` promotes recency.
    """

    def __init__(self, mode: RamMode, maxSizeBytes: int, sizeOf: Optional[Callable[[Any], int]] = None):
        """
        Initialize RAM tier.

        Args:
            mode: RamMode.REFERENCE or RamMode.SERIALIZER
            maxSizeBytes: Byte budget for the tier
            sizeOf: Size function, required in reference mode
        """
        match mode:
            case RamMode.REFERENCE:
                if sizeOf is None:
                    raise ValueError("Reference RAM tier requires a sizeOf function")
                self._map: BoundedMap[Any] = BoundedMap(maxSizeBytes, sizeOf)
            case RamMode.SERIALIZER:
                self._map = BoundedMap(maxSizeBytes, transportSize)
            case _:
                raise ValueError(f"RAM tier can't be created in mode '{mode}'")

        self.mode = mode
        logger.debug(f"RAM tier created: mode={mode}, maxSizeBytes={maxSizeBytes}")

    def get(self, key: str) -> Optional[Any]:
        return self._map.get(key)

    def put(self, key: str, value: Any) -> None:
        self._map.put(key, value)

    def remove(self, key: str) -> None:
        self._map.remove(key)

    def clear(self) -> None:
        self._map.removeAll()

    def contains(self, key: str) -> bool:
        return key in self._map

    def keys(self) -> frozenset[str]:
        return self._map.snapshotKeys()

    def usedBytes(self) -> int:
        return self._map.totalSizeBytes()

    @property
    def maxSizeBytes(self) -> int:
        return self._map.maxSizeBytes

    def getStats(self) -> Dict[str, Any]:
        return {"mode": str(self.mode), **self._map.getStats()}
