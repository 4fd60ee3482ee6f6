"""
Core type definitions and protocols for dualcache, dood!

This module contains the fundamental type definitions and protocols used
throughout the cache library: the value type variable, the transport form
produced by codecs, and the Codec/SizeOf protocols callers implement to plug
their own serialization and size accounting into the cache, dood!
"""

from enum import StrEnum
from typing import Protocol, TypeAlias, TypeVar

# Type variables for generic cache operations, dood!
V = TypeVar("V")  # Value type - can be any type except None

# Transport form stored by serialized tiers: text or raw bytes
Transport: TypeAlias = str | bytes


class RamMode(StrEnum):
    """How values are kept in the RAM tier"""

    DISABLE = "disable"
    REFERENCE = "reference"  # Live objects, sized by caller-supplied SizeOf
    SERIALIZER = "serializer"  # Transport form, sized by its length


class DiskMode(StrEnum):
    """How values are kept in the disk tier"""

    DISABLE = "disable"
    SERIALIZER = "serializer"


class Codec(Protocol[V]):
    """
    Protocol for converting objects to their transport form and back, dood!

    Implementations may return either ``str`` or ``bytes`` from ``encode``, but
    must accept the same type back in ``decode``. Failures should be reported as
    CodecEncodeError / CodecDecodeError from ``dualcache.errors``.

    Type Parameters:
        V: The type of objects that can be converted to transport form

    Example:
        >>> class UpperCodec(Codec[str]):
        ...     def encode(self, obj: str) -> str:
        ...         return obj.upper()
        ...     def decode(self, value: str) -> str:
        ...         return value.lower()
    """

    def encode(self, obj: V) -> Transport:
        """
        Convert object to transport form, dood!

        Args:
            obj: The object to convert

        Returns:
            Transport: Text or bytes representation of the object
        """
        ...

    def decode(self, value: Transport) -> V:
        """
        Convert transport form back to object, dood!

        Args:
            value: The transport form previously produced by encode()

        Returns:
            V: The decoded object
        """
        ...


class SizeOf(Protocol[V]):
    """Protocol for measuring how many bytes a live value occupies in RAM"""

    def __call__(self, obj: V) -> int: ...
