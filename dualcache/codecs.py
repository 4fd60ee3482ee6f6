"""
Codec implementations for cache storage, dood!

This module provides concrete implementations of the Codec protocol for the
value types most often kept in a cache: plain strings, JSON-serializable
structures and arbitrary picklable Python objects.
"""

import json
import pickle
from typing import Any

from . import utils
from .errors import CodecDecodeError, CodecEncodeError
from .types import Codec, Transport, V


class StringCodec(Codec[str]):
    """
    Pass-through codec for string values, dood!

    This codec handles string values without any transformation,
    making it ideal for values that are already strings.
    """

    def encode(self, obj: str) -> str:
        """
        Encode a string object for cache storage, dood!

        Args:
            obj: The string object to encode

        Returns:
            str: The same string object (pass-through conversion)

        Raises:
            CodecEncodeError: If obj is not a string
        """
        if not isinstance(obj, str):
            raise CodecEncodeError(f"StringCodec expects string input, got {type(obj).__name__}, dood!")

        return obj

    def decode(self, value: Transport) -> str:
        """
        Decode a string value from cache storage, dood!

        Args:
            value: The string value from cache

        Returns:
            str: The same string value (pass-through conversion)

        Raises:
            CodecDecodeError: If value is not a string
        """
        if not isinstance(value, str):
            raise CodecDecodeError(f"StringCodec expects string transport, got {type(value).__name__}, dood!")
        return value


class JsonCodec(Codec[V]):
    """
    JSON codec for serializable objects, dood!

    This codec handles JSON serialization and deserialization for
    any JSON-serializable objects, allowing complex data structures to be
    stored in tiers that only accept transport forms. Unlike the compact
    jsonDumps default, objects that JSON can't represent are rejected instead of
    being silently stringified, so a round trip always yields an equal value.
    """

    def __init__(self, sortKeys: bool = False):
        """
        Initialize the JSON codec, dood!

        Args:
            sortKeys: Sort dictionary keys in the output (stable transport forms)
        """
        self.sortKeys = sortKeys

    def encode(self, obj: V) -> str:
        try:
            return utils.jsonDumps(obj, sort_keys=self.sortKeys, default=_rejectUnserializable)
        except (TypeError, ValueError) as e:
            raise CodecEncodeError(f"Unable to encode {type(obj).__name__} as JSON: {e}") from e

    def decode(self, value: Transport) -> V:
        try:
            return json.loads(value)
        except (TypeError, ValueError) as e:
            raise CodecDecodeError(f"Invalid JSON in cache entry: {e}") from e


class PickleCodec(Codec[Any]):
    """
    Pickle codec producing bytes, for arbitrary Python objects.

    Only use it for caches whose directory is not writable by anyone you don't
    trust: unpickling executes code embedded in the data.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        self.protocol = protocol

    def encode(self, obj: Any) -> bytes:
        try:
            return pickle.dumps(obj, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CodecEncodeError(f"Unable to pickle {type(obj).__name__}: {e}") from e

    def decode(self, value: Transport) -> Any:
        if not isinstance(value, bytes):
            raise CodecDecodeError(f"PickleCodec expects bytes transport, got {type(value).__name__}")
        try:
            return pickle.loads(value)
        except Exception as e:
            # Corrupt pickles may raise arbitrary exceptions
            raise CodecDecodeError(f"Unable to unpickle cache entry: {e}") from e


def _rejectUnserializable(obj: Any) -> Any:
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def codecByName(name: str) -> Codec[Any]:
    """
    Create a built-in codec from its configuration name.

    Args:
        name: One of "string", "json" or "pickle" (case-insensitive)

    Returns:
        Codec: A new codec instance

    Raises:
        ValueError: If the name is unknown
    """
    match name.lower():
        case "string" | "str":
            return StringCodec()
        case "json":
            return JsonCodec()
        case "pickle":
            return PickleCodec()
        case _:
            raise ValueError(f"Unknown codec '{name}'")
