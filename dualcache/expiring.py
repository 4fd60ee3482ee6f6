"""
Expiring entries: values with an absolute expiry, and the envelope codec used to
keep them in serialized tiers, dood!

Envelope layout (text for text codecs, ASCII header + raw payload for byte codecs):

    +------+----------------------+--------------------+-----------+
    | DCX1 | expiry millis (20)   | payload length (12)| payload   |
    +------+----------------------+--------------------+-----------+

Both numbers are zero-padded decimals, so the header always has a fixed width
and nothing inside the payload can be mistaken for framing.
"""

from dataclasses import dataclass
from typing import Generic

from .errors import CodecDecodeError, CodecEncodeError
from .types import Codec, SizeOf, Transport, V

ENVELOPE_MAGIC = "DCX1"
EXPIRY_WIDTH = 20
LENGTH_WIDTH = 12
HEADER_SIZE = len(ENVELOPE_MAGIC) + EXPIRY_WIDTH + LENGTH_WIDTH

# Bytes accounted for the expiry timestamp of an entry kept by reference
EXPIRY_SIZE_BYTES = 8


@dataclass(frozen=True)
class ExpiringEntry(Generic[V]):
    """Cached value paired with the moment it stops being valid"""

    expiresAtEpochMillis: int
    value: V

    def isExpired(self, nowMillis: int) -> bool:
        """Entry is expired once the clock reaches its expiry timestamp"""
        return self.expiresAtEpochMillis <= nowMillis


class ExpiringCodec(Codec[ExpiringEntry[V]]):
    """
    Wrap any codec into a codec for ExpiringEntry values, dood!

    The wrapped codec encodes the value itself; this class only adds and checks
    the fixed-width envelope described in the module docstring.
    """

    def __init__(self, inner: Codec[V]):
        """
        Args:
            inner: Codec used for the wrapped value
        """
        self.inner = inner

    def encode(self, obj: ExpiringEntry[V]) -> Transport:
        if obj.expiresAtEpochMillis < 0 or obj.expiresAtEpochMillis >= 10**EXPIRY_WIDTH:
            raise CodecEncodeError(f"Expiry timestamp {obj.expiresAtEpochMillis} is out of range")

        payload = self.inner.encode(obj.value)
        if len(payload) >= 10**LENGTH_WIDTH:
            raise CodecEncodeError(f"Payload of {len(payload)} units is too large for an expiring entry")

        header = f"{ENVELOPE_MAGIC}{obj.expiresAtEpochMillis:0{EXPIRY_WIDTH}d}{len(payload):0{LENGTH_WIDTH}d}"
        if isinstance(payload, bytes):
            return header.encode("ascii") + payload
        return header + payload

    def decode(self, value: Transport) -> ExpiringEntry[V]:
        if len(value) < HEADER_SIZE:
            raise CodecDecodeError(f"Expiring entry too short: {len(value)} < {HEADER_SIZE}")

        rawHeader = value[:HEADER_SIZE]
        payload = value[HEADER_SIZE:]
        if isinstance(rawHeader, bytes):
            try:
                header = rawHeader.decode("ascii")
            except UnicodeDecodeError as e:
                raise CodecDecodeError(f"Expiring entry header is not ASCII: {e}") from e
        else:
            header = rawHeader

        if not header.startswith(ENVELOPE_MAGIC):
            raise CodecDecodeError("Expiring entry header has wrong magic")

        expiryStr = header[len(ENVELOPE_MAGIC) : len(ENVELOPE_MAGIC) + EXPIRY_WIDTH]
        lengthStr = header[len(ENVELOPE_MAGIC) + EXPIRY_WIDTH :]
        if not (expiryStr.isascii() and expiryStr.isdigit() and lengthStr.isascii() and lengthStr.isdigit()):
            raise CodecDecodeError("Expiring entry header has non-numeric fields")

        if int(lengthStr) != len(payload):
            raise CodecDecodeError(f"Expiring entry payload length mismatch: {int(lengthStr)} != {len(payload)}")

        return ExpiringEntry(expiresAtEpochMillis=int(expiryStr), value=self.inner.decode(payload))


class ExpiringSizeOf(SizeOf[ExpiringEntry[V]]):
    """Size function for entries kept by reference: the caller's size plus the timestamp"""

    def __init__(self, sizeOf: SizeOf[V]):
        self.sizeOf = sizeOf

    def __call__(self, obj: ExpiringEntry[V]) -> int:
        return self.sizeOf(obj.value) + EXPIRY_SIZE_BYTES
