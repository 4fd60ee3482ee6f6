"""
Exception hierarchy for dualcache, dood!

Two families matter to callers:
- TransientIOError never leaves the public DualCache surface. It is raised by the
  disk layer and caught, logged and treated as a miss (fail-open) by the orchestrator.
- ConfigurationError and the codec errors signal programmer mistakes and always
  propagate to the caller.
"""


class DualCacheError(Exception):
    """Base class for all dualcache errors."""


class ConfigurationError(DualCacheError):
    """Invalid cache configuration or a codec that can't read back its own output."""


class TransientIOError(DualCacheError):
    """Disk read, write, wipe or open failure."""


class CodecError(DualCacheError):
    """Base class for codec failures."""


class CodecEncodeError(CodecError):
    """Value could not be converted to its transport form."""


class CodecDecodeError(CodecError):
    """Transport form could not be converted back to a value."""
