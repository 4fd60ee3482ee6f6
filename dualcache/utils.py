"""
Common utilities for dualcache.
"""

import json
import time
from typing import Any, Optional

# Unit suffixes accepted by parseDelay(), in the order they must appear
_DELAY_UNITS = (("d", 24 * 3600), ("h", 3600), ("m", 60), ("s", 1))


def nowMillis() -> int:
    """
    Get current wall-clock time as epoch milliseconds.
    """
    return time.time_ns() // 1_000_000


def parseDelay(delayStr: str) -> int:
    """
    Parse delay string to integer.

    Args:
        delayStr: String in one of formats:
            1. `DDdHHhMMmSSs` (e.g., "1d2h30m15s") - each section is optional but at least one must be present
            2. `HH:MM[:SS]` (e.g., "2:30" or "2:30:15")

    Returns:
        Total delay in seconds as integer.

    Raises:
        ValueError: If the string doesn't match any supported format.
    """
    # Format 1: DDdHHhMMmSSs (e.g., "1d2h30m15s")
    if any(unit in delayStr for unit, _ in _DELAY_UNITS):
        try:
            totalSeconds = 0
            remaining = delayStr
            for unit, multiplier in _DELAY_UNITS:
                if unit in remaining:
                    unitIndex = remaining.index(unit)
                    totalSeconds += int(remaining[:unitIndex]) * multiplier
                    remaining = remaining[unitIndex + 1 :]

            # Whole string consumed means every section was valid
            if remaining == "":
                return totalSeconds
        except (ValueError, IndexError):
            pass  # Will try next format

    # Format 2: HH:MM[:SS] (e.g., "2:30" or "2:30:15")
    timeParts = delayStr.split(":")
    if 2 <= len(timeParts) <= 3:
        try:
            hours = int(timeParts[0])
            minutes = int(timeParts[1])
            seconds = int(timeParts[2]) if len(timeParts) == 3 else 0

            if 0 <= minutes < 60 and 0 <= seconds < 60:
                return hours * 3600 + minutes * 60 + seconds
        except ValueError:
            pass

    raise ValueError(f"Invalid delay format: {delayStr}. Expected formats: '[DDd][HHh][MMm][SSs]' or 'HH:MM[:SS]'")


def jsonDumps(data: Any, compact: Optional[bool] = None, **kwargs) -> str:
    dumpKwargs = {
        "ensure_ascii": False,
        "default": str,
        "sort_keys": True,
    }

    if compact is None:
        # If indent is passed, then user want pretty-printed JSON,
        #  no need to use compact separators
        compact = "indent" not in kwargs

    if compact:
        dumpKwargs["separators"] = (",", ":")
    dumpKwargs.update(kwargs)
    return json.dumps(data, **dumpKwargs)
