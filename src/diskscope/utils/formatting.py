"""Pure formatting utilities for human-readable output.

This module provides stateless helpers for converting byte counts and
durations into display strings, and for parsing user supplied sizes such as
``100MB`` from the command line and configuration files.
"""

import re
from typing import Final

# Binary unit constants (1024-based)
_UNITS: Final[tuple[str, ...]] = ("B", "KB", "MB", "GB", "TB", "PB")
_KB = 1024

# Time unit constants
_MINUTE = 60
_HOUR = _MINUTE * 60  # 3,600
_DAY = _HOUR * 24  # 86,400

SIZE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[KMGTP]I?B?|B)?\s*$",
    re.IGNORECASE,
)

_UNIT_FACTORS: Final[dict[str, int]] = {
    "": 1,
    "B": 1,
    "K": _KB,
    "M": _KB**2,
    "G": _KB**3,
    "T": _KB**4,
    "P": _KB**5,
}


def format_size(bytes: int, *, precision: int = 1) -> str:
    """Convert bytes to a human-readable size.

    Uses binary units (1024-based) for consistency with system tools.

    Args:
        bytes: Number of bytes to format (must be non-negative)
        precision: Number of decimal places above the byte range

    Returns:
        Human-readable size such as ``"512 B"`` or ``"1.5 GB"``

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(1536)
        '1.5 KB'
        >>> format_size(10737418240)
        '10.0 GB'
    """
    if bytes < 0:
        msg = "bytes must be non-negative"
        raise ValueError(msg)

    if bytes < _KB:
        return f"{bytes} B"

    value = float(bytes)
    unit_index = 0
    while value >= _KB and unit_index < len(_UNITS) - 1:
        value /= _KB
        unit_index += 1

    # 1023.96 KB would otherwise print as "1024.0 KB"
    if round(value, precision) >= _KB and unit_index < len(_UNITS) - 1:
        value /= _KB
        unit_index += 1

    return f"{value:.{precision}f} {_UNITS[unit_index]}"


def parse_size(text: str) -> int:
    """Parse a size such as ``"100MB"``, ``"1.5 GiB"`` or ``"4096"`` into bytes.

    Units are binary and case-insensitive; a bare number is a byte count.

    Raises:
        ValueError: If the text is not a recognizable size

    Examples:
        >>> parse_size("100MB")
        104857600
        >>> parse_size("2k")
        2048
    """
    match = SIZE_PATTERN.match(text)
    if match is None:
        msg = f"Invalid size: {text!r} (expected e.g. 512, 10KB, 1.5GB)"
        raise ValueError(msg)

    value = float(match.group("value"))
    unit = (match.group("unit") or "").upper()
    prefix = unit[:1] if unit != "B" else ""
    return int(value * _UNIT_FACTORS[prefix])


def format_duration(seconds: float) -> str:
    """Convert seconds to a human-readable duration.

    Shows tenths of a second below one minute and the two most significant
    units above it.

    Examples:
        >>> format_duration(0.42)
        '0.4s'
        >>> format_duration(90)
        '1m 30s'
        >>> format_duration(3665)
        '1h 1m'
        >>> format_duration(90000)
        '1d 1h'
    """
    if seconds < 0:
        msg = "seconds must be non-negative"
        raise ValueError(msg)

    if seconds < _MINUTE:
        return f"{seconds:.1f}s"

    total_seconds = int(seconds)

    if total_seconds >= _DAY:
        days = total_seconds // _DAY
        hours = (total_seconds % _DAY) // _HOUR
        if hours > 0:
            return f"{days}d {hours}h"
        return f"{days}d"

    if total_seconds >= _HOUR:
        hours = total_seconds // _HOUR
        minutes = (total_seconds % _HOUR) // _MINUTE
        if minutes > 0:
            return f"{hours}h {minutes}m"
        return f"{hours}h"

    minutes = total_seconds // _MINUTE
    remaining = total_seconds % _MINUTE
    if remaining > 0:
        return f"{minutes}m {remaining}s"
    return f"{minutes}m"


def format_percent(part: int, total: int) -> str:
    """Format ``part`` as a percentage of ``total`` (``"0.0%"`` when total is zero)."""
    if total <= 0:
        return "0.0%"
    return f"{part / total * 100:.1f}%"
