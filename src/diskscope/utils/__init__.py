"""Shared utility modules.

This package provides pure formatting helpers (sizes, durations, percentages),
size parsing for user input, and the logging setup with scan ID tracking.
"""

from diskscope.utils.formatting import (
    format_duration,
    format_percent,
    format_size,
    parse_size,
)

__all__ = [
    "format_duration",
    "format_percent",
    "format_size",
    "parse_size",
]
