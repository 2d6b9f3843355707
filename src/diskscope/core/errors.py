"""Exception hierarchy for diskscope."""

from __future__ import annotations


class DiskscopeError(Exception):
    """Base class for errors reported to the user."""


class ScanRootError(DiskscopeError):
    """Raised before scanning when the root path is missing or not a directory.

    No partial result is meaningful in that case, so this is the only scan
    failure that reaches the caller as an exception.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path: str = path
