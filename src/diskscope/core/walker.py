"""Single-directory listing for the scanner.

The walker never recurses: it lists the immediate children of one directory
and classifies them. Recursion, exclusions and concurrency belong to the
aggregator. Listing errors are reported in the returned value instead of
being raised, so one unreadable directory cannot abort its siblings.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class EntryType(str, Enum):
    """Classification of a directory entry as seen by the walker."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    INACCESSIBLE = "inaccessible"


@dataclass(slots=True, frozen=True)
class DirEntry:
    """One immediate child of a listed directory."""

    path: str
    name: str
    type: EntryType
    size: int = 0
    error: str | None = None


@dataclass(slots=True)
class DirectoryListing:
    """Result of listing one directory.

    When the directory itself cannot be opened ``error`` is set and
    ``entries`` is empty.
    """

    path: str
    entries: list[DirEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def describe_error(exc: OSError) -> str:
    """Short, user-facing description of a filesystem error."""
    if isinstance(exc, PermissionError):
        return "permission denied"
    if isinstance(exc, FileNotFoundError):
        return "not found"
    if isinstance(exc, NotADirectoryError):
        return "not a directory"
    return exc.strerror or type(exc).__name__


class FsWalker:
    """Lists the immediate children of a directory without following links.

    Symbolic links (and Windows reparse points reported as links) are
    classified as ``SYMLINK`` and never descended into, which guarantees
    termination on cyclic link structures.
    """

    def list_directory(self, path: str) -> DirectoryListing:
        """List and classify the children of ``path``.

        Args:
            path: Absolute path of the directory to list

        Returns:
            DirectoryListing with one DirEntry per child, or with ``error``
            set if the directory could not be opened
        """
        listing = DirectoryListing(path=path)
        try:
            with os.scandir(path) as it:
                for entry in it:
                    listing.entries.append(self._classify(entry))
        except OSError as exc:
            logger.debug(
                "Cannot list directory",
                extra={"path": path, "error": str(exc)},
            )
            listing.entries.clear()
            listing.error = describe_error(exc)
        return listing

    def _classify(self, entry: os.DirEntry[str]) -> DirEntry:
        try:
            if entry.is_symlink() or entry.is_junction():
                return DirEntry(entry.path, entry.name, EntryType.SYMLINK)

            info = entry.stat(follow_symlinks=False)
            if stat.S_ISDIR(info.st_mode):
                return DirEntry(entry.path, entry.name, EntryType.DIRECTORY)
            if stat.S_ISREG(info.st_mode):
                return DirEntry(entry.path, entry.name, EntryType.FILE, size=info.st_size)
            # Sockets, fifos and device nodes occupy no data blocks
            return DirEntry(entry.path, entry.name, EntryType.FILE)

        except OSError as exc:
            logger.debug(
                "Cannot stat entry",
                extra={"path": entry.path, "error": str(exc)},
            )
            return DirEntry(
                entry.path,
                entry.name,
                EntryType.INACCESSIBLE,
                error=describe_error(exc),
            )

