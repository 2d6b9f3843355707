"""Persistent cache of completed scans.

One JSON document per scanned root, named after the SHA-256 of the root's
canonical path. Documents are validated with pydantic on load; anything that
does not validate, belongs to another root, is older than the TTL or holds a
cancelled scan is treated as a cache miss, which simply triggers a fresh
scan. Entries are replaced atomically and never edited in place.

The tree is stored as a flat pre-order list with parent indices rather than
nested objects, so arbitrarily deep directory trees do not run into JSON
parser nesting limits.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sys
import tempfile
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Annotated, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from diskscope.types.models import Node, NodeKind, ScanResult

logger = logging.getLogger(__name__)

CACHE_VERSION: Final[int] = 1
DEFAULT_TTL: Final[timedelta] = timedelta(hours=6)


class CacheFormatError(ValueError):
    """Raised when a stored tree is structurally invalid."""


class CachedNode(BaseModel):
    """One node of the flattened tree."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    name: str
    kind: NodeKind
    size: Annotated[int, Field(ge=0)]
    parent: Annotated[int, Field(ge=-1)]
    excluded: bool = False
    is_link: bool = False
    error: str | None = None


class CachedScan(BaseModel):
    """Scan metadata plus the flattened tree."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    root_path: str
    started_at: datetime
    finished_at: datetime
    entries_scanned: Annotated[int, Field(ge=0)]
    inaccessible_count: Annotated[int, Field(ge=0)]
    cancelled: bool
    exclusions: list[str] = []
    nodes: Annotated[list[CachedNode], Field(min_length=1)]


class CacheRecord(BaseModel):
    """Top-level cache document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: int
    root: str
    saved_at: datetime
    scan: CachedScan


def canonicalize_root(root: str | os.PathLike[str]) -> str:
    """Return the canonical form of a root path used as the cache key.

    The path is made absolute, normalized (``.``/``..`` and trailing
    separators removed) and case-folded where the platform is
    case-insensitive, so ``C:\\foo`` and ``c:\\foo\\`` share one key.
    """
    path = os.path.abspath(os.path.expanduser(os.fspath(root)))
    return os.path.normcase(os.path.normpath(path))


def default_cache_dir() -> Path:
    """Platform default directory for cache entries."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base) / "diskscope" / "cache"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "diskscope"
    return Path.home() / ".cache" / "diskscope"


def flatten_tree(root: Node) -> list[CachedNode]:
    """Flatten a tree into pre-order records with parent indices."""
    records: list[CachedNode] = []
    stack: list[tuple[Node, int]] = [(root, -1)]
    while stack:
        node, parent = stack.pop()
        index = len(records)
        records.append(
            CachedNode(
                path=node.path,
                name=node.name,
                kind=node.kind,
                size=node.size,
                parent=parent,
                excluded=node.excluded,
                is_link=node.is_link,
                error=node.error,
            )
        )
        for child in reversed(node.children):
            stack.append((child, index))
    return records


def rebuild_tree(records: list[CachedNode]) -> Node:
    """Rebuild a tree from :func:`flatten_tree` output.

    Raises:
        CacheFormatError: If the records do not describe a single consistent
            tree (bad parent indices, children under a non-directory, or a
            directory whose size differs from the sum of its children)
    """
    nodes: list[Node] = []
    for index, record in enumerate(records):
        node = Node(
            path=record.path,
            name=record.name,
            kind=record.kind,
            size=record.size,
            excluded=record.excluded,
            is_link=record.is_link,
            error=record.error,
        )
        if index == 0:
            if record.parent != -1:
                msg = "first record must be the root"
                raise CacheFormatError(msg)
        else:
            if not 0 <= record.parent < index:
                msg = f"record {index} has invalid parent {record.parent}"
                raise CacheFormatError(msg)
            parent = nodes[record.parent]
            if not parent.is_dir:
                msg = f"record {index} is a child of non-directory {parent.path}"
                raise CacheFormatError(msg)
            parent.children.append(node)
        nodes.append(node)

    for node in nodes:
        if node.is_dir and not node.excluded and node.size != sum(child.size for child in node.children):
            msg = f"inconsistent size for {node.path}"
            raise CacheFormatError(msg)

    return nodes[0]


class ScanCache:
    """Load and save completed scan results keyed by canonical root path.

    Args:
        directory: Directory holding the cache documents
        ttl: Maximum age of a usable entry (None disables expiry)
        enabled: When False every load misses and every save is skipped
    """

    def __init__(
        self,
        directory: Path | None = None,
        *,
        ttl: timedelta | None = DEFAULT_TTL,
        enabled: bool = True,
    ) -> None:
        self.directory: Path = directory if directory is not None else default_cache_dir()
        self.ttl: timedelta | None = ttl
        self.enabled: bool = enabled

    def entry_path(self, root: str | os.PathLike[str]) -> Path:
        """Path of the cache document for ``root``."""
        digest = hashlib.sha256(canonicalize_root(root).encode("utf-8")).hexdigest()
        return self.directory / f"{digest[:32]}.json"

    def load(
        self,
        root: str | os.PathLike[str],
        exclusions: Sequence[str] | None = None,
    ) -> ScanResult | None:
        """Return the cached result for ``root``, or None on any kind of miss.

        When ``exclusions`` is given, an entry scanned with a different set of
        exclusion patterns is also a miss.
        """
        if not self.enabled:
            return None

        canonical = canonicalize_root(root)
        entry = self.entry_path(canonical)

        try:
            text = entry.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("Cache miss", extra={"root": canonical})
            return None
        except OSError as exc:
            logger.warning(
                "Cannot read cache entry, rescanning",
                extra={"entry": str(entry), "error": str(exc)},
            )
            return None

        try:
            record = CacheRecord.model_validate_json(text)
        except ValidationError as exc:
            logger.warning(
                "Discarding corrupt cache entry",
                extra={"entry": str(entry), "errors": exc.error_count()},
            )
            return None

        if record.version != CACHE_VERSION:
            logger.debug(
                "Discarding cache entry with unsupported version",
                extra={"entry": str(entry), "version": record.version},
            )
            return None

        if record.root != canonical:
            logger.debug(
                "Cache entry belongs to a different root",
                extra={"requested": canonical, "stored": record.root},
            )
            return None

        if exclusions is not None and set(exclusions) != set(record.scan.exclusions):
            logger.debug(
                "Cache entry was scanned with different exclusions",
                extra={"root": canonical, "stored": record.scan.exclusions},
            )
            return None

        if record.scan.cancelled:
            logger.debug("Ignoring cached partial scan", extra={"root": canonical})
            return None

        if self.is_stale(record.saved_at):
            logger.debug(
                "Cache entry expired",
                extra={"root": canonical, "saved_at": record.saved_at.isoformat()},
            )
            return None

        try:
            tree = rebuild_tree(record.scan.nodes)
        except CacheFormatError as exc:
            logger.warning(
                "Discarding inconsistent cache entry",
                extra={"entry": str(entry), "error": str(exc)},
            )
            return None

        logger.info(
            "Loaded scan from cache",
            extra={"root": canonical, "saved_at": record.saved_at.isoformat()},
        )
        return ScanResult(
            root=tree,
            root_path=record.scan.root_path,
            started_at=record.scan.started_at,
            finished_at=record.scan.finished_at,
            entries_scanned=record.scan.entries_scanned,
            inaccessible_count=record.scan.inaccessible_count,
            cancelled=False,
            exclusions=tuple(record.scan.exclusions),
        )

    def save(self, result: ScanResult, root: str | os.PathLike[str]) -> bool:
        """Persist a completed result for ``root``.

        Returns:
            True if the entry was written, False if the cache is disabled,
            the result is partial, the result belongs to another root, or the
            write failed
        """
        if not self.enabled:
            return False

        canonical = canonicalize_root(root)

        if not result.complete:
            logger.debug("Not caching partial scan", extra={"root": canonical})
            return False

        if canonicalize_root(result.root_path) != canonical:
            logger.warning(
                "Refusing to cache a result under a different root",
                extra={"requested": canonical, "result_root": result.root_path},
            )
            return False

        record = CacheRecord(
            version=CACHE_VERSION,
            root=canonical,
            saved_at=datetime.now(UTC),
            scan=CachedScan(
                root_path=result.root_path,
                started_at=result.started_at,
                finished_at=result.finished_at,
                entries_scanned=result.entries_scanned,
                inaccessible_count=result.inaccessible_count,
                cancelled=False,
                exclusions=list(result.exclusions),
                nodes=flatten_tree(result.root),
            ),
        )

        entry = self.entry_path(canonical)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._write_atomic(entry, record.model_dump_json())
        except OSError as exc:
            logger.warning(
                "Failed to write cache entry",
                extra={"entry": str(entry), "error": str(exc)},
            )
            return False

        logger.debug("Saved scan to cache", extra={"root": canonical, "entry": str(entry)})
        return True

    def invalidate(self, root: str | os.PathLike[str]) -> bool:
        """Remove the entry for ``root``; returns True if one existed."""
        try:
            self.entry_path(root).unlink()
        except FileNotFoundError:
            return False
        return True

    def clear(self) -> int:
        """Remove every cache entry and return how many were removed."""
        if not self.directory.is_dir():
            return 0
        removed = 0
        for entry in self.directory.glob("*.json"):
            try:
                entry.unlink()
            except OSError as exc:
                logger.warning(
                    "Failed to remove cache entry",
                    extra={"entry": str(entry), "error": str(exc)},
                )
                continue
            removed += 1
        return removed

    def is_stale(self, saved_at: datetime) -> bool:
        if self.ttl is None:
            return False
        if saved_at.tzinfo is None:
            saved_at = saved_at.replace(tzinfo=UTC)
        return datetime.now(UTC) - saved_at > self.ttl

    def _write_atomic(self, entry: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                _ = fh.write(payload)
            os.replace(tmp_name, entry)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
