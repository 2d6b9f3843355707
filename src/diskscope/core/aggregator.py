"""Bounded-concurrency directory tree scanner.

The scan is a bottom-up fan-out/fan-in over the tree: every directory is one
asyncio task that lists its entries, spawns one task per child directory,
waits for all of them and sums the results. Listings are blocking filesystem
calls, so they run in worker threads through ``asyncio.to_thread`` and are
admitted by a semaphore. The semaphore is held only for the duration of a
listing; a parent waiting on its children holds no slot, so at most
``concurrency`` listings are in flight regardless of the shape of the tree.

Each node is built by exactly one task and handed to its parent when that
task finishes, so no node is ever written by two tasks. The only shared
mutable state is the progress counter.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Final

from diskscope.core.errors import ScanRootError
from diskscope.core.exclusions import ExclusionFilter
from diskscope.core.walker import EntryType, FsWalker
from diskscope.types.models import Node, NodeKind, ScanResult
from diskscope.utils.logging import log_with_context, scan_id_var, set_scan_id

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY: Final[int] = 8


class ProgressCounter:
    """Monotonically increasing entry counter safe for concurrent increments.

    Written by the scan, read by any number of pollers. Reads never block on
    the scan itself.
    """

    def __init__(self) -> None:
        self._value: int = 0
        self._lock: threading.Lock = threading.Lock()

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class CancelToken:
    """Thread-safe cancellation signal shared by every task of one scan.

    Cancellation is cooperative: it stops new directory tasks from being
    spawned and new listings from starting, while listings already running
    are allowed to finish.
    """

    def __init__(self) -> None:
        self._event: threading.Event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def resolve_root(root: str | os.PathLike[str]) -> str:
    """Return the absolute, normalized form of ``root`` after validating it.

    Raises:
        ScanRootError: If the path does not exist or is not a directory
    """
    path = os.path.normpath(os.path.abspath(os.path.expanduser(os.fspath(root))))
    if not os.path.exists(path):
        msg = f"Path does not exist: {path}"
        raise ScanRootError(msg, path)
    if not os.path.isdir(path):
        msg = f"Not a directory: {path}"
        raise ScanRootError(msg, path)
    return path


class Aggregator:
    """Scans a directory tree into a Node tree of aggregate sizes.

    Args:
        exclusions: Glob patterns (or a ready ExclusionFilter); matching
            directories are listed as excluded and never descended
        concurrency: Maximum number of directory listings running at once
        walker: Directory lister, replaceable for testing
    """

    def __init__(
        self,
        exclusions: Iterable[str] | ExclusionFilter = (),
        concurrency: int = DEFAULT_CONCURRENCY,
        walker: FsWalker | None = None,
    ) -> None:
        if concurrency < 1:
            msg = f"concurrency must be a positive integer, got: {concurrency}"
            raise ValueError(msg)

        if isinstance(exclusions, ExclusionFilter):
            self.exclusion_filter: ExclusionFilter = exclusions
        else:
            self.exclusion_filter = ExclusionFilter(exclusions)
        self.concurrency: int = concurrency
        self.walker: FsWalker = walker or FsWalker()
        self.progress: ProgressCounter = ProgressCounter()
        self.peak_active: int = 0

        # Only touched from the event loop thread
        self._active: int = 0
        self._inaccessible: int = 0

    def scan(self, root: str | os.PathLike[str], cancel_token: CancelToken | None = None) -> ScanResult:
        """Synchronous wrapper around :meth:`scan_async`.

        Must not be called from a running event loop.
        """
        root_path = resolve_root(root)
        return asyncio.run(self.scan_async(root_path, cancel_token))

    async def scan_async(
        self,
        root: str | os.PathLike[str],
        cancel_token: CancelToken | None = None,
    ) -> ScanResult:
        """Scan ``root`` and return the aggregated tree.

        Args:
            root: Directory to scan
            cancel_token: Optional token; once cancelled the scan winds down
                and returns a result marked cancelled

        Returns:
            ScanResult, complete or cancelled

        Raises:
            ScanRootError: If the root does not exist or is not a directory
        """
        root_path = resolve_root(root)
        token = cancel_token or CancelToken()

        self.progress.reset()
        self.peak_active = 0
        self._active = 0
        self._inaccessible = 0

        scan_token = set_scan_id(uuid.uuid4().hex[:8])
        try:
            log_with_context(
                logger,
                logging.INFO,
                "Scan started",
                extra={"root": root_path, "concurrency": self.concurrency},
            )
            started_at = datetime.now(UTC)
            semaphore = asyncio.Semaphore(self.concurrency)

            self.progress.increment()
            root_node = await self._scan_directory(root_path, root_path, semaphore, token)

            finished_at = datetime.now(UTC)
            cancelled = token.cancelled
            if cancelled:
                root_node.complete = False
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Scan cancelled, result is partial",
                    extra={"root": root_path, "entries": self.progress.value},
                )
            else:
                log_with_context(
                    logger,
                    logging.INFO,
                    "Scan finished",
                    extra={
                        "root": root_path,
                        "entries": self.progress.value,
                        "total_bytes": root_node.size,
                        "inaccessible": self._inaccessible,
                        "peak_active": self.peak_active,
                    },
                )

            return ScanResult(
                root=root_node,
                root_path=root_path,
                started_at=started_at,
                finished_at=finished_at,
                entries_scanned=self.progress.value,
                inaccessible_count=self._inaccessible,
                cancelled=cancelled,
                exclusions=tuple(self.exclusion_filter.patterns),
            )
        finally:
            scan_id_var.reset(scan_token)

    async def _scan_directory(
        self,
        path: str,
        name: str,
        semaphore: asyncio.Semaphore,
        token: CancelToken,
    ) -> Node:
        if token.cancelled:
            return Node(path=path, name=name, kind=NodeKind.DIRECTORY, complete=False)

        async with semaphore:
            if token.cancelled:
                return Node(path=path, name=name, kind=NodeKind.DIRECTORY, complete=False)
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)
            try:
                listing = await asyncio.to_thread(self.walker.list_directory, path)
            finally:
                self._active -= 1

        if not listing.ok:
            self._inaccessible += 1
            return Node(path=path, name=name, kind=NodeKind.INACCESSIBLE, error=listing.error)

        children: list[Node] = []
        pending: list[asyncio.Task[Node]] = []
        complete = True

        for entry in listing.entries:
            self.progress.increment()

            if entry.type is EntryType.FILE:
                children.append(Node(path=entry.path, name=entry.name, kind=NodeKind.FILE, size=entry.size))

            elif entry.type is EntryType.SYMLINK:
                children.append(Node(path=entry.path, name=entry.name, kind=NodeKind.FILE, is_link=True))

            elif entry.type is EntryType.INACCESSIBLE:
                self._inaccessible += 1
                children.append(
                    Node(path=entry.path, name=entry.name, kind=NodeKind.INACCESSIBLE, error=entry.error)
                )

            elif self.exclusion_filter.should_exclude(entry.path):
                logger.debug("Directory excluded", extra={"path": entry.path})
                children.append(Node(path=entry.path, name=entry.name, kind=NodeKind.DIRECTORY, excluded=True))

            elif token.cancelled:
                complete = False
                children.append(Node(path=entry.path, name=entry.name, kind=NodeKind.DIRECTORY, complete=False))

            else:
                pending.append(
                    asyncio.create_task(self._scan_directory(entry.path, entry.name, semaphore, token))
                )

        if pending:
            children.extend(await asyncio.gather(*pending))

        children.sort(key=lambda node: (-node.size, node.name))
        return Node(
            path=path,
            name=name,
            kind=NodeKind.DIRECTORY,
            size=sum(child.size for child in children),
            children=children,
            complete=complete and all(child.complete for child in children),
        )
