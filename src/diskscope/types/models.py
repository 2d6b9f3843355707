"""Data models for the diskscope analyzer.

This module defines the tree and result types shared by the scanner, the
cache, the treemap layout and the explorer. Nodes are built bottom-up by the
aggregator: each node is written by exactly one task and handed to its parent
only once it is finished.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class NodeKind(str, Enum):
    """Classification of a filesystem entry."""

    FILE = "file"
    DIRECTORY = "directory"
    INACCESSIBLE = "inaccessible"


@dataclass(slots=True)
class Node:
    """One filesystem entry with its aggregate size.

    For files ``size`` is the byte length reported by ``lstat``; for
    directories it is the sum of the children's sizes; inaccessible entries
    always report zero. ``complete`` is False for a directory whose subtree
    was not fully scanned because the scan was cancelled.
    """

    path: str
    name: str
    kind: NodeKind
    size: int = 0
    children: list["Node"] = field(default_factory=list)
    complete: bool = True
    excluded: bool = False
    is_link: bool = False
    error: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def is_inaccessible(self) -> bool:
        return self.kind is NodeKind.INACCESSIBLE

    @property
    def is_partial(self) -> bool:
        """True when this node or any descendant was not fully scanned."""
        return any(not node.complete for node in self.iter_all())

    def iter_all(self) -> Iterator["Node"]:
        """Yield this node and all of its descendants in pre-order."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, path: str) -> "Node | None":
        """Find a descendant (or self) by its exact path."""
        for node in self.iter_all():
            if node.path == path:
                return node
        return None


@dataclass(slots=True)
class ScanResult:
    """A finished or cancelled scan of one root directory.

    Cancelled scans are still valid results: their tree reports only what
    was visited before cancellation and the affected directories are marked
    incomplete. ``exclusions`` lists the patterns the scan ran with.
    """

    root: Node
    root_path: str
    started_at: datetime
    finished_at: datetime
    entries_scanned: int = 0
    inaccessible_count: int = 0
    cancelled: bool = False
    exclusions: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.cancelled

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def total_size(self) -> int:
        return self.root.size
