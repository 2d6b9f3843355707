"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeAlias

import pytest

from diskscope.types.models import Node, NodeKind, ScanResult

# Nested mapping describing a directory tree: names map to a byte count
# (a file of that size) or to another mapping (a subdirectory)
TreeSpec: TypeAlias = Mapping[str, "int | TreeSpec"]


def build_tree(base: Path, spec: TreeSpec) -> None:
    """Create files and directories under ``base`` as described by ``spec``."""
    base.mkdir(parents=True, exist_ok=True)
    for name, content in spec.items():
        target = base / name
        if isinstance(content, int):
            _ = target.write_bytes(b"x" * content)
        else:
            build_tree(target, content)


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[TreeSpec], Path]:
    """Factory building a directory tree inside a fresh scan root."""

    def factory(spec: TreeSpec) -> Path:
        root = tmp_path / "root"
        build_tree(root, spec)
        return root

    return factory


@pytest.fixture
def sample_tree(make_tree: Callable[[TreeSpec], Path]) -> Path:
    """Small tree with nested directories, an empty directory and 1,750 bytes in total."""
    return make_tree(
        {
            "readme.txt": 100,
            "docs": {"guide.md": 250, "api.md": 150},
            "src": {
                "main.py": 400,
                "pkg": {"module.py": 600, "data.bin": 200},
            },
            "empty": {},
            "tiny.log": 50,
        }
    )


def file_node(path: str, size: int) -> Node:
    return Node(path=path, name=path.rsplit("/", 1)[-1], kind=NodeKind.FILE, size=size)


def dir_node(path: str, children: list[Node], *, complete: bool = True) -> Node:
    return Node(
        path=path,
        name=path.rsplit("/", 1)[-1] or path,
        kind=NodeKind.DIRECTORY,
        size=sum(child.size for child in children),
        children=children,
        complete=complete,
    )


@pytest.fixture
def sample_result() -> ScanResult:
    """In-memory scan result with files, a subdirectory and special entries."""
    root = dir_node(
        "/data",
        [
            dir_node(
                "/data/videos",
                [file_node("/data/videos/a.mkv", 5000), file_node("/data/videos/b.mkv", 3000)],
            ),
            file_node("/data/archive.zip", 1500),
            dir_node("/data/photos", [file_node("/data/photos/cat.jpg", 700)]),
            file_node("/data/notes.txt", 20),
            Node(path="/data/locked", name="locked", kind=NodeKind.INACCESSIBLE, error="permission denied"),
            Node(path="/data/node_modules", name="node_modules", kind=NodeKind.DIRECTORY, excluded=True),
            Node(path="/data/latest", name="latest", kind=NodeKind.FILE, is_link=True),
        ],
    )
    root.name = "/data"
    now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    return ScanResult(
        root=root,
        root_path="/data",
        started_at=now,
        finished_at=now,
        entries_scanned=len(list(root.iter_all())),
        inaccessible_count=1,
    )
