"""Type definitions for the diskscope analyzer.

This package provides the tree node and scan result models shared by the
scanner, cache, treemap layout and explorer.
"""

from diskscope.types.models import Node, NodeKind, ScanResult

__all__ = [
    "Node",
    "NodeKind",
    "ScanResult",
]
