"""diskscope - interactive disk usage analyzer.

This package scans a directory tree with bounded concurrency, aggregates the
size of every directory bottom-up, caches completed scans and lets the user
browse the result as a sorted list or a squarified treemap.
"""

from diskscope.__main__ import main

__all__ = ["main"]
