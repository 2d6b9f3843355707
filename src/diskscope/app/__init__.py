"""Application layer: command-line interface, terminal loop and renderers."""

from __future__ import annotations

from diskscope.app.cli import cli

__all__ = [
    "cli",
]
