"""Application entry point for diskscope.

Running ``python -m diskscope`` or the ``diskscope`` console script invokes
the click command defined in :mod:`diskscope.app.cli`.

Exit codes:
    0: Success (including a scan cancelled with Ctrl+C)
    1: Configuration error or invalid scan root
    2: Command-line usage error
"""

from __future__ import annotations

from diskscope.app.cli import cli

__all__ = ["main"]


def main() -> None:
    """Main entry point for the diskscope command."""
    cli(prog_name="diskscope")


if __name__ == "__main__":
    main()
