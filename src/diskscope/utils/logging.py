"""Logging infrastructure with scan ID tracking.

Every scan gets a short identifier stored in a ContextVar. Worker threads
started through ``asyncio.to_thread`` inherit the context, so log records
emitted while listing directories carry the identifier of the scan that
issued them.

Console output goes to stderr because stdout belongs to the report and the
interactive explorer.
"""

import contextvars
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from typing_extensions import override

scan_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "scan_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(scan_id)s] - %(message)s"

CONSOLE_LOG_FORMAT: Final[str] = "diskscope: %(levelname)s - %(message)s"


class ScanIDFilter(logging.Filter):
    """Logging filter that adds the current scan ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        scan_id = scan_id_var.get()
        record.scan_id = scan_id if scan_id is not None else "-"
        return True


def configure_logging(
    *,
    log_level: str = "WARNING",
    log_file: Path | None = None,
    enable_console: bool = True,
) -> None:
    """Configure application logging.

    Sets up a stderr console handler and, optionally, a file handler using the
    detailed format. Both handlers share one ScanIDFilter. Existing handlers on
    the root logger are removed to avoid duplicates when called twice.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a log file to append to
        enable_console: Enable the stderr handler
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.WARNING)
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    scan_filter = ScanIDFilter()

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            print(
                f"Warning: Could not open log file {log_file}: {exc}",
                file=sys.stderr,
            )
        else:
            file_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
            file_handler.addFilter(scan_filter)
            root_logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
        console_handler.addFilter(scan_filter)
        root_logger.addHandler(console_handler)


def set_scan_id(scan_id: str) -> contextvars.Token[str | None]:
    """Set the scan ID for the current context and return the reset token."""
    return scan_id_var.set(scan_id)


def get_scan_id() -> str | None:
    """Get the scan ID of the current context, or None outside a scan."""
    return scan_id_var.get()


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional context fields and the current scan ID.

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.INFO,
        ...     "Scan finished",
        ...     extra={"root": "/srv", "entries": 1200},
        ... )
    """
    context = dict(extra) if extra else {}

    scan_id = get_scan_id()
    if scan_id:
        context["scan"] = scan_id

    logger.log(level, message, extra=context)
