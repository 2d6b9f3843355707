"""Terminal front end: scan progress spinner and the interactive explorer loop.

The scan runs on an asyncio event loop in the main thread. While it runs, a
polling coroutine reads the progress counter every 100 ms and updates a
``rich`` progress spinner on stderr. SIGINT is routed to the scan's cancel
token, so Ctrl+C ends the scan early with a partial result instead of a
traceback.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import signal
from collections.abc import Callable
from typing import Final

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from diskscope.app.render import render_header, render_list, render_treemap, truncate
from diskscope.core.aggregator import Aggregator, CancelToken
from diskscope.core.explorer import Command, Explorer, ExplorerState, LayoutMode
from diskscope.core.treemap import Rect
from diskscope.types.models import ScanResult
from diskscope.utils.formatting import format_size

logger = logging.getLogger(__name__)

POLL_INTERVAL: Final[float] = 0.1

SCAN_LABEL: Final[str] = "Scanning..."

# click.getchar returns whole escape sequences on POSIX and two-character
# scan codes for special keys on Windows
KEY_COMMANDS: Final[dict[str, Command]] = {
    "k": Command.UP,
    "\x1b[A": Command.UP,
    "\x1bOA": Command.UP,
    "\xe0H": Command.UP,
    "\x00H": Command.UP,
    "j": Command.DOWN,
    "\x1b[B": Command.DOWN,
    "\x1bOB": Command.DOWN,
    "\xe0P": Command.DOWN,
    "\x00P": Command.DOWN,
    "\r": Command.ENTER,
    "\n": Command.ENTER,
    "l": Command.ENTER,
    "\x1b[C": Command.ENTER,
    "\x1bOC": Command.ENTER,
    "\xe0M": Command.ENTER,
    "\x00M": Command.ENTER,
    "h": Command.BACK,
    "\x7f": Command.BACK,
    "\x08": Command.BACK,
    "\x1b[D": Command.BACK,
    "\x1bOD": Command.BACK,
    "\xe0K": Command.BACK,
    "\x00K": Command.BACK,
    "s": Command.SORT,
    "t": Command.MODE,
    "m": Command.MODE,
    "g": Command.TOP,
    "G": Command.BOTTOM,
    "q": Command.QUIT,
    "Q": Command.QUIT,
    "\x1b": Command.QUIT,
}

HELP_LINE: Final[str] = "↑↓/jk move  enter/l open  ←/h back  s sort  t view  g/G top/bottom  q quit"


def make_progress(console: Console | None = None) -> Progress:
    """Transient spinner with the entry count, drawn on stderr by default."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console or Console(stderr=True),
        transient=True,
    )


def _install_interrupt_handler(token: CancelToken) -> Callable[[], None]:
    """Route SIGINT to ``token`` and return a function undoing it."""

    def request_cancel() -> None:
        if not token.cancelled:
            logger.info("Interrupt received, cancelling scan")
            token.cancel()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, request_cancel)
    except NotImplementedError:
        # Windows event loops do not support add_signal_handler
        previous = signal.signal(signal.SIGINT, lambda _signum, _frame: request_cancel())
        return lambda: signal.signal(signal.SIGINT, previous)
    except RuntimeError:
        # Not the main thread; cancellation is left to the caller
        return lambda: None
    return lambda: loop.remove_signal_handler(signal.SIGINT)


async def scan_with_progress(
    aggregator: Aggregator,
    root: str,
    token: CancelToken,
    *,
    progress: Progress | None = None,
    handle_interrupt: bool = True,
) -> ScanResult:
    """Run a scan while polling its progress counter.

    Args:
        aggregator: Configured aggregator
        root: Directory to scan
        token: Cancel token, also triggered by SIGINT when ``handle_interrupt``
        progress: Display whose task is updated every POLL_INTERVAL seconds;
            started here and stopped when the scan ends
        handle_interrupt: Install a SIGINT handler for the scan's duration

    Returns:
        ScanResult, partial if the scan was cancelled
    """
    restore = _install_interrupt_handler(token) if handle_interrupt else None
    task = asyncio.create_task(aggregator.scan_async(root, token))
    task_id = progress.add_task(SCAN_LABEL, total=None) if progress is not None else None
    try:
        if progress is not None:
            progress.start()
        while not task.done():
            _ = await asyncio.wait({task}, timeout=POLL_INTERVAL)
            if progress is not None and task_id is not None:
                progress.update(task_id, description=f"{SCAN_LABEL} {aggregator.progress.value:,} entries")
        return task.result()
    finally:
        if progress is not None:
            progress.stop()
        if restore is not None:
            _ = restore()


def run_scan(
    aggregator: Aggregator,
    root: str,
    token: CancelToken | None = None,
    *,
    show_progress: bool = False,
) -> ScanResult:
    """Synchronous entry point for :func:`scan_with_progress`."""
    progress = make_progress() if show_progress else None
    return asyncio.run(scan_with_progress(aggregator, root, token or CancelToken(), progress=progress))


def render_screen(explorer: Explorer, columns: int, lines: int) -> list[str]:
    """Compose a full screen: header, body in the current mode, help line."""
    view = explorer.view()
    body_height = max(lines - 1, 1)
    if view.layout_mode is LayoutMode.TREEMAP and view.current is not None:
        header = render_header(view, columns)
        map_height = max(body_height - len(header) - 1, 0)
        rects = explorer.treemap(Rect(0, 0, columns, map_height))
        screen = header + render_treemap(view, rects, columns, map_height)
        selected = view.selected
        if selected is not None:
            screen.append(truncate(f"> {selected.name}  {format_size(selected.size)}", columns))
    else:
        screen = render_list(view, columns, body_height)

    screen.append(truncate(HELP_LINE, columns))
    return screen


def run_explorer(
    explorer: Explorer,
    *,
    read_key: Callable[[], str] = click.getchar,
    terminal_size: Callable[[], tuple[int, int]] | None = None,
    output: Callable[[list[str]], None] | None = None,
) -> None:
    """Drive the explorer from the keyboard until the user quits.

    Args:
        explorer: Explorer already loaded with a scan result
        read_key: Returns one key press (or escape sequence) per call
        terminal_size: Returns ``(columns, lines)``
        output: Receives each rendered screen
    """

    def default_size() -> tuple[int, int]:
        size = shutil.get_terminal_size()
        return size.columns, size.lines

    def default_output(screen: list[str]) -> None:
        click.clear()
        click.echo("\n".join(screen), nl=False)

    get_size = terminal_size or default_size
    show = output or default_output

    while explorer.state is ExplorerState.BROWSING:
        columns, lines = get_size()
        show(render_screen(explorer, columns, lines))
        try:
            key = read_key()
        except (KeyboardInterrupt, EOFError):
            key = "q"

        command = KEY_COMMANDS.get(key)
        if command is None:
            logger.debug("Ignoring unbound key", extra={"key": repr(key)})
            continue
        _ = explorer.handle(command)

    click.echo()
