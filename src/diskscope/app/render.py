"""Text rendering of explorer views and scan reports.

Renderers are pure: they take a view (or a node) and a size in character
cells and return the lines to print. They never read the filesystem and never
write to the terminal, which keeps them testable without a tty.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from diskscope.core.explorer import ExplorerView, LayoutMode, SortKey
from diskscope.core.treemap import Rect
from diskscope.types.models import Node, NodeKind
from diskscope.utils.formatting import format_percent, format_size

INACCESSIBLE_LABEL: Final[str] = "—"
EXCLUDED_LABEL: Final[str] = "excluded"
PARTIAL_LABEL: Final[str] = "(partial)"

SIZE_COLUMN: Final[int] = 10
BAR_WIDTH: Final[int] = 12

# Box drawing sets: corners (tl, tr, bl, br), horizontal, vertical
_LIGHT_BOX: Final[tuple[str, str, str, str, str, str]] = ("┌", "┐", "└", "┘", "─", "│")
_HEAVY_BOX: Final[tuple[str, str, str, str, str, str]] = ("┏", "┓", "┗", "┛", "━", "┃")


def display_name(node: Node) -> str:
    """Entry name with a ``/`` suffix for directories and ``@`` for links."""
    if node.is_link:
        return f"{node.name}@"
    if node.is_dir and not node.name.endswith(("/", "\\")):
        return f"{node.name}/"
    return node.name


def size_label(node: Node) -> str:
    """Size column text: a formatted size, ``—`` or ``excluded``."""
    if node.kind is NodeKind.INACCESSIBLE:
        return INACCESSIBLE_LABEL
    if node.excluded:
        return EXCLUDED_LABEL
    return format_size(node.size)


def size_bar(part: int, total: int, width: int = BAR_WIDTH) -> str:
    """Proportional bar such as ``[######      ]``."""
    filled = 0 if total <= 0 else round(width * part / total)
    filled = max(0, min(filled, width))
    return "[" + "#" * filled + " " * (width - filled) + "]"


def truncate(text: str, width: int) -> str:
    """Cut ``text`` to ``width`` cells, marking the cut with ``~``."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width == 1:
        return text[:1]
    return text[: width - 1] + "~"


def render_header(view: ExplorerView, width: int) -> list[str]:
    """Breadcrumb path, total size and partial marker of the current directory."""
    if view.current is None:
        return [truncate("diskscope: no scan loaded", width)]

    current = view.current
    title = current.path
    total = format_size(current.size)
    status = f"{total}  {PARTIAL_LABEL}" if view.partial else total
    lines = [truncate(f"{title}  {status}", width)]

    sort = "size" if view.sort_key is SortKey.SIZE else "name"
    mode = "treemap" if view.layout_mode is LayoutMode.TREEMAP else "list"
    details = f"{len(view.children)} entries  sort: {sort}  view: {mode}"
    if view.scan_cancelled:
        details += "  scan cancelled"
    lines.append(truncate(details, width))
    return lines


def render_entry(node: Node, total: int, width: int, *, selected: bool = False) -> str:
    """One list line: cursor marker, size, percentage bar and name."""
    marker = ">" if selected else " "
    label = size_label(node)
    if node.kind is NodeKind.INACCESSIBLE or node.excluded:
        percent = ""
        bar = " " * (BAR_WIDTH + 2)
    else:
        percent = format_percent(node.size, total)
        bar = size_bar(node.size, total)

    name = display_name(node)
    if node.is_dir and not node.complete:
        name = f"{name} {PARTIAL_LABEL}"
    elif node.error:
        name = f"{name} ({node.error})"

    line = f"{marker} {label:>{SIZE_COLUMN}} {percent:>6} {bar} {name}"
    return truncate(line, width)


def render_list(view: ExplorerView, width: int, height: int | None = None) -> list[str]:
    """Render the current directory as an indented list.

    Args:
        view: Explorer view to render
        width: Available columns
        height: Available rows including the header; when given, the entry
            lines are scrolled so the cursor stays visible

    Returns:
        Lines of text, each at most ``width`` cells long
    """
    lines = render_header(view, width)
    if view.current is None:
        return lines

    if not view.children:
        lines.append(truncate("  (empty)", width))
        return lines

    total = view.current.size
    start, stop = 0, len(view.children)
    if height is not None:
        rows = max(height - len(lines), 1)
        if stop > rows:
            start = min(max(view.cursor - rows // 2, 0), stop - rows)
            stop = start + rows

    for index in range(start, stop):
        lines.append(render_entry(view.children[index], total, width, selected=index == view.cursor))
    return lines


def render_treemap(view: ExplorerView, rects: Mapping[str, Rect], width: int, height: int) -> list[str]:
    """Render the current directory as a character-cell treemap.

    ``rects`` is the layout of the visible children keyed by path, as
    returned by ``Explorer.treemap`` for a ``width`` x ``height`` rectangle.
    Each visible child gets the cells covered by its rectangle, framed
    with box characters and labeled with its (truncated) name and size. The
    selected child is drawn with a heavy frame. Rectangles thinner than one
    cell are not drawn.

    Returns:
        Exactly ``height`` lines of exactly ``width`` characters
    """
    if width <= 0 or height <= 0:
        return []

    grid = [[" "] * width for _ in range(height)]
    selected = view.selected

    for child in view.children:
        rect = rects.get(child.path)
        if rect is None:
            continue
        x0, y0 = round(rect.x), round(rect.y)
        x1, y1 = min(round(rect.right), width), min(round(rect.bottom), height)
        if x1 - x0 < 1 or y1 - y0 < 1:
            continue
        _draw_cell(grid, child, x0, y0, x1, y1, highlighted=child is selected)

    return ["".join(row) for row in grid]


def _draw_cell(
    grid: list[list[str]],
    node: Node,
    x0: int,
    y0: int,
    x1: int,
    y1: int,
    *,
    highlighted: bool,
) -> None:
    cell_width = x1 - x0
    cell_height = y1 - y0

    if cell_width < 2 or cell_height < 2:
        fill = "█" if highlighted else "░"
        for y in range(y0, y1):
            for x in range(x0, x1):
                grid[y][x] = fill
        return

    tl, tr, bl, br, horizontal, vertical = _HEAVY_BOX if highlighted else _LIGHT_BOX
    for x in range(x0 + 1, x1 - 1):
        grid[y0][x] = horizontal
        grid[y1 - 1][x] = horizontal
    for y in range(y0 + 1, y1 - 1):
        grid[y][x0] = vertical
        grid[y][x1 - 1] = vertical
    grid[y0][x0] = tl
    grid[y0][x1 - 1] = tr
    grid[y1 - 1][x0] = bl
    grid[y1 - 1][x1 - 1] = br

    inner = cell_width - 2
    labels = [display_name(node), size_label(node)]
    if node.is_dir and not node.complete:
        labels.append(PARTIAL_LABEL)
    for offset, label in enumerate(labels[: cell_height - 2]):
        text = truncate(label, inner)
        for index, char in enumerate(text):
            grid[y0 + 1 + offset][x0 + 1 + index] = char


def render_tree(node: Node, max_depth: int, min_size: int = 0) -> list[str]:
    """Render a non-interactive indented report of ``node``.

    Args:
        node: Root of the report
        max_depth: Deepest level printed (0 prints only ``node``)
        min_size: Entries smaller than this are omitted; inaccessible and
            excluded entries are always shown

    Examples:
        >>> root = Node("/d", "/d", NodeKind.DIRECTORY, size=3, children=[Node("/d/a", "a", NodeKind.FILE, size=3)])
        >>> render_tree(root, max_depth=1)
        ['       3 B  /d/', '       3 B    a']
    """
    lines: list[str] = []
    stack: list[tuple[Node, int]] = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        name = display_name(current)
        if current.is_dir and not current.complete:
            name = f"{name} {PARTIAL_LABEL}"
        elif current.error:
            name = f"{name} ({current.error})"
        lines.append(f"{size_label(current):>{SIZE_COLUMN}}  {'  ' * depth}{name}")

        if depth >= max_depth:
            continue
        visible = [
            child
            for child in current.children
            if child.size >= min_size or child.kind is NodeKind.INACCESSIBLE or child.excluded
        ]
        stack.extend((child, depth + 1) for child in reversed(visible))
    return lines
