"""Interactive explorer state machine.

The explorer holds the current view over a finished (or cancelled) scan and
turns discrete navigation commands into new views. It is single-threaded and
never touches the filesystem: the tree is handed over once, through
:meth:`Explorer.load`, after the scan that produced it has ended.

States::

    LOADING --load()--> BROWSING --QUIT--> CLOSED

Every other command keeps the explorer in BROWSING. CLOSED is terminal.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto

from diskscope.core.treemap import Rect, layout
from diskscope.types.models import Node, NodeKind, ScanResult


class ExplorerState(Enum):
    """States of the explorer."""

    LOADING = auto()
    BROWSING = auto()
    CLOSED = auto()


class Command(Enum):
    """Navigation commands accepted while browsing."""

    UP = auto()
    DOWN = auto()
    TOP = auto()
    BOTTOM = auto()
    ENTER = auto()
    BACK = auto()
    SORT = auto()
    MODE = auto()
    QUIT = auto()


class SortKey(str, Enum):
    """Ordering of the displayed children."""

    SIZE = "size"
    NAME = "name"

    def toggled(self) -> SortKey:
        return SortKey.NAME if self is SortKey.SIZE else SortKey.SIZE


class LayoutMode(str, Enum):
    """How the current directory is displayed."""

    LIST = "list"
    TREEMAP = "treemap"

    def toggled(self) -> LayoutMode:
        return LayoutMode.TREEMAP if self is LayoutMode.LIST else LayoutMode.LIST


class StateTransitionError(Exception):
    """Exception raised when a transition or command is not allowed."""

    def __init__(
        self,
        message: str,
        from_state: ExplorerState | None = None,
        to_state: ExplorerState | None = None,
    ) -> None:
        super().__init__(message)
        self.from_state: ExplorerState | None = from_state
        self.to_state: ExplorerState | None = to_state


_TRANSITIONS: dict[ExplorerState, frozenset[ExplorerState]] = {
    ExplorerState.LOADING: frozenset({ExplorerState.BROWSING}),
    ExplorerState.BROWSING: frozenset({ExplorerState.CLOSED}),
    ExplorerState.CLOSED: frozenset(),
}


@dataclass(slots=True, frozen=True)
class ExplorerView:
    """Immutable snapshot of what the explorer currently shows.

    ``children`` is already sorted and filtered; ``cursor`` indexes into it.
    ``partial`` is set when the displayed directory was not fully scanned;
    the aggregator marks every ancestor of an unfinished directory incomplete,
    so the flag is read from the directory itself.
    """

    state: ExplorerState
    current: Node | None = None
    breadcrumb: tuple[Node, ...] = ()
    children: tuple[Node, ...] = ()
    cursor: int = 0
    sort_key: SortKey = SortKey.SIZE
    layout_mode: LayoutMode = LayoutMode.LIST
    partial: bool = False
    scan_cancelled: bool = False

    @property
    def selected(self) -> Node | None:
        if 0 <= self.cursor < len(self.children):
            return self.children[self.cursor]
        return None

    @property
    def depth(self) -> int:
        return max(len(self.breadcrumb) - 1, 0)


@dataclass(slots=True)
class _Frame:
    node: Node
    cursor: int = 0
    children: list[Node] = field(default_factory=list)


class Explorer:
    """Browses a scan result one directory at a time.

    Args:
        min_size: Entries smaller than this are hidden (inaccessible and
            excluded entries are always shown)
        sort_key: Initial ordering
        layout_mode: Initial display mode
    """

    def __init__(
        self,
        *,
        min_size: int = 0,
        sort_key: SortKey = SortKey.SIZE,
        layout_mode: LayoutMode = LayoutMode.LIST,
    ) -> None:
        self.min_size: int = min_size
        self.sort_key: SortKey = sort_key
        self.layout_mode: LayoutMode = layout_mode
        self._state: ExplorerState = ExplorerState.LOADING
        self._history: list[ExplorerState] = [ExplorerState.LOADING]
        self._result: ScanResult | None = None
        self._stack: list[_Frame] = []

        self._handlers: dict[Command, Callable[[], None]] = {
            Command.UP: lambda: self._move(-1),
            Command.DOWN: lambda: self._move(1),
            Command.TOP: self._top,
            Command.BOTTOM: self._bottom,
            Command.ENTER: self._enter,
            Command.BACK: self._back,
            Command.SORT: self._toggle_sort,
            Command.MODE: self._toggle_mode,
            Command.QUIT: self._quit,
        }

    @property
    def state(self) -> ExplorerState:
        return self._state

    @property
    def history(self) -> list[ExplorerState]:
        return self._history.copy()

    @property
    def result(self) -> ScanResult | None:
        return self._result

    def load(self, result: ScanResult) -> ExplorerView:
        """Hand the finished tree to the explorer and start browsing at its root."""
        self._transition_to(ExplorerState.BROWSING)
        self._result = result
        self._stack = [self._frame(result.root)]
        return self.view()

    def handle(self, command: Command) -> ExplorerView:
        """Apply a navigation command and return the resulting view.

        Raises:
            StateTransitionError: If the explorer is not browsing
        """
        if self._state is not ExplorerState.BROWSING:
            msg = f"Cannot handle {command.name} in state {self._state.name}"
            raise StateTransitionError(msg, from_state=self._state)

        self._handlers[command]()
        return self.view()

    def view(self) -> ExplorerView:
        """Snapshot of the current view."""
        if not self._stack:
            return ExplorerView(
                state=self._state,
                sort_key=self.sort_key,
                layout_mode=self.layout_mode,
            )

        frame = self._stack[-1]
        return ExplorerView(
            state=self._state,
            current=frame.node,
            breadcrumb=tuple(f.node for f in self._stack),
            children=tuple(frame.children),
            cursor=frame.cursor,
            sort_key=self.sort_key,
            layout_mode=self.layout_mode,
            partial=not frame.node.complete,
            scan_cancelled=self._result.cancelled if self._result is not None else False,
        )

    def treemap(self, rect: Rect) -> dict[str, Rect]:
        """Treemap layout of the visible children keyed by path."""
        if not self._stack:
            return {}
        return layout([(child.path, child.size) for child in self._stack[-1].children], rect)

    def visible_children(self, node: Node) -> list[Node]:
        """Children of ``node`` filtered by ``min_size`` and sorted by ``sort_key``."""
        children = [
            child
            for child in node.children
            if child.size >= self.min_size or child.kind is NodeKind.INACCESSIBLE or child.excluded
        ]
        if self.sort_key is SortKey.NAME:
            children.sort(key=lambda child: (child.name.casefold(), -child.size))
        else:
            children.sort(key=lambda child: (-child.size, child.name.casefold()))
        return children

    def _transition_to(self, to_state: ExplorerState) -> None:
        if to_state not in _TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Cannot transition from {self._state.name} to {to_state.name}",
                from_state=self._state,
                to_state=to_state,
            )
        self._state = to_state
        self._history.append(to_state)

    def _frame(self, node: Node, cursor: int = 0) -> _Frame:
        return _Frame(node=node, cursor=cursor, children=self.visible_children(node))

    def _move(self, delta: int) -> None:
        frame = self._stack[-1]
        if not frame.children:
            return
        frame.cursor = max(0, min(frame.cursor + delta, len(frame.children) - 1))

    def _top(self) -> None:
        self._stack[-1].cursor = 0

    def _bottom(self) -> None:
        frame = self._stack[-1]
        frame.cursor = max(len(frame.children) - 1, 0)

    def _enter(self) -> None:
        frame = self._stack[-1]
        if not frame.children:
            return
        target = frame.children[frame.cursor]
        if target.kind is not NodeKind.DIRECTORY or target.excluded:
            return
        self._stack.append(self._frame(target))

    def _back(self) -> None:
        # Popping restores the parent frame with its saved cursor
        if len(self._stack) > 1:
            _ = self._stack.pop()

    def _toggle_sort(self) -> None:
        self.sort_key = self.sort_key.toggled()
        for frame in self._stack:
            selected = frame.children[frame.cursor] if frame.children else None
            frame.children = self.visible_children(frame.node)
            frame.cursor = _index_of(frame.children, selected)

    def _toggle_mode(self) -> None:
        self.layout_mode = self.layout_mode.toggled()

    def _quit(self) -> None:
        self._transition_to(ExplorerState.CLOSED)


def _index_of(children: list[Node], node: Node | None) -> int:
    if node is None:
        return 0
    for index, child in enumerate(children):
        if child is node:
            return index
    return 0
