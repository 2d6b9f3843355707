"""Core scanning, caching, layout and navigation logic."""

from diskscope.core.aggregator import Aggregator, CancelToken, ProgressCounter
from diskscope.core.cache import ScanCache, canonicalize_root
from diskscope.core.errors import DiskscopeError, ScanRootError
from diskscope.core.exclusions import ExclusionFilter
from diskscope.core.explorer import Command, Explorer, ExplorerState, ExplorerView, StateTransitionError
from diskscope.core.treemap import Rect, layout

__all__ = [
    "Aggregator",
    "CancelToken",
    "Command",
    "DiskscopeError",
    "ExclusionFilter",
    "Explorer",
    "ExplorerState",
    "ExplorerView",
    "ProgressCounter",
    "Rect",
    "ScanCache",
    "ScanRootError",
    "StateTransitionError",
    "canonicalize_root",
    "layout",
]
